"""
API exception handling.

DRF already turns its own exceptions (validation, authentication, permission,
not found) into JSON responses. Anything else reaching the view boundary is an
unexpected failure: it is logged with its traceback and answered with a
generic 500 body so no internals leak to the client.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get('view')
    logger.exception(
        f"Unhandled error in {view.__class__.__name__ if view else 'unknown view'}: {exc}"
    )
    return Response(
        {'error': 'Internal server error'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
