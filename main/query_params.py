"""
Query string parsing for list and report endpoints.

Filters arrive as strings; they are validated here so a malformed value
(``store_id=abc``, ``start_date=garbage``) is answered with a 400 listing
the offending parameters instead of failing inside the ORM.
"""
from rest_framework import ISO_8601, serializers

DATE_INPUT_FORMATS = [ISO_8601, '%Y-%m-%d']


class ListFilterSerializer(serializers.Serializer):
    store_id = serializers.IntegerField(required=False, min_value=1)
    product_id = serializers.IntegerField(required=False, min_value=1)
    user_id = serializers.IntegerField(required=False, min_value=1)
    start_date = serializers.DateTimeField(required=False, input_formats=DATE_INPUT_FORMATS)
    end_date = serializers.DateTimeField(required=False, input_formats=DATE_INPUT_FORMATS)


class ReportFilterSerializer(ListFilterSerializer):
    period = serializers.ChoiceField(choices=['today', 'week', 'month'], required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100)


def parse_filters(request, serializer_class=ListFilterSerializer):
    """Validated filters from the query string; empty parameters are ignored."""
    data = {key: value for key, value in request.query_params.items() if value != ''}
    serializer = serializer_class(data=data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data
