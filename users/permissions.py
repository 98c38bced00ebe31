from rest_framework import permissions
from users.access import Requester


class IsAdmin(permissions.BasePermission):
    """Only Admin users have access"""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            Requester.from_user(request.user).is_admin
        )


class IsSales(permissions.BasePermission):
    """Only Sales users have access"""

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            Requester.from_user(request.user).is_sales
        )


class IsAdminOrReadOnly(permissions.BasePermission):
    """Any authenticated user may read; only Admin may write"""

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return Requester.from_user(request.user).is_admin


class IsSalesOrReadOnly(permissions.BasePermission):
    """Any authenticated user may read; only Sales may write"""

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return Requester.from_user(request.user).is_sales
