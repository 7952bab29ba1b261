from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsAdminRole(BasePermission):
    """Allows access only to users with the admin role"""
    message = 'Access denied. Administrator rights required.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == 'admin')


def is_owner_or_admin(user, owner_id):
    """True when the user is an admin or owns the resource"""
    if not user or not user.is_authenticated:
        return False
    return user.role == 'admin' or user.pk == owner_id


class IsAdminRoleOrReadOnly(BasePermission):
    """Anyone may read; writes need the admin role"""
    message = 'Access denied. Administrator rights required.'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        user = request.user
        return bool(user and user.is_authenticated and user.role == 'admin')
