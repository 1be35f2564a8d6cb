"""
Role based permission classes.

``allow_roles`` builds a DRF permission class for the given roles so views can
declare ``@permission_classes([IsAuthenticated, allow_roles(User.ADMIN, User.MODERATOR)])``.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import User


class RolePermission(BasePermission):
    allowed_roles = ()
    message = 'Access denied.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role in self.allowed_roles)


def allow_roles(*roles):
    """Return a permission class that admits only users with one of ``roles``."""
    name = 'Allow' + ''.join(role.title() for role in roles)
    return type(name, (RolePermission,), {
        'allowed_roles': roles,
        'message': f"Access denied. Required role: {', '.join(roles)}",
    })


IsAdminRole = allow_roles(User.ADMIN)
IsAdminOrModerator = allow_roles(User.ADMIN, User.MODERATOR)
IsEmployee = allow_roles(User.EMPLOYEE)
IsEmployeeOrAdmin = allow_roles(User.EMPLOYEE, User.ADMIN)
IsTrader = allow_roles(User.TRADER)
IsClient = allow_roles(User.CLIENT)


def is_admin_user(user):
    return bool(user and user.is_authenticated and (user.role == User.ADMIN or user.is_superuser))


class IsAdminOrReadOnly(BasePermission):
    """Anyone may read, only admins may write"""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return is_admin_user(request.user)
