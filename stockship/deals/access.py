"""Who may see and act on a deal"""
from stockship.core.models import User
from stockship.core.permissions import is_admin_user
from .models import Deal


def deal_role(user, deal):
    """The part ``user`` plays in ``deal``: CLIENT, TRADER, EMPLOYEE, ADMIN or None"""
    if not user or not user.is_authenticated:
        return None
    if deal.client_id == user.id:
        return User.CLIENT
    if deal.trader.user_id == user.id:
        return User.TRADER
    if deal.employee_id and deal.employee.user_id == user.id:
        return User.EMPLOYEE
    if is_admin_user(user):
        return User.ADMIN
    return None


def deals_visible_to(user):
    queryset = Deal.objects.select_related('offer', 'trader__user', 'client', 'employee__user')
    if is_admin_user(user):
        return queryset
    if user.role == User.CLIENT:
        return queryset.filter(client=user)
    if user.role == User.TRADER:
        return queryset.filter(trader__user=user)
    if user.role == User.EMPLOYEE:
        return queryset.filter(employee__user=user)
    return queryset.none()
