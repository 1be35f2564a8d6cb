"""Relationship checks between the signed-in user and employees/traders"""
from django.core.exceptions import ObjectDoesNotExist

from stockship.core.models import User


def employee_for(user):
    """Employee profile of ``user`` or None"""
    if not user or not user.is_authenticated or user.role != User.EMPLOYEE:
        return None
    try:
        return user.employee_profile
    except ObjectDoesNotExist:
        return None


def trader_for(user):
    """Trader profile of ``user`` or None"""
    if not user or not user.is_authenticated or user.role != User.TRADER:
        return None
    try:
        return user.trader_profile
    except ObjectDoesNotExist:
        return None


def is_employee_of_trader(user, trader):
    employee = employee_for(user)
    return employee is not None and trader.employee_id == employee.id


def can_view_employee(user, employee):
    if user.role == User.ADMIN or user.is_superuser:
        return True
    return employee.user_id == user.id


def can_view_trader(user, trader):
    if user.role in (User.ADMIN, User.MODERATOR) or user.is_superuser:
        return True
    if trader.user_id == user.id:
        return True
    return is_employee_of_trader(user, trader)
