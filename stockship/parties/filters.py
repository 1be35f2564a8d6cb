import django_filters
from django import forms
from django.db.models import Q

from .models import Trader


class EmployeeRefField(forms.CharField):
    """Employee id, or ``none`` for traders without an employee"""

    def validate(self, value):
        super().validate(value)
        if value and value != 'none' and not value.isdigit():
            raise forms.ValidationError('Enter an employee id or "none".', code='invalid')


class EmployeeRefFilter(django_filters.CharFilter):
    field_class = EmployeeRefField

    def filter(self, qs, value):
        if not value:
            return qs
        if value == 'none':
            return qs.filter(employee__isnull=True)
        return qs.filter(employee_id=int(value))


class TraderFilter(django_filters.FilterSet):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('verified', 'Verified'),
        ('unverified', 'Unverified'),
    ]
    STATUS_LOOKUPS = {
        'active': {'user__is_active': True},
        'inactive': {'user__is_active': False},
        'verified': {'is_verified': True},
        'unverified': {'is_verified': False},
    }

    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.ChoiceFilter(choices=STATUS_CHOICES, method='filter_status')
    is_verified = django_filters.BooleanFilter(field_name='is_verified')
    employee = EmployeeRefFilter()

    class Meta:
        model = Trader
        fields = ['search', 'status', 'is_verified', 'employee']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(user__first_name__icontains=value) | Q(user__last_name__icontains=value) |
            Q(company_name__icontains=value) | Q(user__email__icontains=value) |
            Q(trader_code__icontains=value)
        )

    def filter_status(self, queryset, name, value):
        return queryset.filter(**self.STATUS_LOOKUPS[value])
