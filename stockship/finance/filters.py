import django_filters

from stockship.core.filters import UpperChoiceFilter
from .models import Payment, FinancialTransaction, LedgerEntry


class PaymentFilter(django_filters.FilterSet):
    status = UpperChoiceFilter(choices=Payment.STATUS_CHOICES)
    method = UpperChoiceFilter(choices=Payment.METHOD_CHOICES)
    deal = django_filters.NumberFilter(field_name='deal_id')

    class Meta:
        model = Payment
        fields = ['status', 'method', 'deal']


class FinancialTransactionFilter(django_filters.FilterSet):
    type = UpperChoiceFilter(choices=FinancialTransaction.TYPE_CHOICES)
    status = UpperChoiceFilter(choices=FinancialTransaction.STATUS_CHOICES)
    deal = django_filters.NumberFilter(field_name='deal_id')

    class Meta:
        model = FinancialTransaction
        fields = ['type', 'status', 'deal']


class LedgerEntryFilter(django_filters.FilterSet):
    account_type = UpperChoiceFilter(choices=LedgerEntry.ACCOUNT_TYPE_CHOICES)
    account_id = django_filters.NumberFilter(field_name='account_id')
    entry_type = UpperChoiceFilter(choices=LedgerEntry.ENTRY_TYPE_CHOICES)
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = LedgerEntry
        fields = ['account_type', 'account_id', 'entry_type', 'date_from', 'date_to']
