import django_filters
from django.db.models import Q

from .models import Offer


class OfferFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.CharFilter(method='filter_status')
    trader = django_filters.NumberFilter(field_name='trader_id')
    category = django_filters.NumberFilter(field_name='category_id')
    country = django_filters.CharFilter(field_name='country', lookup_expr='iexact')
    city = django_filters.CharFilter(field_name='city', lookup_expr='iexact')

    class Meta:
        model = Offer
        fields = ['search', 'status', 'trader', 'category', 'country', 'city']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(title__icontains=value) | Q(description__icontains=value) |
            Q(trader__company_name__icontains=value) | Q(items__product_name__icontains=value)
        ).distinct()

    def filter_status(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(status=value.upper())
