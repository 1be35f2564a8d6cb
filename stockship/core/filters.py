import django_filters
from django_filters.fields import ChoiceField

from .models import ActivityLog


class UpperCaseChoiceField(ChoiceField):
    """Choice field that accepts lower case spellings of upper case choice values"""

    def to_python(self, value):
        return super().to_python(value).upper()


class UpperChoiceFilter(django_filters.ChoiceFilter):
    field_class = UpperCaseChoiceField


def filter_queryset(filterset_class, request, queryset):
    """
    Run ``filterset_class`` over the request's query parameters.
    Returns ``(queryset, errors)``; errors is empty when every parameter was valid.
    """
    filterset = filterset_class(request.query_params, queryset=queryset, request=request)
    if not filterset.is_valid():
        return queryset.none(), filterset.errors
    return filterset.qs, {}


class ActivityLogFilter(django_filters.FilterSet):
    """Filters for the admin activity log views"""
    user = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    user_type = django_filters.CharFilter(method='filter_upper_exact')
    action = django_filters.CharFilter(field_name='action', lookup_expr='icontains')
    entity_type = django_filters.CharFilter(method='filter_upper_exact')
    entity_id = django_filters.CharFilter(field_name='entity_id', lookup_expr='exact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(field_name='description', lookup_expr='icontains')

    class Meta:
        model = ActivityLog
        fields = ['user', 'user_type', 'action', 'entity_type', 'entity_id', 'date_from', 'date_to', 'search']

    def filter_upper_exact(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(**{name: value.upper()})
