import django_filters

from stockship.core.filters import UpperChoiceFilter
from .models import SupportTicket


class SupportTicketFilter(django_filters.FilterSet):
    status = UpperChoiceFilter(choices=SupportTicket.STATUS_CHOICES)
    priority = UpperChoiceFilter(choices=SupportTicket.PRIORITY_CHOICES)
    offer = django_filters.NumberFilter(field_name='offer_id')

    class Meta:
        model = SupportTicket
        fields = ['status', 'priority', 'offer']
