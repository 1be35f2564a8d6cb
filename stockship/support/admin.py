from django.contrib import admin
from .models import SupportTicket, TicketMessage


class TicketMessageInline(admin.TabularInline):
    model = TicketMessage
    extra = 0
    readonly_fields = ['sender', 'sender_type', 'message', 'created_at']


@admin.register(SupportTicket)
class SupportTicketAdmin(admin.ModelAdmin):
    list_display = ['id', 'subject', 'offer', 'trader', 'employee', 'status', 'priority', 'updated_at']
    list_filter = ['status', 'priority']
    search_fields = ['subject', 'trader__company_name', 'offer__title']
    raw_id_fields = ['offer', 'trader', 'employee']
    inlines = [TicketMessageInline]
