from django.contrib import admin
from .models import Deal, DealItem, DealStatusHistory, DealNegotiation


class DealItemInline(admin.TabularInline):
    model = DealItem
    extra = 0
    raw_id_fields = ['offer_item']


class DealStatusHistoryInline(admin.TabularInline):
    model = DealStatusHistory
    extra = 0
    readonly_fields = ['status', 'description', 'changed_by', 'changed_by_type', 'created_at']


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    list_display = ['deal_number', 'offer', 'trader', 'client', 'employee', 'status', 'negotiated_amount', 'created_at']
    list_filter = ['status']
    search_fields = ['deal_number', 'invoice_number', 'barcode', 'trader__company_name', 'client__email']
    raw_id_fields = ['offer', 'trader', 'client', 'employee']
    readonly_fields = ['barcode_image']
    inlines = [DealItemInline, DealStatusHistoryInline]


@admin.register(DealNegotiation)
class DealNegotiationAdmin(admin.ModelAdmin):
    list_display = ['deal', 'sender', 'sender_type', 'message_type', 'proposed_price', 'is_read', 'created_at']
    list_filter = ['message_type', 'is_read']
    raw_id_fields = ['deal', 'sender']
