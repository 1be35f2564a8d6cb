from django.contrib import admin
from .models import Offer, OfferItem


class OfferItemInline(admin.TabularInline):
    model = OfferItem
    extra = 0
    fields = ['item_no', 'product_name', 'quantity', 'unit_price', 'package_quantity', 'total_cbm']


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    list_display = ['title', 'trader', 'status', 'total_cartons', 'total_cbm', 'created_at']
    list_filter = ['status', 'accepts_negotiation', 'category']
    search_fields = ['title', 'description', 'trader__company_name', 'trader__trader_code']
    raw_id_fields = ['trader', 'validated_by']
    inlines = [OfferItemInline]


@admin.register(OfferItem)
class OfferItemAdmin(admin.ModelAdmin):
    list_display = ['product_name', 'offer', 'quantity', 'unit_price', 'total_cbm']
    search_fields = ['product_name', 'item_no']
    raw_id_fields = ['offer']
