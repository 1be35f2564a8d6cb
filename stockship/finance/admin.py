from django.contrib import admin
from .models import Payment, FinancialTransaction, LedgerAccount, LedgerEntry, Invoice


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'deal', 'client', 'amount', 'method', 'status', 'verified_at', 'created_at']
    list_filter = ['status', 'method']
    search_fields = ['deal__deal_number', 'transaction_ref', 'client__email']
    raw_id_fields = ['deal', 'client', 'verified_by']


class LedgerEntryInline(admin.TabularInline):
    model = LedgerEntry
    extra = 0
    readonly_fields = ['entry_type', 'account_type', 'account_id', 'amount', 'balance_before', 'balance_after']


@admin.register(FinancialTransaction)
class FinancialTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'deal', 'type', 'amount', 'status', 'platform_commission', 'employee_commission',
                    'trader_amount', 'processed_at']
    list_filter = ['type', 'status']
    search_fields = ['deal__deal_number']
    raw_id_fields = ['deal', 'payment', 'employee', 'trader', 'processed_by']
    inlines = [LedgerEntryInline]


@admin.register(LedgerAccount)
class LedgerAccountAdmin(admin.ModelAdmin):
    list_display = ['key', 'account_type', 'account_id', 'balance', 'updated_at']
    list_filter = ['account_type']
    readonly_fields = ['key', 'account_type', 'account_id', 'balance']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'deal', 'status', 'total', 'currency', 'issued_at']
    list_filter = ['status']
    search_fields = ['invoice_number', 'deal__deal_number']
    raw_id_fields = ['deal', 'payment']
