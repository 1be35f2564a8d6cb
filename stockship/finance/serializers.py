from decimal import Decimal

from rest_framework import serializers

from stockship.core.serializers import UserBriefSerializer
from .models import Payment, FinancialTransaction, LedgerEntry, Invoice


class PaymentSerializer(serializers.ModelSerializer):
    deal_number = serializers.CharField(source='deal.deal_number', read_only=True)
    client = UserBriefSerializer(read_only=True)
    verified_by = serializers.CharField(source='verified_by.display_name', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = ['id', 'deal', 'deal_number', 'client', 'amount', 'method', 'status', 'transaction_ref',
                  'receipt_url', 'verified_at', 'verified_by', 'notes', 'created_at', 'updated_at']


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default=Payment.BANK_TRANSFER)
    transaction_ref = serializers.CharField(max_length=100, required=False, allow_blank=True)
    receipt_url = serializers.CharField(max_length=500, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PaymentVerifySerializer(serializers.Serializer):
    verified = serializers.BooleanField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class FinancialTransactionSerializer(serializers.ModelSerializer):
    deal_number = serializers.CharField(source='deal.deal_number', read_only=True)
    employee_name = serializers.CharField(source='employee.name', read_only=True, default=None)
    trader_name = serializers.CharField(source='trader.name', read_only=True, default=None)

    class Meta:
        model = FinancialTransaction
        fields = ['id', 'deal', 'deal_number', 'payment', 'type', 'amount', 'status', 'description',
                  'platform_commission', 'employee_commission', 'trader_amount', 'employee', 'employee_name',
                  'trader', 'trader_name', 'processed_by', 'processed_at', 'created_at']


class LedgerEntrySerializer(serializers.ModelSerializer):
    deal_number = serializers.CharField(source='transaction.deal.deal_number', read_only=True)

    class Meta:
        model = LedgerEntry
        fields = ['id', 'transaction', 'deal_number', 'entry_type', 'account_type', 'account_id', 'amount',
                  'balance_before', 'balance_after', 'description', 'reference', 'created_at']


class InvoiceSerializer(serializers.ModelSerializer):
    deal_number = serializers.CharField(source='deal.deal_number', read_only=True)

    class Meta:
        model = Invoice
        fields = ['id', 'deal', 'deal_number', 'payment', 'invoice_number', 'status', 'subtotal',
                  'platform_commission', 'employee_commission', 'trader_amount', 'total', 'currency',
                  'issued_at', 'created_at']
