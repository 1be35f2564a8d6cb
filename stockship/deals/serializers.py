from decimal import Decimal

from rest_framework import serializers

from stockship.core.serializers import UserBriefSerializer
from stockship.finance.serializers import PaymentSerializer, InvoiceSerializer
from stockship.offers.serializers import OfferItemSerializer
from stockship.parties.serializers import EmployeeBriefSerializer, TraderBriefSerializer
from .models import Deal, DealItem, DealStatusHistory, DealNegotiation


class DealOfferSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()


class DealListSerializer(serializers.ModelSerializer):
    offer = DealOfferSerializer(read_only=True)
    trader = TraderBriefSerializer(read_only=True)
    client = UserBriefSerializer(read_only=True)
    employee = EmployeeBriefSerializer(read_only=True)

    class Meta:
        model = Deal
        fields = ['id', 'deal_number', 'status', 'offer', 'trader', 'client', 'employee', 'negotiated_amount',
                  'total_cartons', 'total_cbm', 'invoice_number', 'approved_at', 'paid_at', 'settled_at',
                  'cancelled_at', 'created_at', 'updated_at']


class DealItemSerializer(serializers.ModelSerializer):
    offer_item = OfferItemSerializer(read_only=True)

    class Meta:
        model = DealItem
        fields = ['id', 'offer_item', 'quantity', 'cartons', 'cbm', 'negotiated_price', 'notes', 'created_at']


class DealStatusHistorySerializer(serializers.ModelSerializer):
    changed_by = serializers.CharField(source='changed_by.display_name', read_only=True, default=None)

    class Meta:
        model = DealStatusHistory
        fields = ['id', 'status', 'description', 'changed_by', 'changed_by_type', 'created_at']


class DealNegotiationSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True)

    class Meta:
        model = DealNegotiation
        fields = ['id', 'deal', 'sender', 'sender_name', 'sender_type', 'message_type', 'message', 'proposed_price',
                  'proposed_quantity', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class DealDetailSerializer(DealListSerializer):
    items = DealItemSerializer(many=True, read_only=True)
    status_history = DealStatusHistorySerializer(many=True, read_only=True)
    negotiations = serializers.SerializerMethodField()
    payments = PaymentSerializer(many=True, read_only=True)
    invoices = InvoiceSerializer(many=True, read_only=True)

    class Meta(DealListSerializer.Meta):
        fields = DealListSerializer.Meta.fields + [
            'notes', 'barcode', 'barcode_image', 'cancellation_reason', 'items', 'negotiations', 'status_history',
            'payments', 'invoices',
        ]

    def get_negotiations(self, obj):
        # Latest 50 messages, oldest first
        latest = list(obj.negotiations.select_related('sender').order_by('-created_at', '-id')[:50])
        return DealNegotiationSerializer(reversed(latest), many=True).data


class RequestNegotiationSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DealItemInputSerializer(serializers.Serializer):
    offer_item_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    cartons = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    negotiated_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'),
                                                required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DealItemsSerializer(serializers.Serializer):
    items = DealItemInputSerializer(many=True, allow_empty=False)


class DealApproveSerializer(serializers.Serializer):
    negotiated_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DealCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000)


class NegotiationMessageSerializer(serializers.Serializer):
    message_type = serializers.ChoiceField(choices=DealNegotiation.MESSAGE_TYPE_CHOICES, required=False)
    message = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    proposed_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'),
                                              required=False, allow_null=True)
    proposed_quantity = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate(self, attrs):
        message = (attrs.get('message') or '').strip()
        price = attrs.get('proposed_price')
        quantity = attrs.get('proposed_quantity')
        if not message and price is None and quantity is None:
            raise serializers.ValidationError('Please provide a message, a proposed price or a proposed quantity')
        if not attrs.get('message_type'):
            if price is not None:
                attrs['message_type'] = DealNegotiation.PRICE
            elif quantity is not None:
                attrs['message_type'] = DealNegotiation.QUANTITY
            else:
                attrs['message_type'] = DealNegotiation.TEXT
        attrs['message'] = message or None
        return attrs
