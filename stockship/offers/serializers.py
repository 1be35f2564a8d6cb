from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from stockship.catalog.models import Category
from stockship.parties.serializers import TraderBriefSerializer
from .models import Offer, OfferItem
from .services import build_item


class OfferItemSerializer(serializers.ModelSerializer):
    cbm_per_unit = serializers.DecimalField(max_digits=14, decimal_places=6, read_only=True)

    class Meta:
        model = OfferItem
        fields = ['id', 'offer', 'item_no', 'product_name', 'description', 'colour', 'spec', 'quantity', 'unit',
                  'unit_price', 'currency', 'amount', 'packing', 'package_quantity', 'unit_gw', 'total_gw',
                  'carton_length', 'carton_width', 'carton_height', 'total_cbm', 'cbm_per_unit', 'images',
                  'display_order']
        read_only_fields = ['offer']


class OfferItemInputSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False)
    total_cbm = serializers.DecimalField(max_digits=14, decimal_places=4, min_value=Decimal('0'), required=False)

    class Meta:
        model = OfferItem
        fields = ['item_no', 'product_name', 'description', 'colour', 'spec', 'quantity', 'unit', 'unit_price',
                  'currency', 'amount', 'packing', 'package_quantity', 'unit_gw', 'total_gw', 'carton_length',
                  'carton_width', 'carton_height', 'total_cbm', 'images', 'display_order']


class CategoryBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name', 'name_ar', 'slug']


class OfferListSerializer(serializers.ModelSerializer):
    trader = TraderBriefSerializer(read_only=True)
    category = CategoryBriefSerializer(read_only=True)
    item_count = serializers.SerializerMethodField()
    deal_count = serializers.SerializerMethodField()

    class Meta:
        model = Offer
        fields = ['id', 'title', 'description', 'status', 'total_cartons', 'total_cbm', 'accepts_negotiation',
                  'country', 'city', 'images', 'category', 'trader', 'item_count', 'deal_count',
                  'created_at', 'updated_at']

    def get_item_count(self, obj):
        count = getattr(obj, 'item_count', None)
        return count if count is not None else obj.items.count()

    def get_deal_count(self, obj):
        count = getattr(obj, 'deal_count', None)
        return count if count is not None else obj.deals.count()


class OfferDetailSerializer(OfferListSerializer):
    items = OfferItemSerializer(many=True, read_only=True)
    validated_by = serializers.CharField(source='validated_by.display_name', read_only=True, default=None)

    class Meta(OfferListSerializer.Meta):
        fields = OfferListSerializer.Meta.fields + [
            'company_name', 'proforma_invoice_no', 'document_date', 'upload_file_name', 'validated_by',
            'validated_at', 'validation_notes', 'items',
        ]


class ActiveCategoryField(serializers.PrimaryKeyRelatedField):
    def to_internal_value(self, data):
        category = super().to_internal_value(data)
        if not category.is_active:
            raise serializers.ValidationError('Category is not active')
        return category


class OfferCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    category = ActiveCategoryField(queryset=Category.objects.all(), required=False, allow_null=True)
    accepts_negotiation = serializers.BooleanField(required=False, default=False)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    images = serializers.ListField(child=serializers.CharField(max_length=500), required=False)
    company_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    proforma_invoice_no = serializers.CharField(max_length=100, required=False, allow_blank=True)
    document_date = serializers.DateField(required=False, allow_null=True)
    items = OfferItemInputSerializer(many=True, required=False)

    def validate(self, attrs):
        title = (attrs.get('title') or '').strip()
        description = (attrs.get('description') or '').strip()
        attrs['title'] = title or description[:100] or 'New Advertisement'
        attrs['description'] = description or None
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        items_data = validated_data.pop('items', [])
        trader = self.context['trader']
        offer = Offer.objects.create(
            trader=trader,
            status=Offer.DRAFT,
            country=validated_data.pop('country', '') or trader.country,
            city=validated_data.pop('city', '') or trader.city,
            images=validated_data.pop('images', []),
            **validated_data,
        )
        if items_data:
            OfferItem.objects.bulk_create([
                build_item(offer, data, index) for index, data in enumerate(items_data, start=1)
            ])
            offer.recalculate_totals()
        return offer


class OfferUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    images = serializers.ListField(child=serializers.CharField(max_length=500), required=False)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all(), required=False, allow_null=True)
    accepts_negotiation = serializers.BooleanField(required=False)

    def update(self, instance, validated_data):
        for field, value in validated_data.items():
            setattr(instance, field, value)
        # Editing a rejected offer resubmits it for validation
        if instance.status == Offer.REJECTED:
            instance.status = Offer.PENDING_VALIDATION
        instance.save()
        return instance


class OfferValidationSerializer(serializers.Serializer):
    approved = serializers.BooleanField()
    validation_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
