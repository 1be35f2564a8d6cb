from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Count, Sum


class OfferQuerySet(models.QuerySet):
    def with_counts(self):
        return self.select_related('trader__user', 'category').annotate(
            item_count=Count('items', distinct=True),
            deal_count=Count('deals', distinct=True),
        )


class Offer(models.Model):
    """A trader's catalog of goods open for negotiation"""
    DRAFT = 'DRAFT'
    PENDING_VALIDATION = 'PENDING_VALIDATION'
    ACTIVE = 'ACTIVE'
    REJECTED = 'REJECTED'
    CLOSED = 'CLOSED'
    STATUS_CHOICES = [
        (DRAFT, 'Draft'),
        (PENDING_VALIDATION, 'Pending Validation'),
        (ACTIVE, 'Active'),
        (REJECTED, 'Rejected'),
        (CLOSED, 'Closed'),
    ]

    trader = models.ForeignKey('parties.Trader', on_delete=models.CASCADE, related_name='offers')
    category = models.ForeignKey('catalog.Category', on_delete=models.PROTECT, null=True, blank=True, related_name='offers')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=DRAFT, db_index=True)
    total_cartons = models.PositiveIntegerField(default=0)
    total_cbm = models.DecimalField(max_digits=16, decimal_places=4, default=Decimal('0'))
    accepts_negotiation = models.BooleanField(default=False)
    country = models.CharField(max_length=100, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    images = models.JSONField(default=list, blank=True)
    company_name = models.CharField(max_length=255, blank=True, default='')
    proforma_invoice_no = models.CharField(max_length=100, blank=True, default='')
    document_date = models.DateField(null=True, blank=True)
    upload_file_name = models.CharField(max_length=255, blank=True, default='')
    upload_file_size = models.PositiveIntegerField(null=True, blank=True)
    validated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='validated_offers')
    validated_at = models.DateTimeField(null=True, blank=True)
    validation_notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OfferQuerySet.as_manager()

    def __str__(self):
        return self.title

    def recalculate_totals(self, save=True):
        totals = self.items.aggregate(cartons=Sum('package_quantity'), cbm=Sum('total_cbm'))
        self.total_cartons = totals['cartons'] or 0
        self.total_cbm = totals['cbm'] or Decimal('0')
        if save:
            self.save(update_fields=['total_cartons', 'total_cbm', 'updated_at'])

    class Meta:
        db_table = 'offers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='offer_status_created_idx'),
        ]


class OfferItem(models.Model):
    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name='items')
    item_no = models.CharField(max_length=100, blank=True, default='')
    product_name = models.CharField(max_length=255)
    description = models.TextField(blank=True, null=True)
    colour = models.CharField(max_length=100, blank=True, default='')
    spec = models.CharField(max_length=255, blank=True, default='')
    quantity = models.PositiveIntegerField(default=0)
    unit = models.CharField(max_length=20, default='SET')
    unit_price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    currency = models.CharField(max_length=3, default='USD')
    amount = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    packing = models.CharField(max_length=255, blank=True, default='')
    package_quantity = models.PositiveIntegerField(default=0, help_text="Number of cartons")
    unit_gw = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    total_gw = models.DecimalField(max_digits=14, decimal_places=3, null=True, blank=True)
    carton_length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True, help_text="cm")
    carton_width = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True, help_text="cm")
    carton_height = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True, help_text="cm")
    total_cbm = models.DecimalField(max_digits=14, decimal_places=4, default=Decimal('0'))
    images = models.JSONField(default=list, blank=True)
    display_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product_name} ({self.offer_id})"

    @property
    def cbm_per_unit(self):
        if not self.quantity:
            return Decimal('0')
        return self.total_cbm / self.quantity

    class Meta:
        db_table = 'offer_items'
        ordering = ['display_order', 'id']
