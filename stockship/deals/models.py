from decimal import Decimal

from django.conf import settings
from django.db import models


class Deal(models.Model):
    """A negotiated transaction between a client and a trader over one offer"""
    NEGOTIATION = 'NEGOTIATION'
    APPROVED = 'APPROVED'
    PAID = 'PAID'
    SETTLED = 'SETTLED'
    CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (NEGOTIATION, 'Negotiation'),
        (APPROVED, 'Approved'),
        (PAID, 'Paid'),
        (SETTLED, 'Settled'),
        (CANCELLED, 'Cancelled'),
    ]
    OPEN_STATUSES = (NEGOTIATION, APPROVED, PAID)

    deal_number = models.CharField(max_length=30, unique=True)
    offer = models.ForeignKey('offers.Offer', on_delete=models.PROTECT, related_name='deals')
    trader = models.ForeignKey('parties.Trader', on_delete=models.PROTECT, related_name='deals')
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='client_deals')
    employee = models.ForeignKey('parties.Employee', on_delete=models.PROTECT, null=True, blank=True, related_name='deals',
                                 help_text="Guarantor employee of the trader")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=NEGOTIATION, db_index=True)
    notes = models.TextField(blank=True, null=True)
    negotiated_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    total_cartons = models.PositiveIntegerField(default=0)
    total_cbm = models.DecimalField(max_digits=16, decimal_places=4, default=Decimal('0'))
    invoice_number = models.CharField(max_length=30, unique=True, null=True, blank=True)
    barcode = models.CharField(max_length=50, unique=True, null=True, blank=True)
    barcode_image = models.TextField(blank=True, null=True, help_text="PNG data URL")
    approved_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    settled_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.deal_number

    def party_user_ids(self):
        """User ids of the client, the trader and the guarantor employee"""
        ids = {self.client_id, self.trader.user_id}
        if self.employee_id:
            ids.add(self.employee.user_id)
        return ids

    class Meta:
        db_table = 'deals'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'approved_at'], name='deal_status_approved_idx'),
            models.Index(fields=['client', '-created_at'], name='deal_client_created_idx'),
        ]


class DealItem(models.Model):
    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='items')
    offer_item = models.ForeignKey('offers.OfferItem', on_delete=models.PROTECT, related_name='deal_items')
    quantity = models.PositiveIntegerField()
    cartons = models.PositiveIntegerField(default=0)
    cbm = models.DecimalField(max_digits=16, decimal_places=4, default=Decimal('0'))
    negotiated_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.deal.deal_number} - {self.offer_item.product_name}"

    class Meta:
        db_table = 'deal_items'
        ordering = ['id']


class DealStatusHistory(models.Model):
    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='status_history')
    status = models.CharField(max_length=20, choices=Deal.STATUS_CHOICES)
    description = models.TextField(blank=True, default='')
    changed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                   related_name='deal_status_changes')
    changed_by_type = models.CharField(max_length=20, help_text="Role of the actor, or SYSTEM")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.deal.deal_number} -> {self.status}"

    class Meta:
        db_table = 'deal_status_history'
        ordering = ['created_at', 'id']
        verbose_name_plural = 'Deal status history'


class DealNegotiation(models.Model):
    """A message exchanged between client and trader while a deal is negotiated"""
    TEXT = 'TEXT'
    PRICE = 'PRICE'
    QUANTITY = 'QUANTITY'
    MESSAGE_TYPE_CHOICES = [
        (TEXT, 'Text'),
        (PRICE, 'Price proposal'),
        (QUANTITY, 'Quantity proposal'),
    ]

    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='negotiations')
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='deal_messages')
    sender_type = models.CharField(max_length=20)
    message_type = models.CharField(max_length=10, choices=MESSAGE_TYPE_CHOICES, default=TEXT)
    message = models.TextField(blank=True, null=True)
    proposed_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    proposed_quantity = models.PositiveIntegerField(null=True, blank=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.deal.deal_number} [{self.message_type}] by {self.sender_type}"

    class Meta:
        db_table = 'deal_negotiations'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['deal', 'is_read'], name='negotiation_deal_read_idx'),
        ]
