from decimal import Decimal

from django.conf import settings
from django.db import models


class Employee(models.Model):
    """Platform employee who guarantees the deals of the traders assigned to them"""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='employee_profile')
    employee_code = models.CharField(max_length=20, unique=True)
    commission_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('1.0'),
                                          help_text="Percentage of the deal amount paid to the employee")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.employee_code} {self.user.display_name}"

    @property
    def name(self):
        return self.user.display_name

    class Meta:
        db_table = 'employees'
        ordering = ['-created_at']


class Trader(models.Model):
    """Seller account. Offers and deals always belong to a trader."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='trader_profile')
    employee = models.ForeignKey(Employee, on_delete=models.SET_NULL, null=True, blank=True, related_name='traders')
    linked_client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='linked_traders')
    company_name = models.CharField(max_length=255)
    company_address = models.TextField(blank=True, default='')
    trader_code = models.CharField(max_length=20, unique=True)
    barcode = models.CharField(max_length=50, unique=True, null=True, blank=True)
    country = models.CharField(max_length=100, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    bank_name = models.CharField(max_length=255, blank=True, default='')
    bank_account_name = models.CharField(max_length=255, blank=True, default='')
    bank_account_number = models.CharField(max_length=100, blank=True, default='')
    bank_address = models.TextField(blank=True, default='')
    bank_code = models.CharField(max_length=50, blank=True, default='')
    swift_code = models.CharField(max_length=50, blank=True, default='')
    is_verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.trader_code} {self.company_name}"

    @property
    def name(self):
        return self.user.display_name

    @property
    def is_active(self):
        return self.user.is_active

    class Meta:
        db_table = 'traders'
        ordering = ['-created_at']
