from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager as BaseUserManager
from django.db import models


class UserManager(BaseUserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault('role', User.ADMIN)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """Platform account. The role decides which parts of the API a user can reach."""
    ADMIN = 'ADMIN'
    MODERATOR = 'MODERATOR'
    EMPLOYEE = 'EMPLOYEE'
    TRADER = 'TRADER'
    CLIENT = 'CLIENT'
    ROLE_CHOICES = [
        (ADMIN, 'Admin'),
        (MODERATOR, 'Moderator'),
        (EMPLOYEE, 'Employee'),
        (TRADER, 'Trader'),
        (CLIENT, 'Client'),
    ]
    DASHBOARD_ROLES = (ADMIN, MODERATOR, EMPLOYEE, TRADER)

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=CLIENT, db_index=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    country_code = models.CharField(max_length=8, blank=True, null=True)
    country = models.CharField(max_length=100, blank=True, null=True)
    city = models.CharField(max_length=100, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    class Meta:
        db_table = 'users'

    @property
    def display_name(self):
        return self.get_full_name() or self.username

    def has_role(self, *roles):
        return self.role in roles


class ActivityLog(models.Model):
    """Audit trail of who did what to which entity"""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='activity_logs')
    user_type = models.CharField(max_length=20, blank=True, default='')
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=50, blank=True, default='')
    entity_id = models.CharField(max_length=100, blank=True, default='')
    description = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.entity_type}#{self.entity_id}"

    class Meta:
        db_table = 'activity_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='activity_created_idx'),
            models.Index(fields=['action'], name='activity_action_idx'),
            models.Index(fields=['entity_type', 'entity_id'], name='activity_entity_idx'),
            models.Index(fields=['user_type'], name='activity_user_type_idx'),
        ]


class Notification(models.Model):
    TYPE_CHOICES = [
        ('DEAL', 'Deal'),
        ('NEGOTIATION', 'Negotiation'),
        ('PAYMENT', 'Payment'),
        ('OFFER', 'Offer'),
        ('TRADER', 'Trader'),
        ('TICKET', 'Support Ticket'),
        ('SYSTEM', 'System'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='SYSTEM')
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True, default='')
    related_entity_type = models.CharField(max_length=50, blank=True, null=True)
    related_entity_id = models.CharField(max_length=100, blank=True, null=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user_id}: {self.title}"

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]


class PlatformSettings(models.Model):
    """Single-row table with platform wide business settings"""
    PERCENTAGE = 'PERCENTAGE'
    CBM = 'CBM'
    BOTH = 'BOTH'
    COMMISSION_METHOD_CHOICES = [
        (PERCENTAGE, 'Percentage of deal amount'),
        (CBM, 'Fixed rate per CBM'),
        (BOTH, 'Percentage plus CBM rate'),
    ]

    platform_name = models.CharField(max_length=100, default='Stockship')
    platform_commission_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('2.5'))
    commission_method = models.CharField(max_length=20, choices=COMMISSION_METHOD_CHOICES, default=PERCENTAGE)
    cbm_rate = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default='SAR')
    default_language = models.CharField(max_length=5, default='ar')
    timezone = models.CharField(max_length=50, default='Asia/Riyadh')
    support_email = models.EmailField(blank=True, null=True)
    support_phone = models.CharField(max_length=20, blank=True, null=True)
    maintenance_mode = models.BooleanField(default=False)
    allow_client_registration = models.BooleanField(default=True)
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.platform_name

    @classmethod
    def load(cls):
        """Return the saved settings row, or an unsaved instance holding the defaults."""
        instance = cls.objects.order_by('pk').first()
        if instance is None:
            instance = cls(platform_commission_rate=Decimal(str(settings.DEFAULT_PLATFORM_COMMISSION_RATE)))
        return instance

    class Meta:
        db_table = 'platform_settings'
        verbose_name_plural = 'platform settings'
