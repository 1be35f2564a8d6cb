from decimal import Decimal

from django.conf import settings
from django.db import models


class Payment(models.Model):
    """Client payment against an approved deal, verified by the guarantor employee"""
    BANK_TRANSFER = 'BANK_TRANSFER'
    CARD = 'CARD'
    CASH = 'CASH'
    WALLET = 'WALLET'
    METHOD_CHOICES = [
        (BANK_TRANSFER, 'Bank Transfer'),
        (CARD, 'Card'),
        (CASH, 'Cash'),
        (WALLET, 'Wallet'),
    ]

    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (COMPLETED, 'Completed'),
        (FAILED, 'Failed'),
    ]

    deal = models.ForeignKey('deals.Deal', on_delete=models.PROTECT, related_name='payments')
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=BANK_TRANSFER)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    transaction_ref = models.CharField(max_length=100, blank=True, default='')
    receipt_url = models.CharField(max_length=500, blank=True, default='')
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name='verified_payments')
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Payment {self.id} - {self.deal.deal_number} - {self.amount}"

    class Meta:
        db_table = 'payments'
        ordering = ['-created_at']


class FinancialTransaction(models.Model):
    DEPOSIT = 'DEPOSIT'
    REFUND = 'REFUND'
    PAYOUT = 'PAYOUT'
    TYPE_CHOICES = [
        (DEPOSIT, 'Deposit'),
        (REFUND, 'Refund'),
        (PAYOUT, 'Payout'),
    ]

    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (COMPLETED, 'Completed'),
        (FAILED, 'Failed'),
    ]

    deal = models.ForeignKey('deals.Deal', on_delete=models.PROTECT, related_name='transactions')
    payment = models.ForeignKey(Payment, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions')
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, db_index=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    description = models.TextField(blank=True, default='')
    platform_commission = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    employee_commission = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    trader_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    employee = models.ForeignKey('parties.Employee', on_delete=models.SET_NULL, null=True, blank=True,
                                 related_name='financial_transactions')
    trader = models.ForeignKey('parties.Trader', on_delete=models.SET_NULL, null=True, blank=True,
                               related_name='financial_transactions')
    processed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                     related_name='processed_transactions')
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.type} {self.amount} ({self.deal.deal_number})"

    class Meta:
        db_table = 'financial_transactions'
        ordering = ['-created_at']


class LedgerAccount(models.Model):
    """
    Current balance of one account. The row is locked while an entry is posted so
    concurrent postings to the same account are applied one after the other.
    """
    key = models.CharField(max_length=50, unique=True)
    account_type = models.CharField(max_length=20)
    account_id = models.PositiveBigIntegerField(null=True, blank=True)
    balance = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    updated_at = models.DateTimeField(auto_now=True)

    @staticmethod
    def key_for(account_type, account_id):
        return f"{account_type}:{account_id if account_id is not None else '-'}"

    def __str__(self):
        return f"{self.key} {self.balance}"

    class Meta:
        db_table = 'ledger_accounts'
        ordering = ['account_type', 'account_id']


class LedgerEntry(models.Model):
    """
    One side of a money movement on an account.
    Balances run per (account_type, account_id): CREDIT adds, DEBIT subtracts.
    """
    DEBIT = 'DEBIT'
    CREDIT = 'CREDIT'
    ENTRY_TYPE_CHOICES = [
        (DEBIT, 'Debit'),
        (CREDIT, 'Credit'),
    ]

    CLIENT = 'CLIENT'
    PLATFORM = 'PLATFORM'
    EMPLOYEE = 'EMPLOYEE'
    TRADER = 'TRADER'
    ACCOUNT_TYPE_CHOICES = [
        (CLIENT, 'Client'),
        (PLATFORM, 'Platform'),
        (EMPLOYEE, 'Employee'),
        (TRADER, 'Trader'),
    ]

    transaction = models.ForeignKey(FinancialTransaction, on_delete=models.CASCADE, related_name='ledger_entries')
    entry_type = models.CharField(max_length=10, choices=ENTRY_TYPE_CHOICES)
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPE_CHOICES)
    account_id = models.PositiveBigIntegerField(null=True, blank=True, help_text="Empty for the platform account")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    balance_before = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    balance_after = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    description = models.TextField(blank=True, default='')
    reference = models.CharField(max_length=100, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.entry_type} {self.account_type}:{self.account_id or '-'} {self.amount}"

    class Meta:
        db_table = 'ledger_entries'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'Ledger entries'
        indexes = [
            models.Index(fields=['account_type', 'account_id', 'id'], name='ledger_account_idx'),
        ]


class Invoice(models.Model):
    ISSUED = 'ISSUED'
    PAID = 'PAID'
    CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (ISSUED, 'Issued'),
        (PAID, 'Paid'),
        (CANCELLED, 'Cancelled'),
    ]

    deal = models.ForeignKey('deals.Deal', on_delete=models.PROTECT, related_name='invoices')
    payment = models.ForeignKey(Payment, on_delete=models.SET_NULL, null=True, blank=True, related_name='invoices')
    invoice_number = models.CharField(max_length=30, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ISSUED)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2)
    platform_commission = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    employee_commission = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    trader_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    total = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3, default='SAR')
    issued_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.invoice_number

    class Meta:
        db_table = 'deal_invoices'
        ordering = ['-issued_at']
