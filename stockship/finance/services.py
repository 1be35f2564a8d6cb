"""
Payments, commission split and the double-entry style ledger.

A verified client payment produces one DEPOSIT transaction and four ledger entries:
the client is debited the full amount, the platform, the guarantor employee and the
trader are credited their shares.
"""
import logging
from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from stockship.core.models import PlatformSettings
from stockship.core.utils import create_activity_log, notify, generate_yearly_number
from stockship.deals.models import Deal
from stockship.deals.services import mark_paid
from .models import Payment, FinancialTransaction, LedgerAccount, LedgerEntry, Invoice

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
HUNDRED = Decimal('100')

CommissionBreakdown = namedtuple('CommissionBreakdown', ['amount', 'platform_commission', 'employee_commission', 'trader_amount'])


class PaymentError(Exception):
    """A payment rule was violated. The message is safe to show to the user."""


def money(value):
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def employee_rate_for(deal):
    if deal.employee_id and deal.employee.commission_rate is not None:
        return Decimal(deal.employee.commission_rate)
    return Decimal(str(settings.DEFAULT_EMPLOYEE_COMMISSION_RATE))


def calculate_commissions(amount, total_cbm, platform_settings, employee_rate):
    """
    Split ``amount`` between platform, employee and trader.

    Platform commission depends on the configured method:
        PERCENTAGE: amount * rate / 100
        CBM:        total_cbm * cbm_rate
        BOTH:       the sum of the two
    """
    amount = money(amount)
    method = platform_settings.commission_method
    percentage_part = amount * Decimal(platform_settings.platform_commission_rate) / HUNDRED
    cbm_part = Decimal(total_cbm or 0) * Decimal(platform_settings.cbm_rate or 0)

    if method == PlatformSettings.CBM:
        platform_commission = cbm_part
    elif method == PlatformSettings.BOTH:
        platform_commission = percentage_part + cbm_part
    else:
        platform_commission = percentage_part
    platform_commission = money(platform_commission)
    employee_commission = money(amount * employee_rate / HUNDRED)
    trader_amount = amount - platform_commission - employee_commission
    if trader_amount < 0:
        raise PaymentError('Commissions exceed the payment amount')
    return CommissionBreakdown(amount, platform_commission, employee_commission, money(trader_amount))


def current_balance(account_type, account_id):
    balance = (
        LedgerAccount.objects.filter(key=LedgerAccount.key_for(account_type, account_id))
        .values_list('balance', flat=True)
        .first()
    )
    return balance if balance is not None else Decimal('0')


def lock_account(account_type, account_id):
    """Balance row of the account, created on first use and locked until the transaction ends"""
    account, _ = LedgerAccount.objects.get_or_create(
        key=LedgerAccount.key_for(account_type, account_id),
        defaults={'account_type': account_type, 'account_id': account_id},
    )
    return LedgerAccount.objects.select_for_update().get(pk=account.pk)


@transaction.atomic
def post_ledger_entry(financial_transaction, entry_type, account_type, account_id, amount, description, reference=''):
    """Append an entry and carry the account's running balance forward"""
    account = lock_account(account_type, account_id)
    before = account.balance
    after = before + amount if entry_type == LedgerEntry.CREDIT else before - amount
    account.balance = after
    account.save(update_fields=['balance', 'updated_at'])
    return LedgerEntry.objects.create(
        transaction=financial_transaction,
        entry_type=entry_type,
        account_type=account_type,
        account_id=account_id,
        amount=amount,
        balance_before=before,
        balance_after=after,
        description=description,
        reference=reference,
    )


@transaction.atomic
def create_payment(deal, client, amount, method=Payment.BANK_TRANSFER, transaction_ref='', receipt_url='',
                   notes=None, request=None):
    """Register a client payment waiting for verification."""
    deal = Deal.objects.select_for_update().get(pk=deal.pk)
    if deal.status != Deal.APPROVED:
        raise PaymentError('Payments can only be made on approved deals')
    if deal.negotiated_amount is None or money(amount) != money(deal.negotiated_amount):
        raise PaymentError(f'Payment amount must equal the negotiated amount ({deal.negotiated_amount})')
    if deal.payments.filter(status=Payment.PENDING).exists():
        raise PaymentError('A payment for this deal is already waiting for verification')

    payment = Payment.objects.create(
        deal=deal,
        client=client,
        amount=money(amount),
        method=method,
        transaction_ref=transaction_ref or '',
        receipt_url=receipt_url or '',
        notes=notes or None,
    )
    create_activity_log(request=request, user=client, action='PAYMENT_CREATED', entity_type='PAYMENT',
                        entity_id=payment.id, description=f"Client paid {payment.amount} for deal {deal.deal_number}",
                        metadata={'deal_id': deal.id, 'method': method})
    if deal.employee_id:
        notify([deal.employee.user], 'PAYMENT', 'Payment waiting for verification',
               f"A payment of {payment.amount} was submitted for deal {deal.deal_number}.",
               related_entity_type='PAYMENT', related_entity_id=payment.id)
    return payment


@transaction.atomic
def distribute_payment(payment, processed_by):
    """Record the DEPOSIT transaction, its ledger entries and the invoice for a verified payment"""
    deal = payment.deal
    platform_settings = PlatformSettings.load()
    split = calculate_commissions(payment.amount, deal.total_cbm, platform_settings, employee_rate_for(deal))
    now = timezone.now()

    deposit = FinancialTransaction.objects.create(
        deal=deal,
        payment=payment,
        type=FinancialTransaction.DEPOSIT,
        amount=split.amount,
        status=FinancialTransaction.COMPLETED,
        description=f"Payment for deal {deal.deal_number}",
        platform_commission=split.platform_commission,
        employee_commission=split.employee_commission,
        trader_amount=split.trader_amount,
        employee=deal.employee,
        trader=deal.trader,
        processed_by=processed_by,
        processed_at=now,
    )

    reference = deal.deal_number
    post_ledger_entry(deposit, LedgerEntry.DEBIT, LedgerEntry.CLIENT, deal.client_id, split.amount,
                      f"Payment for deal {deal.deal_number}", reference)
    post_ledger_entry(deposit, LedgerEntry.CREDIT, LedgerEntry.PLATFORM, None, split.platform_commission,
                      f"Platform commission for deal {deal.deal_number}", reference)
    post_ledger_entry(deposit, LedgerEntry.CREDIT, LedgerEntry.EMPLOYEE, deal.employee_id, split.employee_commission,
                      f"Employee commission for deal {deal.deal_number}", reference)
    post_ledger_entry(deposit, LedgerEntry.CREDIT, LedgerEntry.TRADER, deal.trader_id, split.trader_amount,
                      f"Trader share for deal {deal.deal_number}", reference)

    invoice_number = deal.invoice_number
    if not invoice_number or Invoice.objects.filter(invoice_number=invoice_number).exists():
        invoice_number = generate_yearly_number(Invoice, 'invoice_number', 'INV')
    invoice = Invoice.objects.create(
        deal=deal,
        payment=payment,
        invoice_number=invoice_number,
        status=Invoice.PAID,
        subtotal=split.amount,
        platform_commission=split.platform_commission,
        employee_commission=split.employee_commission,
        trader_amount=split.trader_amount,
        total=split.amount,
        currency=platform_settings.currency,
        issued_at=now,
    )
    logger.info(
        f"Deal {deal.deal_number}: distributed {split.amount} "
        f"(platform {split.platform_commission}, employee {split.employee_commission}, trader {split.trader_amount})"
    )
    return deposit, invoice


@transaction.atomic
def verify_payment(payment, user, verified, notes=None, request=None):
    """
    Employee decision on a pending payment.
    Verified payments complete the deal payment; rejected ones are marked FAILED.
    """
    # Lock order: deal, then payment
    deal = Deal.objects.select_for_update().get(pk=payment.deal_id)
    payment = Payment.objects.select_for_update().get(pk=payment.pk)
    payment.deal = deal
    if payment.status != Payment.PENDING:
        raise PaymentError('Payment has already been processed')
    if verified and deal.status != Deal.APPROVED:
        raise PaymentError(f'Deal is {deal.status.lower()} and cannot be marked as paid')

    payment.verified_by = user
    payment.verified_at = timezone.now()
    if notes:
        payment.notes = notes

    if not verified:
        payment.status = Payment.FAILED
        payment.save()
        create_activity_log(request=request, user=user, action='PAYMENT_REJECTED', entity_type='PAYMENT',
                            entity_id=payment.id, description=f"Payment rejected for deal {deal.deal_number}",
                            metadata={'notes': notes})
        notify([payment.client], 'PAYMENT', 'Payment rejected',
               f"Your payment for deal {deal.deal_number} was rejected. {notes or ''}".strip(),
               related_entity_type='PAYMENT', related_entity_id=payment.id)
        return payment, None

    payment.status = Payment.COMPLETED
    payment.save()
    deposit, invoice = distribute_payment(payment, user)
    mark_paid(deal, user, request=request, payment=payment)
    create_activity_log(request=request, user=user, action='PAYMENT_VERIFIED', entity_type='PAYMENT',
                        entity_id=payment.id, description=f"Payment verified for deal {deal.deal_number}",
                        metadata={'transaction_id': deposit.id, 'invoice_number': invoice.invoice_number})
    return payment, invoice
