"""
Deal lifecycle.

    NEGOTIATION -> APPROVED -> PAID -> SETTLED
    NEGOTIATION | APPROVED -> CANCELLED

Every status change goes through ``transition`` so that history, activity log and
notifications are always written together.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from stockship.core.barcodes import generate_numeric_barcode, safe_render_barcode
from stockship.core.utils import create_activity_log, notify, generate_yearly_number
from stockship.finance.models import Payment
from stockship.offers.models import Offer
from .models import Deal, DealItem, DealStatusHistory

logger = logging.getLogger(__name__)

SYSTEM = 'SYSTEM'
CBM_PLACES = Decimal('0.0001')

TRANSITIONS = {
    Deal.NEGOTIATION: {Deal.APPROVED, Deal.CANCELLED},
    Deal.APPROVED: {Deal.PAID, Deal.CANCELLED},
    Deal.PAID: {Deal.SETTLED},
    Deal.SETTLED: set(),
    Deal.CANCELLED: set(),
}

TIMESTAMP_FIELDS = {
    Deal.APPROVED: 'approved_at',
    Deal.PAID: 'paid_at',
    Deal.SETTLED: 'settled_at',
    Deal.CANCELLED: 'cancelled_at',
}

STATUS_MESSAGES = {
    Deal.APPROVED: ('Deal approved', 'Deal {number} was approved. Amount: {amount}.'),
    Deal.PAID: ('Deal paid', 'Payment for deal {number} was verified.'),
    Deal.SETTLED: ('Deal settled', 'Deal {number} was settled and completed.'),
    Deal.CANCELLED: ('Deal cancelled', 'Deal {number} was cancelled. {reason}'),
}


class DealError(Exception):
    """Base class for deal rule violations. The message is safe to show to the user."""


class InvalidDealTransition(DealError):
    def __init__(self, deal, target):
        self.deal = deal
        self.target = target
        super().__init__(f"Cannot change deal {deal.deal_number} from {deal.status} to {target}")


def can_transition(current, target):
    return target in TRANSITIONS.get(current, set())


def lock_status(deal):
    """Lock the deal row and load its current status into ``deal``"""
    deal.status = Deal.objects.select_for_update().values_list('status', flat=True).get(pk=deal.pk)
    return deal.status


def actor_type(user):
    if user is None or not user.is_authenticated:
        return SYSTEM
    return user.role


def record_status(deal, status, description, user=None):
    return DealStatusHistory.objects.create(
        deal=deal,
        status=status,
        description=description,
        changed_by=user,
        changed_by_type=actor_type(user),
    )


def notify_deal_parties(deal, title, message, notification_type='DEAL', exclude_user=None):
    """Notify client, trader and guarantor employee, skipping ``exclude_user``."""
    recipients = [deal.client, deal.trader.user]
    if deal.employee_id:
        recipients.append(deal.employee.user)
    if exclude_user is not None:
        recipients = [u for u in recipients if u.pk != exclude_user.pk]
    return notify(recipients, notification_type, title, message, related_entity_type='DEAL', related_entity_id=deal.id)


@transaction.atomic
def transition(deal, target, user=None, request=None, description='', metadata=None, notify_parties=True):
    """
    Move ``deal`` to ``target`` or raise InvalidDealTransition.
    The status is read again from the locked row, so a stale ``deal`` cannot repeat a transition.
    """
    locked_status = lock_status(deal)
    if not can_transition(locked_status, target):
        raise InvalidDealTransition(deal, target)

    previous = locked_status
    deal.status = target
    setattr(deal, TIMESTAMP_FIELDS[target], timezone.now())
    deal.save()

    record_status(deal, target, description, user=user)
    create_activity_log(
        request=request,
        user=user,
        action=f'DEAL_{target}',
        entity_type='DEAL',
        entity_id=deal.id,
        description=description or f"Deal {deal.deal_number} moved to {target}",
        metadata={'from': previous, 'to': target, **(metadata or {})},
    )
    if notify_parties:
        title, template = STATUS_MESSAGES[target]
        message = template.format(
            number=deal.deal_number,
            amount=deal.negotiated_amount,
            reason=deal.cancellation_reason or '',
        ).strip()
        notify_deal_parties(deal, title, message, exclude_user=user)
    logger.info(f"Deal {deal.deal_number}: {previous} -> {target} by {actor_type(user)}")
    return deal


@transaction.atomic
def open_negotiation(offer, client, notes=None, request=None):
    """Create a NEGOTIATION deal for ``client`` on an active offer."""
    if offer.status != Offer.ACTIVE:
        raise DealError('Offer is not active')
    trader = offer.trader
    if not trader.employee_id:
        raise DealError('This trader has no assigned employee yet')

    deal = Deal.objects.create(
        deal_number=generate_yearly_number(Deal, 'deal_number', 'DEAL'),
        offer=offer,
        trader=trader,
        client=client,
        employee=trader.employee,
        status=Deal.NEGOTIATION,
        notes=notes or None,
    )
    record_status(deal, Deal.NEGOTIATION, 'Deal created - negotiation started', user=client)
    create_activity_log(request=request, user=client, action='DEAL_CREATED', entity_type='DEAL', entity_id=deal.id,
                        description=f"Client requested negotiation for offer: {offer.title}",
                        metadata={'offer_id': offer.id, 'deal_number': deal.deal_number})
    notify(
        [trader.user, trader.employee.user],
        'DEAL',
        'New negotiation request',
        f'{client.display_name} requested a negotiation on "{offer.title}" ({deal.deal_number}).',
        related_entity_type='DEAL',
        related_entity_id=deal.id,
    )
    return deal


def recalculate_totals(deal, save=True):
    cartons = 0
    cbm = Decimal('0')
    for item in deal.items.all():
        cartons += item.cartons
        cbm += item.cbm
    deal.total_cartons = cartons
    deal.total_cbm = cbm
    if save:
        deal.save(update_fields=['total_cartons', 'total_cbm', 'updated_at'])
    return deal


@transaction.atomic
def replace_deal_items(deal, items_data):
    """
    Replace the items of a deal under negotiation.

    ``items_data`` entries hold ``offer_item_id`` and optional ``quantity``, ``cartons``,
    ``negotiated_price`` and ``notes``. Quantity and cartons default to the offer item's.
    """
    if lock_status(deal) != Deal.NEGOTIATION:
        raise DealError('Deal items can only be changed during negotiation')

    offer_items = {item.id: item for item in deal.offer.items.all()}
    new_items = []
    for data in items_data:
        offer_item = offer_items.get(data['offer_item_id'])
        if offer_item is None:
            raise DealError(f"Offer item {data['offer_item_id']} does not belong to this offer")
        quantity = data.get('quantity') or offer_item.quantity
        cartons = data.get('cartons') or offer_item.package_quantity
        new_items.append(DealItem(
            deal=deal,
            offer_item=offer_item,
            quantity=quantity,
            cartons=cartons,
            cbm=(offer_item.cbm_per_unit * quantity).quantize(CBM_PLACES),
            negotiated_price=data.get('negotiated_price'),
            notes=data.get('notes') or None,
        ))

    deal.items.all().delete()
    DealItem.objects.bulk_create(new_items)
    return recalculate_totals(deal)


@transaction.atomic
def approve_deal(deal, user, negotiated_amount, notes=None, request=None):
    """Trader accepts the negotiated terms. Issues invoice number and barcode."""
    if negotiated_amount is None or negotiated_amount <= 0:
        raise DealError('Negotiated amount must be greater than zero')
    if not can_transition(lock_status(deal), Deal.APPROVED):
        raise InvalidDealTransition(deal, Deal.APPROVED)

    recalculate_totals(deal, save=False)
    deal.negotiated_amount = negotiated_amount
    deal.invoice_number = generate_yearly_number(Deal, 'invoice_number', 'INV')
    deal.barcode = generate_numeric_barcode()
    deal.barcode_image = safe_render_barcode(deal.barcode, caption=deal.deal_number)
    if notes:
        deal.notes = notes
    return transition(
        deal, Deal.APPROVED, user=user, request=request,
        description='Deal approved by trader',
        metadata={'negotiated_amount': str(negotiated_amount), 'total_cartons': deal.total_cartons,
                  'total_cbm': str(deal.total_cbm)},
    )


def cancel_deal(deal, user, reason, request=None):
    if not can_transition(deal.status, Deal.CANCELLED):
        raise InvalidDealTransition(deal, Deal.CANCELLED)
    deal.cancellation_reason = reason
    return transition(deal, Deal.CANCELLED, user=user, request=request,
                      description=f"Deal cancelled by {actor_type(user).lower()}: {reason}",
                      metadata={'reason': reason})


def mark_paid(deal, user, request=None, payment=None):
    metadata = {'payment_id': payment.id, 'amount': str(payment.amount)} if payment else {}
    return transition(deal, Deal.PAID, user=user, request=request,
                      description='Payment verified', metadata=metadata)


def settle_deal(deal, user, request=None):
    if deal.status != Deal.PAID:
        raise DealError('Deal must be paid before settlement')
    if not deal.payments.filter(status=Payment.COMPLETED).exists():
        raise DealError('Deal has no completed payment')
    return transition(deal, Deal.SETTLED, user=user, request=request,
                      description='Deal settled and completed',
                      metadata={'amount': str(deal.negotiated_amount)})


def unpaid_deals(hours, now=None):
    """APPROVED deals approved more than ``hours`` ago with no completed payment"""
    cutoff = (now or timezone.now()) - timedelta(hours=hours)
    return (
        Deal.objects.select_related('client', 'trader__user', 'employee__user')
        .filter(status=Deal.APPROVED, approved_at__lt=cutoff)
        .exclude(payments__status=Payment.COMPLETED)
        .distinct()
    )


def cancel_unpaid_deal(deal, hours, send_notification=True, message=''):
    """Cancel one overdue deal on behalf of the system"""
    reason = f'Payment not received within {hours} hours of approval'
    deal.cancellation_reason = reason
    transition(deal, Deal.CANCELLED, user=None, description=f'Automatically cancelled: {reason}',
               metadata={'hours': hours, 'automatic': True}, notify_parties=False)
    if send_notification:
        notify([deal.client], 'DEAL', 'Deal cancelled', f"{deal.deal_number}: {message}",
               related_entity_type='DEAL', related_entity_id=deal.id)
    return deal
