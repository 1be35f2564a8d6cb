import logging

from django.db import transaction

from stockship.core.models import User
from stockship.core.utils import notify
from .importers import carton_cbm
from .models import Offer, OfferItem

logger = logging.getLogger(__name__)

NOTIFICATION_TEXT = {
    'CREATED': ('New offer created', 'Offer "{title}" was created by {company}.'),
    'ITEMS_UPLOADED': ('Offer items uploaded', 'Items for offer "{title}" were uploaded and are waiting for validation.'),
    'APPROVED': ('Offer approved', 'Your offer "{title}" was approved and is now visible to clients.'),
    'REJECTED': ('Offer rejected', 'Your offer "{title}" was rejected. {notes}'),
    'UPDATED': ('Offer updated', 'Offer "{title}" was updated.'),
}


def build_item(offer, data, position):
    """Unsaved OfferItem from a validated item payload"""
    item = OfferItem(offer=offer, display_order=data.get('display_order') or position, **{
        k: v for k, v in data.items() if k != 'display_order'
    })
    if not item.total_cbm:
        item.total_cbm = carton_cbm(item.carton_length, item.carton_width, item.carton_height, item.package_quantity)
    if not item.amount:
        item.amount = item.unit_price * item.quantity
    return item


@transaction.atomic
def replace_offer_items(offer, items_data, file_name='', file_size=None):
    """
    Replace the offer's items with ``items_data`` and send it back for validation.
    Items already referenced by deal items are kept.
    """
    removable = offer.items.filter(deal_items__isnull=True)
    kept_count = offer.items.count() - removable.count()
    removable.delete()

    OfferItem.objects.bulk_create([
        build_item(offer, data, kept_count + index)
        for index, data in enumerate(items_data, start=1)
    ])

    offer.recalculate_totals(save=False)
    offer.status = Offer.PENDING_VALIDATION
    offer.upload_file_name = file_name[:255]
    offer.upload_file_size = file_size
    offer.save()
    logger.info(f"Offer {offer.id}: replaced items with {len(items_data)} uploaded rows ({kept_count} kept)")
    return offer


def notify_offer_action(offer, action, notes=''):
    """Tell the trader and the trader's employee about an offer event"""
    title, template = NOTIFICATION_TEXT[action]
    message = template.format(title=offer.title, company=offer.trader.company_name, notes=notes or '').strip()
    recipients = [offer.trader.user]
    if offer.trader.employee_id:
        recipients.append(offer.trader.employee.user)
    if action == 'CREATED':
        recipients.extend(User.objects.filter(role=User.MODERATOR, is_active=True))
    notify(recipients, 'OFFER', title, message, related_entity_type='OFFER', related_entity_id=offer.id)
