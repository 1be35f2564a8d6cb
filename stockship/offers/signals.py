"""Drop cached public offer listings whenever offers or their items change"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from stockship.core.cache import invalidate_cache_pattern
from .models import Offer, OfferItem

PUBLIC_OFFER_CACHE_PREFIXES = ('offers_public', 'offers_recommended')


def invalidate_public_offer_caches():
    for prefix in PUBLIC_OFFER_CACHE_PREFIXES:
        invalidate_cache_pattern(prefix)


@receiver(post_save, sender=Offer)
@receiver(post_delete, sender=Offer)
def offer_changed(sender, instance, **kwargs):
    invalidate_public_offer_caches()


@receiver(post_save, sender=OfferItem)
@receiver(post_delete, sender=OfferItem)
def offer_item_changed(sender, instance, **kwargs):
    invalidate_public_offer_caches()
