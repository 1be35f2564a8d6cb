"""
Management command to cancel approved deals that were not paid in time.
Meant to run periodically (cron / systemd timer).
"""
import logging

from django.conf import settings
from django.core.management.base import BaseCommand

from stockship.deals.services import DealError, cancel_unpaid_deal, unpaid_deals

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Cancel APPROVED deals whose payment was not completed within the configured number of hours'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the deals that would be cancelled without changing them',
        )
        parser.add_argument(
            '--hours',
            type=int,
            help='Override UNPAID_DEAL_CANCEL_HOURS',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Run even when automatic cancellation is disabled in settings',
        )

    def handle(self, *args, **options):
        config = settings.UNPAID_DEAL_CANCELLATION
        if not config['ENABLED'] and not options['force']:
            self.stdout.write(self.style.WARNING('Unpaid deal cancellation is disabled. Use --force to run anyway.'))
            return

        hours = options['hours'] or config['HOURS']
        dry_run = options['dry_run']
        deals = list(unpaid_deals(hours))

        if not deals:
            self.stdout.write(self.style.SUCCESS(f'✓ No unpaid deals older than {hours} hours.'))
            return

        self.stdout.write(f'Found {len(deals)} unpaid deal(s) approved more than {hours} hours ago.\n')
        if dry_run:
            self.stdout.write(self.style.WARNING('DRY RUN MODE - No deals will be cancelled\n'))
            for deal in deals:
                self.stdout.write(f'  {deal.deal_number} approved at {deal.approved_at:%Y-%m-%d %H:%M}')
            return

        cancelled_count = 0
        error_count = 0
        for deal in deals:
            try:
                cancel_unpaid_deal(deal, hours, send_notification=config['SEND_NOTIFICATIONS'],
                                   message=config['MESSAGE'])
                cancelled_count += 1
                self.stdout.write(f'  ✓ Cancelled {deal.deal_number}')
            except DealError as e:
                error_count += 1
                logger.error(f"Could not cancel unpaid deal {deal.deal_number}: {str(e)}")
                self.stdout.write(self.style.ERROR(f'  ✗ {deal.deal_number}: {str(e)}'))

        self.stdout.write(self.style.SUCCESS(f'\nCancelled {cancelled_count} deal(s), {error_count} error(s).'))
