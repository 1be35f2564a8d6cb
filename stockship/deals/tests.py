"""
Test suite for the deals module
Tests: negotiation requests, deal items, lifecycle transitions, negotiation messages,
automatic cancellation of unpaid deals
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from stockship.core.models import ActivityLog, Notification
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.core.utils import generate_yearly_number
from stockship.deals.models import Deal, DealNegotiation
from stockship.deals.services import (
    InvalidDealTransition, can_transition, cancel_deal, transition, unpaid_deals
)
from stockship.finance.models import Payment
from stockship.offers.models import Offer


class DealServiceTests(TestCase):
    """Test the state machine and numbering helpers"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()

    def test_allowed_transitions(self):
        self.assertTrue(can_transition(Deal.NEGOTIATION, Deal.APPROVED))
        self.assertTrue(can_transition(Deal.APPROVED, Deal.CANCELLED))
        self.assertTrue(can_transition(Deal.PAID, Deal.SETTLED))
        self.assertFalse(can_transition(Deal.NEGOTIATION, Deal.PAID))
        self.assertFalse(can_transition(Deal.PAID, Deal.CANCELLED))
        self.assertFalse(can_transition(Deal.SETTLED, Deal.CANCELLED))
        self.assertFalse(can_transition(Deal.CANCELLED, Deal.NEGOTIATION))

    def test_invalid_transition_raises(self):
        deal = TestDataFactory.create_deal(self.offer, self.client_user, status=Deal.SETTLED)
        with self.assertRaises(InvalidDealTransition):
            cancel_deal(deal, self.client_user, 'Too late')
        deal.refresh_from_db()
        self.assertEqual(deal.status, Deal.SETTLED)

    def test_transition_writes_history_log_and_notifications(self):
        deal = TestDataFactory.create_deal(self.offer, self.client_user, negotiated_amount=Decimal('100.00'))
        transition(deal, Deal.APPROVED, user=self.trader.user, description='Approved in test')

        deal.refresh_from_db()
        self.assertIsNotNone(deal.approved_at)
        history = deal.status_history.get()
        self.assertEqual(history.status, Deal.APPROVED)
        self.assertEqual(history.changed_by_type, 'TRADER')
        self.assertTrue(ActivityLog.objects.filter(action='DEAL_APPROVED', entity_id=str(deal.id)).exists())
        notified = set(Notification.objects.filter(type='DEAL').values_list('user_id', flat=True))
        self.assertEqual(notified, {self.client_user.id, self.employee.user_id})

    def test_yearly_number(self):
        year = timezone.now().year
        self.assertEqual(generate_yearly_number(Deal, 'deal_number', 'DEAL'), f'DEAL-{year}-000001')
        TestDataFactory.create_deal(self.offer, self.client_user, number=f'DEAL-{year}-000041')
        TestDataFactory.create_deal(self.offer, self.client_user, number=f'DEAL-{year - 1}-000099')
        self.assertEqual(generate_yearly_number(Deal, 'deal_number', 'DEAL'), f'DEAL-{year}-000042')


class NegotiationRequestTests(TestCase):
    """Test clients opening negotiations"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.client_user)

    def test_request_negotiation(self):
        response = self.client.post(f'/api/v1/offers/{self.offer.id}/negotiate/', {'notes': 'Interested in pots'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Deal.NEGOTIATION)
        self.assertEqual(response.data['deal_number'], f'DEAL-{timezone.now().year}-000001')
        self.assertEqual(response.data['employee']['id'], self.employee.id)
        self.assertEqual(response.data['notes'], 'Interested in pots')
        self.assertEqual(len(response.data['status_history']), 1)
        self.assertIn('platform_settings', response.data)
        self.assertTrue(Notification.objects.filter(user=self.trader.user, title='New negotiation request').exists())
        self.assertTrue(Notification.objects.filter(user=self.employee.user, title='New negotiation request').exists())

    def test_inactive_offer(self):
        draft = TestDataFactory.create_offer(self.trader, status=Offer.DRAFT)
        response = self.client.post(f'/api/v1/offers/{draft.id}/negotiate/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_trader_without_employee(self):
        lonely = TestDataFactory.create_trader()
        offer = TestDataFactory.create_offer(lonely)
        response = self.client.post(f'/api/v1/offers/{offer.id}/negotiate/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_clients(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(f'/api/v1/offers/{self.offer.id}/negotiate/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class DealAccessTests(TestCase):
    """Test deal listing and detail visibility"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.deal = TestDataFactory.create_deal(self.offer, self.client_user)
        other_offer = TestDataFactory.create_offer(TestDataFactory.create_trader(employee=TestDataFactory.create_employee()))
        self.other_deal = TestDataFactory.create_deal(other_offer, TestDataFactory.create_client(),
                                                      status=Deal.APPROVED)
        self.client = AuthenticatedAPIClient()

    def test_lists_are_scoped_by_role(self):
        for user in (self.client_user, self.trader.user, self.employee.user):
            self.client.authenticate_user(user)
            response = self.client.get('/api/v1/deals/')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual([d['id'] for d in response.data['results']], [self.deal.id])

        self.client.authenticate_user(TestDataFactory.create_admin())
        self.assertEqual(self.client.get('/api/v1/deals/').data['count'], 2)
        self.assertEqual(self.client.get('/api/v1/deals/?status=approved').data['count'], 1)

    def test_invalid_status_filter(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.get('/api/v1/deals/?status=shipped')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_moderator_sees_no_deals(self):
        self.client.authenticate_user(TestDataFactory.create_moderator())
        self.assertEqual(self.client.get('/api/v1/deals/').data['count'], 0)

    def test_detail_for_parties_only(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.get(f'/api/v1/deals/{self.deal.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['offer']['id'], self.offer.id)
        self.assertEqual(response.data['platform_settings']['commission_method'], 'PERCENTAGE')

        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.get(f'/api/v1/deals/{self.deal.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class DealLifecycleTests(TestCase):
    """Test items, approval, cancellation and settlement through the API"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.deal = TestDataFactory.create_deal(self.offer, self.client_user)
        self.first_item, self.second_item = list(self.offer.items.all())
        self.client = AuthenticatedAPIClient()

    def test_client_replaces_items(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/items/', {'items': [
            {'offer_item_id': self.first_item.id, 'quantity': 20, 'negotiated_price': '4.50'},
            {'offer_item_id': self.second_item.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        items = response.data['items']
        self.assertEqual(len(items), 2)
        self.assertEqual(items[0]['quantity'], 20)
        self.assertEqual(items[0]['cartons'], 10)
        self.assertEqual(Decimal(items[0]['cbm']), Decimal('0.4000'))
        self.assertEqual(items[1]['quantity'], 100)
        self.assertEqual(Decimal(items[1]['cbm']), Decimal('2.0000'))
        self.assertEqual(response.data['total_cartons'], 20)
        self.assertEqual(Decimal(response.data['total_cbm']), Decimal('2.4000'))

        response = self.client.put(f'/api/v1/deals/{self.deal.id}/items/', {'items': [
            {'offer_item_id': self.second_item.id, 'quantity': 50},
        ]}, format='json')
        self.assertEqual(len(response.data['items']), 1)
        self.assertEqual(Decimal(response.data['total_cbm']), Decimal('1.0000'))

    def test_items_must_belong_to_offer(self):
        foreign = TestDataFactory.create_offer_item(TestDataFactory.create_offer(self.trader))
        self.client.authenticate_user(self.trader.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/items/', {'items': [
            {'offer_item_id': foreign.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_items_require_at_least_one(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/items/', {'items': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_items_locked_after_approval(self):
        self.deal.status = Deal.APPROVED
        self.deal.save()
        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/items/', {'items': [
            {'offer_item_id': self.first_item.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_cannot_edit_items(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/items/', {'items': [
            {'offer_item_id': self.first_item.id},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_trader_approves(self):
        TestDataFactory.create_deal_item(self.deal, self.first_item, quantity=10, cartons=1, cbm=Decimal('0.2000'))
        self.client.authenticate_user(self.trader.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/approve/', {'negotiated_amount': '1000.00'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Deal.APPROVED)
        self.assertEqual(Decimal(response.data['negotiated_amount']), Decimal('1000.00'))
        self.assertEqual(response.data['invoice_number'], f'INV-{timezone.now().year}-000001')
        self.assertTrue(response.data['barcode'].isdigit())
        self.assertTrue(response.data['barcode_image'].startswith('data:image/png;base64,'))
        self.assertEqual(response.data['total_cartons'], 1)
        self.assertIsNotNone(response.data['approved_at'])
        self.assertTrue(Notification.objects.filter(user=self.client_user, title='Deal approved').exists())
        self.assertFalse(Notification.objects.filter(user=self.trader.user, title='Deal approved').exists())

    def test_approve_needs_positive_amount(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/approve/', {'negotiated_amount': '0'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approve_twice(self):
        self.deal.status = Deal.APPROVED
        self.deal.save()
        self.client.authenticate_user(self.trader.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/approve/', {'negotiated_amount': '10.00'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_trader_cannot_approve(self):
        self.client.authenticate_user(TestDataFactory.create_trader().user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/approve/', {'negotiated_amount': '10.00'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_client_cancels(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/cancel/', {'reason': 'Found a better price'},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Deal.CANCELLED)
        self.assertEqual(response.data['cancellation_reason'], 'Found a better price')
        self.assertEqual(response.data['status_history'][-1]['changed_by_type'], 'CLIENT')

    def test_cancel_requires_reason(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/cancel/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_cancel_paid_deal(self):
        self.deal.status = Deal.PAID
        self.deal.save()
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/cancel/', {'reason': 'Oops'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stranger_cannot_cancel(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/cancel/', {'reason': 'Mine now'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_settles_paid_deal(self):
        self.deal.status = Deal.PAID
        self.deal.negotiated_amount = Decimal('500.00')
        self.deal.save()
        TestDataFactory.create_payment(self.deal, status=Payment.COMPLETED)
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/settle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Deal.SETTLED)
        self.assertIsNotNone(response.data['settled_at'])

    def test_settle_without_completed_payment(self):
        self.deal.status = Deal.PAID
        self.deal.negotiated_amount = Decimal('500.00')
        self.deal.save()
        TestDataFactory.create_payment(self.deal, status=Payment.PENDING)
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/settle/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_client_cannot_settle(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/settle/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class NegotiationMessageTests(TestCase):
    """Test the negotiation thread of a deal"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.deal = TestDataFactory.create_deal(self.offer, self.client_user)
        self.url = f'/api/v1/deals/{self.deal.id}/negotiations/'
        self.client = AuthenticatedAPIClient()

    def test_client_proposes_price(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.post(self.url, {'proposed_price': '900.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message_type'], DealNegotiation.PRICE)
        self.assertEqual(response.data['sender_type'], 'CLIENT')
        self.assertTrue(Notification.objects.filter(user=self.trader.user, type='NEGOTIATION').exists())

    def test_message_type_inferred(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.post(self.url, {'proposed_quantity': 40}, format='json')
        self.assertEqual(response.data['message_type'], DealNegotiation.QUANTITY)
        response = self.client.post(self.url, {'message': 'Can ship next week'}, format='json')
        self.assertEqual(response.data['message_type'], DealNegotiation.TEXT)
        self.assertTrue(Notification.objects.filter(user=self.client_user, type='NEGOTIATION').exists())

    def test_empty_message_rejected(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.post(self.url, {'message': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_no_messages_on_closed_deal(self):
        self.deal.status = Deal.CANCELLED
        self.deal.save()
        self.client.authenticate_user(self.client_user)
        response = self.client.post(self.url, {'message': 'Hello?'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_employee_reads_but_cannot_post(self):
        self.client.authenticate_user(self.employee.user)
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_200_OK)
        response = self.client.post(self.url, {'message': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_listing_marks_counterpart_messages_read(self):
        DealNegotiation.objects.create(deal=self.deal, sender=self.client_user, sender_type='CLIENT', message='First')
        DealNegotiation.objects.create(deal=self.deal, sender=self.trader.user, sender_type='TRADER', message='Second')

        self.client.authenticate_user(self.trader.user)
        response = self.client.get(self.url)
        self.assertEqual([m['message'] for m in response.data['results']], ['First', 'Second'])
        self.assertTrue(DealNegotiation.objects.get(message='First').is_read)
        self.assertFalse(DealNegotiation.objects.get(message='Second').is_read)

        self.client.authenticate_user(self.client_user)
        response = self.client.put(f'/api/v1/deals/{self.deal.id}/negotiations/read/')
        self.assertEqual(response.data['updated'], 1)
        self.assertTrue(DealNegotiation.objects.get(message='Second').is_read)

    def test_employee_listing_keeps_unread(self):
        DealNegotiation.objects.create(deal=self.deal, sender=self.client_user, sender_type='CLIENT', message='First')
        self.client.authenticate_user(self.employee.user)
        self.client.get(self.url)
        self.assertFalse(DealNegotiation.objects.get(message='First').is_read)


class CancelUnpaidDealsCommandTests(TestCase):
    """Test the cancel_unpaid_deals management command"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        now = timezone.now()
        self.overdue = TestDataFactory.create_deal(self.offer, self.client_user, status=Deal.APPROVED,
                                                   negotiated_amount=Decimal('100.00'),
                                                   approved_at=now - timedelta(hours=100))
        self.recent = TestDataFactory.create_deal(self.offer, self.client_user, status=Deal.APPROVED,
                                                  negotiated_amount=Decimal('100.00'),
                                                  approved_at=now - timedelta(hours=2))
        self.paid = TestDataFactory.create_deal(self.offer, self.client_user, status=Deal.APPROVED,
                                                negotiated_amount=Decimal('100.00'),
                                                approved_at=now - timedelta(hours=100))
        TestDataFactory.create_payment(self.paid, status=Payment.COMPLETED)

    def test_unpaid_deals_query(self):
        self.assertEqual(list(unpaid_deals(72)), [self.overdue])

    def test_cancels_overdue_deals(self):
        out = StringIO()
        call_command('cancel_unpaid_deals', stdout=out)

        self.overdue.refresh_from_db()
        self.recent.refresh_from_db()
        self.paid.refresh_from_db()
        self.assertEqual(self.overdue.status, Deal.CANCELLED)
        self.assertEqual(self.recent.status, Deal.APPROVED)
        self.assertEqual(self.paid.status, Deal.APPROVED)
        self.assertIn('Cancelled 1 deal(s), 0 error(s).', out.getvalue())

        history = self.overdue.status_history.get()
        self.assertEqual(history.changed_by_type, 'SYSTEM')
        self.assertIsNone(history.changed_by)
        self.assertTrue(Notification.objects.filter(user=self.client_user, title='Deal cancelled').exists())
        self.assertFalse(Notification.objects.filter(user=self.trader.user, title='Deal cancelled').exists())

    def test_dry_run_changes_nothing(self):
        out = StringIO()
        call_command('cancel_unpaid_deals', '--dry-run', stdout=out)
        self.overdue.refresh_from_db()
        self.assertEqual(self.overdue.status, Deal.APPROVED)
        self.assertIn(self.overdue.deal_number, out.getvalue())

    def test_hours_override(self):
        call_command('cancel_unpaid_deals', '--hours', '1', stdout=StringIO())
        self.recent.refresh_from_db()
        self.assertEqual(self.recent.status, Deal.CANCELLED)

    @override_settings(UNPAID_DEAL_CANCELLATION={
        'ENABLED': False, 'HOURS': 72, 'SEND_NOTIFICATIONS': False, 'MESSAGE': 'Cancelled'
    })
    def test_disabled(self):
        out = StringIO()
        call_command('cancel_unpaid_deals', stdout=out)
        self.overdue.refresh_from_db()
        self.assertEqual(self.overdue.status, Deal.APPROVED)
        self.assertIn('disabled', out.getvalue())

        call_command('cancel_unpaid_deals', '--force', stdout=StringIO())
        self.overdue.refresh_from_db()
        self.assertEqual(self.overdue.status, Deal.CANCELLED)
        self.assertFalse(Notification.objects.filter(user=self.client_user, title='Deal cancelled').exists())

    def test_nothing_to_do(self):
        self.overdue.status = Deal.CANCELLED
        self.overdue.save()
        out = StringIO()
        call_command('cancel_unpaid_deals', stdout=out)
        self.assertIn('No unpaid deals older than 72 hours', out.getvalue())
