"""
Test suite for the reports module
Tests: role dashboards and deal analytics
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.deals.models import Deal
from stockship.finance.models import Payment, FinancialTransaction
from stockship.offers.models import Offer


class DashboardTests(TestCase):

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.admin = TestDataFactory.create_admin()
        TestDataFactory.create_trader(is_verified=False)
        TestDataFactory.create_offer(self.trader, status=Offer.PENDING_VALIDATION)

        self.paid = TestDataFactory.create_deal(self.offer, self.client_user, status=Deal.PAID,
                                                negotiated_amount=Decimal('1000.00'))
        self.payment = TestDataFactory.create_payment(self.paid, status=Payment.COMPLETED)
        self.payment.verified_at = timezone.now()
        self.payment.save()
        FinancialTransaction.objects.create(
            deal=self.paid, payment=self.payment, type=FinancialTransaction.DEPOSIT,
            status=FinancialTransaction.COMPLETED, amount=Decimal('1000.00'),
            platform_commission=Decimal('25.00'), employee_commission=Decimal('10.00'),
            trader_amount=Decimal('965.00'), employee=self.employee, trader=self.trader,
        )
        self.open_deal = TestDataFactory.create_deal(self.offer, self.client_user)
        self.client = AuthenticatedAPIClient()

    def test_admin_dashboard(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/reports/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['traders'], {'total': 2, 'verified': 1, 'unverified': 1})
        self.assertEqual(response.data['deals'][Deal.PAID], 1)
        self.assertEqual(response.data['deals'][Deal.NEGOTIATION], 1)
        self.assertEqual(response.data['deals'][Deal.CANCELLED], 0)
        self.assertEqual(response.data['offers'][Offer.PENDING_VALIDATION], 1)
        self.assertEqual(response.data['users']['ADMIN'], 1)
        self.assertEqual(response.data['finance']['total_payments'], Decimal('1000.00'))
        self.assertEqual(response.data['finance']['platform_commission'], Decimal('25.00'))
        self.assertEqual(response.data['finance']['pending_payments'], 0)
        self.assertEqual(len(response.data['recent_deals']), 2)

    def test_admin_dashboard_forbidden_for_moderator(self):
        self.client.authenticate_user(TestDataFactory.create_moderator())
        response = self.client.get('/api/v1/reports/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_moderator_dashboard(self):
        self.client.authenticate_user(TestDataFactory.create_moderator())
        response = self.client.get('/api/v1/reports/moderator/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['unverified_traders'], 1)
        self.assertEqual(response.data['stats']['offers_pending_validation'], 1)
        self.assertEqual(len(response.data['verification_queue']), 1)

    def test_trader_dashboard(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.get('/api/v1/reports/trader/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['offers'][Offer.ACTIVE], 1)
        self.assertEqual(response.data['earnings'], {'total': Decimal('965.00'), 'deal_count': 1})
        self.assertEqual(response.data['deals'][Deal.PAID], 1)

    def test_client_dashboard(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.get('/api/v1/reports/client/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payments']['total_paid'], Decimal('1000.00'))
        self.assertEqual(response.data['payments']['pending'], 0)
        self.assertEqual(len(response.data['recent_deals']), 2)

    def test_dashboards_are_role_bound(self):
        self.client.authenticate_user(self.client_user)
        self.assertEqual(self.client.get('/api/v1/reports/trader/dashboard/').status_code, status.HTTP_403_FORBIDDEN)
        self.client.authenticate_user(self.trader.user)
        self.assertEqual(self.client.get('/api/v1/reports/client/dashboard/').status_code, status.HTTP_403_FORBIDDEN)


class DealAnalyticsTests(TestCase):

    def setUp(self):
        _, _, offer, client_user = TestDataFactory.create_marketplace()
        TestDataFactory.create_deal(offer, client_user)
        TestDataFactory.create_deal(offer, client_user, status=Deal.CANCELLED)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_analytics(self):
        today = timezone.now().date()
        date_from = (today - timedelta(days=2)).isoformat()
        date_to = (today + timedelta(days=2)).isoformat()
        response = self.client.get(f'/api/v1/reports/deals/analytics/?date_from={date_from}&date_to={date_to}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['period'], {'from': date_from, 'to': date_to})
        self.assertEqual(response.data['summary']['total_deals'], 2)
        self.assertEqual(response.data['summary']['deals_by_status'][Deal.CANCELLED], 1)
        self.assertEqual(response.data['summary']['payment_count'], 0)
        self.assertEqual(len(response.data['daily_breakdown']), 5)
        self.assertEqual(sum(day['deals'] for day in response.data['daily_breakdown']), 2)

    def test_invalid_dates(self):
        response = self.client.get('/api/v1/reports/deals/analytics/?date_from=2024-13-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.get('/api/v1/reports/deals/analytics/?date_from=2024-05-10&date_to=2024-05-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
