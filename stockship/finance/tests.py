"""
Test suite for the finance module
Tests: commission calculation, payments, verification, ledger balances and invoices
"""
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from stockship.core.models import Notification, PlatformSettings
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.deals.models import Deal
from stockship.deals.services import InvalidDealTransition, cancel_deal
from stockship.finance.models import Payment, FinancialTransaction, LedgerAccount, LedgerEntry, Invoice
from stockship.finance.services import (
    PaymentError, calculate_commissions, current_balance, post_ledger_entry, verify_payment
)


def _settings(method=PlatformSettings.PERCENTAGE, rate='2.5', cbm_rate=None):
    return PlatformSettings(commission_method=method, platform_commission_rate=Decimal(rate),
                            cbm_rate=Decimal(cbm_rate) if cbm_rate else None)


def _approved_deal(offer, client, amount='1000.00', number=None):
    year = timezone.now().year
    deal = TestDataFactory.create_deal(
        offer, client, status=Deal.APPROVED, negotiated_amount=Decimal(amount),
        approved_at=timezone.now(),
    )
    deal.invoice_number = number or f'INV-{year}-{deal.id:06d}'
    deal.save()
    return deal


class CommissionTests(TestCase):
    """Test the platform/employee/trader split"""

    def test_percentage(self):
        split = calculate_commissions(Decimal('1000'), Decimal('4'), _settings(), Decimal('1.0'))
        self.assertEqual(split.platform_commission, Decimal('25.00'))
        self.assertEqual(split.employee_commission, Decimal('10.00'))
        self.assertEqual(split.trader_amount, Decimal('965.00'))

    def test_cbm(self):
        split = calculate_commissions(Decimal('1000'), Decimal('4'), _settings(PlatformSettings.CBM, cbm_rate='10'),
                                      Decimal('1.0'))
        self.assertEqual(split.platform_commission, Decimal('40.00'))
        self.assertEqual(split.trader_amount, Decimal('950.00'))

    def test_both(self):
        split = calculate_commissions(Decimal('1000'), Decimal('4'), _settings(PlatformSettings.BOTH, cbm_rate='10'),
                                      Decimal('1.0'))
        self.assertEqual(split.platform_commission, Decimal('65.00'))
        self.assertEqual(split.trader_amount, Decimal('925.00'))

    def test_amounts_rounded_to_cents(self):
        split = calculate_commissions(Decimal('333.33'), Decimal('0'), _settings(rate='2.5'), Decimal('1.5'))
        self.assertEqual(split.platform_commission, Decimal('8.33'))
        self.assertEqual(split.employee_commission, Decimal('5.00'))
        self.assertEqual(split.trader_amount, Decimal('320.00'))
        self.assertEqual(split.platform_commission + split.employee_commission + split.trader_amount, split.amount)

    def test_commissions_larger_than_amount(self):
        with self.assertRaises(PaymentError):
            calculate_commissions(Decimal('100'), Decimal('0'), _settings(rate='100'), Decimal('1.0'))


class LedgerTests(TestCase):
    """Test running balances per account"""

    def setUp(self):
        employee, trader, offer, client = TestDataFactory.create_marketplace()
        deal = _approved_deal(offer, client)
        self.transaction = FinancialTransaction.objects.create(deal=deal, type=FinancialTransaction.DEPOSIT,
                                                               amount=Decimal('100.00'))

    def test_running_balance(self):
        self.assertEqual(current_balance(LedgerEntry.TRADER, 1), Decimal('0'))
        post_ledger_entry(self.transaction, LedgerEntry.CREDIT, LedgerEntry.TRADER, 1, Decimal('100.00'), 'in')
        entry = post_ledger_entry(self.transaction, LedgerEntry.DEBIT, LedgerEntry.TRADER, 1, Decimal('30.00'), 'out')
        self.assertEqual(entry.balance_before, Decimal('100.00'))
        self.assertEqual(entry.balance_after, Decimal('70.00'))
        self.assertEqual(current_balance(LedgerEntry.TRADER, 1), Decimal('70.00'))

    def test_accounts_are_independent(self):
        post_ledger_entry(self.transaction, LedgerEntry.CREDIT, LedgerEntry.TRADER, 1, Decimal('100.00'), 'in')
        post_ledger_entry(self.transaction, LedgerEntry.CREDIT, LedgerEntry.PLATFORM, None, Decimal('5.00'), 'fee')
        self.assertEqual(current_balance(LedgerEntry.TRADER, 2), Decimal('0'))
        self.assertEqual(current_balance(LedgerEntry.PLATFORM, None), Decimal('5.00'))


class PaymentFlowTests(TestCase):
    """Test client payments and their verification by the guarantor employee"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.deal = _approved_deal(self.offer, self.client_user)
        self.client = AuthenticatedAPIClient()

    def _pay(self, amount='1000.00'):
        self.client.authenticate_user(self.client_user)
        return self.client.post(f'/api/v1/deals/{self.deal.id}/payments/', {
            'amount': amount, 'method': 'BANK_TRANSFER', 'transaction_ref': 'TRX-1'
        }, format='json')

    def _verify(self, payment_id, verified=True, notes=None):
        self.client.authenticate_user(self.employee.user)
        data = {'verified': verified}
        if notes:
            data['notes'] = notes
        return self.client.put(f'/api/v1/payments/{payment_id}/verify/', data, format='json')

    def test_client_pays(self):
        response = self._pay()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Payment.PENDING)
        self.assertEqual(response.data['deal_number'], self.deal.deal_number)
        self.assertTrue(Notification.objects.filter(user=self.employee.user, type='PAYMENT').exists())

    def test_amount_must_match(self):
        response = self._pay('999.99')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_single_pending_payment(self):
        self._pay()
        response = self._pay()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deal_must_be_approved(self):
        self.deal.status = Deal.NEGOTIATION
        self.deal.save()
        response = self._pay()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_client_cannot_pay(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.post(f'/api/v1/deals/{self.deal.id}/payments/', {'amount': '1000.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_verified_payment_distributes_funds(self):
        payment_id = self._pay().data['id']
        response = self._verify(payment_id)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment']['status'], Payment.COMPLETED)
        self.assertEqual(response.data['invoice']['invoice_number'], self.deal.invoice_number)
        self.assertEqual(Decimal(response.data['invoice']['platform_commission']), Decimal('25.00'))

        self.deal.refresh_from_db()
        self.assertEqual(self.deal.status, Deal.PAID)
        self.assertIsNotNone(self.deal.paid_at)

        deposit = FinancialTransaction.objects.get(deal=self.deal)
        self.assertEqual(deposit.type, FinancialTransaction.DEPOSIT)
        self.assertEqual(deposit.employee_commission, Decimal('10.00'))
        self.assertEqual(deposit.trader_amount, Decimal('965.00'))
        self.assertEqual(deposit.ledger_entries.count(), 4)

        self.assertEqual(current_balance(LedgerEntry.CLIENT, self.client_user.id), Decimal('-1000.00'))
        self.assertEqual(current_balance(LedgerEntry.PLATFORM, None), Decimal('25.00'))
        self.assertEqual(current_balance(LedgerEntry.EMPLOYEE, self.employee.id), Decimal('10.00'))
        self.assertEqual(current_balance(LedgerEntry.TRADER, self.trader.id), Decimal('965.00'))

        self.assertTrue(Notification.objects.filter(user=self.client_user, title='Deal paid').exists())
        self.assertTrue(Notification.objects.filter(user=self.trader.user, title='Deal paid').exists())

    def test_balances_carry_over_between_deals(self):
        self._verify(self._pay().data['id'])
        self.deal = _approved_deal(self.offer, self.client_user, amount='200.00')
        self._verify(self._pay('200.00').data['id'])

        self.assertEqual(current_balance(LedgerEntry.PLATFORM, None), Decimal('30.00'))
        self.assertEqual(current_balance(LedgerEntry.TRADER, self.trader.id), Decimal('965.00') + Decimal('193.00'))
        self.assertEqual(Invoice.objects.count(), 2)

    def test_rejected_payment(self):
        payment_id = self._pay().data['id']
        response = self._verify(payment_id, verified=False, notes='Transfer not received')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payment']['status'], Payment.FAILED)
        self.assertIsNone(response.data['invoice'])
        self.deal.refresh_from_db()
        self.assertEqual(self.deal.status, Deal.APPROVED)
        self.assertFalse(LedgerEntry.objects.exists())
        self.assertTrue(Notification.objects.filter(user=self.client_user, title='Payment rejected').exists())

        self.assertEqual(self._pay().status_code, status.HTTP_201_CREATED)

    def test_payment_processed_once(self):
        payment_id = self._pay().data['id']
        self._verify(payment_id)
        response = self._verify(payment_id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_guarantor_verifies(self):
        payment_id = self._pay().data['id']
        self.client.authenticate_user(TestDataFactory.create_employee().user)
        response = self.client.put(f'/api/v1/payments/{payment_id}/verify/', {'verified': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancelled_deal_payment_not_verified(self):
        payment_id = self._pay().data['id']
        Deal.objects.filter(pk=self.deal.pk).update(status=Deal.CANCELLED)
        response = self._verify(payment_id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Payment.objects.get(pk=payment_id).status, Payment.PENDING)


class FinanceListingTests(TestCase):
    """Test payment, transaction, ledger, balance and invoice listings"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.deal = _approved_deal(self.offer, self.client_user)
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

        self.client.authenticate_user(self.client_user)
        self.payment_id = self.client.post(f'/api/v1/deals/{self.deal.id}/payments/', {'amount': '1000.00'},
                                           format='json').data['id']
        self.client.authenticate_user(self.employee.user)
        response = self.client.put(f'/api/v1/payments/{self.payment_id}/verify/', {'verified': True}, format='json')
        self.invoice_id = response.data['invoice']['id']

    def test_payment_list_scoping(self):
        for user in (self.client_user, self.trader.user, self.employee.user, self.admin):
            self.client.authenticate_user(user)
            self.assertEqual(self.client.get('/api/v1/payments/').data['count'], 1)
        self.client.authenticate_user(TestDataFactory.create_client())
        self.assertEqual(self.client.get('/api/v1/payments/').data['count'], 0)
        self.client.authenticate_user(TestDataFactory.create_moderator())
        self.assertEqual(self.client.get('/api/v1/payments/').data['count'], 0)

    def test_payment_detail_access(self):
        self.client.authenticate_user(self.trader.user)
        self.assertEqual(self.client.get(f'/api/v1/payments/{self.payment_id}/').status_code, status.HTTP_200_OK)
        self.client.authenticate_user(TestDataFactory.create_client())
        self.assertEqual(self.client.get(f'/api/v1/payments/{self.payment_id}/').status_code,
                         status.HTTP_403_FORBIDDEN)

    def test_transactions(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.get('/api/v1/financial/transactions/?type=deposit')
        self.assertEqual(response.data['count'], 1)
        self.client.authenticate_user(TestDataFactory.create_employee().user)
        self.assertEqual(self.client.get('/api/v1/financial/transactions/').data['count'], 0)
        self.client.authenticate_user(self.client_user)
        self.assertEqual(self.client.get('/api/v1/financial/transactions/').status_code, status.HTTP_403_FORBIDDEN)

    def test_ledger(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/financial/ledger/')
        self.assertEqual(response.data['count'], 4)
        response = self.client.get('/api/v1/financial/ledger/?account_type=platform')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['entry_type'], LedgerEntry.CREDIT)
        self.client.authenticate_user(self.employee.user)
        self.assertEqual(self.client.get('/api/v1/financial/ledger/').status_code, status.HTTP_403_FORBIDDEN)

    def test_balances(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/financial/balances/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 4)
        balances = {row['account_type']: Decimal(str(row['balance'])) for row in response.data['results']}
        self.assertEqual(balances, {
            'CLIENT': Decimal('-1000.00'),
            'EMPLOYEE': Decimal('10.00'),
            'PLATFORM': Decimal('25.00'),
            'TRADER': Decimal('965.00'),
        })
        response = self.client.get('/api/v1/financial/balances/?account_type=trader')
        self.assertEqual(response.data['count'], 1)

    def test_invoices(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.get(f'/api/v1/deals/{self.deal.id}/invoices/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['status'], Invoice.PAID)
        response = self.client.get(f'/api/v1/invoices/{self.invoice_id}/')
        self.assertEqual(Decimal(response.data['total']), Decimal('1000.00'))
        self.client.authenticate_user(TestDataFactory.create_client())
        self.assertEqual(self.client.get(f'/api/v1/invoices/{self.invoice_id}/').status_code,
                         status.HTTP_403_FORBIDDEN)

    def test_deal_detail_lists_payments_and_invoices(self):
        self.client.authenticate_user(self.client_user)
        response = self.client.get(f'/api/v1/deals/{self.deal.id}/')
        self.assertEqual(response.data['status'], Deal.PAID)
        self.assertEqual(len(response.data['payments']), 1)
        self.assertEqual(len(response.data['invoices']), 1)


class StaleVerificationTests(TestCase):
    """Test that decisions taken from outdated copies of a payment or deal are refused"""

    def setUp(self):
        self.employee, self.trader, self.offer, self.client_user = TestDataFactory.create_marketplace()
        self.deal = _approved_deal(self.offer, self.client_user)
        self.payment = TestDataFactory.create_payment(self.deal)

    def test_payment_verified_once_from_two_copies(self):
        first = Payment.objects.get(pk=self.payment.pk)
        second = Payment.objects.get(pk=self.payment.pk)

        verify_payment(first, self.employee.user, True)
        with self.assertRaises(PaymentError):
            verify_payment(second, self.employee.user, True)

        self.assertEqual(FinancialTransaction.objects.filter(deal=self.deal).count(), 1)
        self.assertEqual(LedgerEntry.objects.count(), 4)
        self.assertEqual(Invoice.objects.filter(deal=self.deal).count(), 1)
        self.assertEqual(self.deal.status_history.filter(status=Deal.PAID).count(), 1)
        self.assertEqual(current_balance(LedgerEntry.TRADER, self.trader.id), Decimal('965.00'))

    def test_stale_reject_after_verify(self):
        stale = Payment.objects.get(pk=self.payment.pk)
        verify_payment(self.payment, self.employee.user, True)
        with self.assertRaises(PaymentError):
            verify_payment(stale, self.employee.user, False, notes='duplicate')
        self.assertEqual(Payment.objects.get(pk=self.payment.pk).status, Payment.COMPLETED)

    def test_stale_deal_cannot_be_cancelled_after_payment(self):
        stale = Deal.objects.get(pk=self.deal.pk)
        verify_payment(self.payment, self.employee.user, True)
        with self.assertRaises(InvalidDealTransition):
            cancel_deal(stale, self.client_user, 'Changed my mind')
        self.assertEqual(Deal.objects.get(pk=self.deal.pk).status, Deal.PAID)

    def test_account_rows_track_entries(self):
        verify_payment(self.payment, self.employee.user, True)
        for account in LedgerAccount.objects.all():
            last = LedgerEntry.objects.filter(account_type=account.account_type,
                                              account_id=account.account_id).order_by('-id').first()
            self.assertEqual(account.balance, last.balance_after)
        self.assertEqual(LedgerAccount.objects.count(), 4)


class FinanceFilterValidationTests(TestCase):
    """Test that malformed list filters are answered with 400"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_non_numeric_deal(self):
        for url in ('/api/v1/payments/?deal=abc', '/api/v1/financial/transactions/?deal=abc'):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, url)
            self.assertIn('deal', response.data)

    def test_unknown_choices(self):
        for url, field in (('/api/v1/payments/?status=bogus', 'status'),
                           ('/api/v1/payments/?method=cheque', 'method'),
                           ('/api/v1/financial/transactions/?type=bogus', 'type'),
                           ('/api/v1/financial/ledger/?account_type=bank', 'account_type'),
                           ('/api/v1/financial/ledger/?date_from=2024-13-01', 'date_from')):
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, url)
            self.assertIn(field, response.data)

    def test_unknown_balance_account_type(self):
        response = self.client.get('/api/v1/financial/balances/?account_type=bank')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_lower_case_choices_accepted(self):
        self.assertEqual(self.client.get('/api/v1/payments/?status=pending').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/v1/financial/transactions/?type=deposit&deal=1').status_code,
                         status.HTTP_200_OK)
