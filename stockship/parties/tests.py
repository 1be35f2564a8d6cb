"""
Test suite for the parties module
Tests: employees, traders, trader registration, assignment and public profiles
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from stockship.core.models import User, Notification
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.deals.models import Deal
from stockship.offers.models import Offer
from stockship.parties.models import Employee, Trader

STRONG_PASSWORD = 'Str0ngPass!234'


class EmployeeManagementTests(TestCase):
    """Test employee creation and access rules"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_employee(self):
        response = self.client.post('/api/v1/employees/', {
            'email': 'guarantor@example.com',
            'password': STRONG_PASSWORD,
            'first_name': 'Guarantor',
            'commission_rate': '1.50',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['employee_code'], 'EMP-0001')
        self.assertEqual(Decimal(response.data['commission_rate']), Decimal('1.50'))
        employee = Employee.objects.get(pk=response.data['id'])
        self.assertEqual(employee.user.role, User.EMPLOYEE)
        self.assertEqual(employee.created_by, self.admin)

    def test_employee_codes_are_sequential(self):
        for index in range(2):
            self.client.post('/api/v1/employees/', {
                'email': f'emp{index}@example.com',
                'password': STRONG_PASSWORD,
                'first_name': f'Emp{index}',
            }, format='json')
        codes = sorted(Employee.objects.values_list('employee_code', flat=True))
        self.assertEqual(codes, ['EMP-0001', 'EMP-0002'])

    def test_duplicate_email_rejected(self):
        TestDataFactory.create_user(email='taken@example.com')
        response = self.client.post('/api/v1/employees/', {
            'email': 'taken@example.com', 'password': STRONG_PASSWORD, 'first_name': 'Dup'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_employees_with_counts(self):
        employee = TestDataFactory.create_employee()
        TestDataFactory.create_trader(employee=employee)
        response = self.client.get('/api/v1/employees/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['trader_count'], 1)

    def test_update_commission_rate(self):
        employee = TestDataFactory.create_employee()
        response = self.client.patch(f'/api/v1/employees/{employee.id}/', {'commission_rate': '3.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        employee.refresh_from_db()
        self.assertEqual(employee.commission_rate, Decimal('3.00'))

    def test_employee_reads_only_own_profile(self):
        employee = TestDataFactory.create_employee()
        other = TestDataFactory.create_employee()
        self.client.authenticate_user(employee.user)
        self.assertEqual(self.client.get(f'/api/v1/employees/{employee.id}/').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(f'/api/v1/employees/{other.id}/').status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_cannot_update_profile(self):
        employee = TestDataFactory.create_employee()
        self.client.authenticate_user(employee.user)
        response = self.client.patch(f'/api/v1/employees/{employee.id}/', {'commission_rate': '9.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_employee_dashboard(self):
        employee, trader, offer, client = TestDataFactory.create_marketplace()
        TestDataFactory.create_deal(offer, client, status=Deal.APPROVED, negotiated_amount=Decimal('500.00'))
        self.client.authenticate_user(employee.user)
        response = self.client.get(f'/api/v1/employees/{employee.id}/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['trader_count'], 1)
        self.assertEqual(response.data['stats']['active_deals_count'], 1)
        self.assertEqual(response.data['stats']['total_commission'], '0')

    def test_employee_deals_invalid_status(self):
        employee = TestDataFactory.create_employee()
        response = self.client.get(f'/api/v1/employees/{employee.id}/deals/?status=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class TraderCreationTests(TestCase):
    """Test traders created by employees and registered by clients"""

    def setUp(self):
        self.employee = TestDataFactory.create_employee()
        self.client = AuthenticatedAPIClient()

    def test_employee_creates_trader(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.post(f'/api/v1/employees/{self.employee.id}/traders/', {
            'email': 'seller@example.com',
            'password': STRONG_PASSWORD,
            'name': 'Seller',
            'company_name': 'Seller Trading Co',
            'country': 'China',
            'city': 'Yiwu',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['trader_code'], 'TRD-0001')
        self.assertFalse(response.data['is_verified'])
        self.assertEqual(response.data['employee']['id'], self.employee.id)
        self.assertTrue(response.data['barcode'].isdigit())

    def test_trader_links_existing_client_with_same_email(self):
        client_user = TestDataFactory.create_client(email='buyer@example.com', phone='0500000000')
        self.client.authenticate_user(self.employee.user)
        response = self.client.post(f'/api/v1/employees/{self.employee.id}/traders/', {
            'email': 'buyer@example.com',
            'password': STRONG_PASSWORD,
            'name': 'Buyer Trader',
            'company_name': 'Buyer Co',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        trader = Trader.objects.get(pk=response.data['id'])
        self.assertEqual(trader.linked_client, client_user)
        self.assertEqual(trader.user.phone, '0500000000')

    def test_employee_cannot_create_for_other_employee(self):
        other = TestDataFactory.create_employee()
        self.client.authenticate_user(self.employee.user)
        response = self.client.post(f'/api/v1/employees/{other.id}/traders/', {
            'email': 'x@example.com', 'password': STRONG_PASSWORD, 'name': 'X', 'company_name': 'X Co'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_client_registers_as_trader(self):
        admin = TestDataFactory.create_admin()
        client_user = TestDataFactory.create_client(username='buyer', email='buyer@example.com')
        self.client.authenticate_user(client_user)
        response = self.client.post('/api/v1/traders/register/', {
            'bank_account_name': 'Buyer Imports',
            'bank_account_number': 'SA0000000001',
            'bank_name': 'National Bank',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['company_name'], 'Buyer Imports')
        self.assertIsNone(response.data['employee'])
        self.assertTrue(Notification.objects.filter(user=admin, type='TRADER').exists())

        trader = Trader.objects.get(pk=response.data['id'])
        self.assertEqual(trader.user.email, 'buyer@example.com')
        self.assertTrue(trader.user.check_password('testpass123'))

        response = self.client.post('/api/v1/traders/register/', {
            'bank_account_name': 'Again', 'bank_account_number': '1', 'bank_name': 'Bank'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_check_linked(self):
        client_user = TestDataFactory.create_client()
        self.client.authenticate_user(client_user)
        response = self.client.get('/api/v1/traders/check-linked/')
        self.assertFalse(response.data['has_linked_trader'])
        self.assertTrue(response.data['can_request'])

        Trader.objects.create(
            user=TestDataFactory.create_user(role=User.TRADER),
            linked_client=client_user,
            company_name='Linked Co',
            trader_code='TRD-LINK',
        )
        response = self.client.get('/api/v1/traders/check-linked/')
        self.assertTrue(response.data['has_linked_trader'])
        self.assertEqual(response.data['trader']['company_name'], 'Linked Co')


class TraderManagementTests(TestCase):
    """Test trader listing, updates, verification, assignment and deletion"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.moderator = TestDataFactory.create_moderator()
        self.employee = TestDataFactory.create_employee()
        self.trader = TestDataFactory.create_trader(employee=self.employee, is_verified=False,
                                                    company_name='Alpha Trading')
        self.client = AuthenticatedAPIClient()

    def test_list_filters(self):
        TestDataFactory.create_trader(company_name='Beta Trading')
        self.client.authenticate_user(self.moderator)
        response = self.client.get('/api/v1/traders/?status=unverified')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/traders/?employee=none')
        self.assertEqual(response.data['results'][0]['company_name'], 'Beta Trading')
        response = self.client.get('/api/v1/traders/?search=alpha')
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/traders/?employee={self.employee.id}')
        self.assertEqual(response.data['count'], 1)

    def test_malformed_list_filters(self):
        self.client.authenticate_user(self.moderator)
        for query, field in (('employee=abc', 'employee'), ('status=deleted', 'status')):
            response = self.client.get(f'/api/v1/traders/?{query}')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, query)
            self.assertIn(field, response.data)

    def test_trader_offers_status_filter(self):
        TestDataFactory.create_offer(self.trader)
        self.client.authenticate_user(self.moderator)
        response = self.client.get(f'/api/v1/traders/{self.trader.id}/offers/?status=active')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(f'/api/v1/traders/{self.trader.id}/offers/?status=bogus')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_client_cannot_list(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.get('/api/v1/traders/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_moderator_verifies_trader(self):
        self.client.authenticate_user(self.moderator)
        response = self.client.patch(f'/api/v1/traders/{self.trader.id}/', {
            'is_verified': True, 'company_name': 'Ignored Name'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.trader.refresh_from_db()
        self.assertTrue(self.trader.is_verified)
        self.assertIsNotNone(self.trader.verified_at)
        self.assertEqual(self.trader.company_name, 'Alpha Trading')
        self.assertTrue(Notification.objects.filter(user=self.trader.user, type='TRADER').exists())

    def test_employee_updates_own_trader(self):
        self.client.authenticate_user(self.employee.user)
        response = self.client.patch(f'/api/v1/traders/{self.trader.id}/', {
            'city': 'Dammam', 'bank_name': 'Not allowed'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.trader.refresh_from_db()
        self.assertEqual(self.trader.city, 'Dammam')
        self.assertEqual(self.trader.bank_name, '')

    def test_other_employee_cannot_update(self):
        self.client.authenticate_user(TestDataFactory.create_employee().user)
        response = self.client.patch(f'/api/v1/traders/{self.trader.id}/', {'city': 'Dammam'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_trader_reads_own_profile(self):
        self.client.authenticate_user(self.trader.user)
        response = self.client.get(f'/api/v1/traders/{self.trader.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        other = TestDataFactory.create_trader()
        response = self.client.get(f'/api/v1/traders/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_assign_trader(self):
        new_employee = TestDataFactory.create_employee()
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/v1/traders/{self.trader.id}/assign/', {'employee_id': new_employee.id},
                                   format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['employee']['id'], new_employee.id)
        self.assertTrue(Notification.objects.filter(user=new_employee.user).exists())

    def test_assign_requires_employee(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(f'/api/v1/traders/{self.trader.id}/assign/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.put(f'/api/v1/traders/{self.trader.id}/assign/', {'employee_id': 99999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.put(f'/api/v1/traders/{self.trader.id}/assign/', {'employee_id': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_blocked_by_offers(self):
        TestDataFactory.create_offer(self.trader)
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/traders/{self.trader.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_trader_removes_account(self):
        user_id = self.trader.user_id
        self.client.authenticate_user(self.admin)
        response = self.client.delete(f'/api/v1/traders/{self.trader.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(User.objects.filter(pk=user_id).exists())

    def test_public_profile_and_offers(self):
        TestDataFactory.create_offer(self.trader, status=Offer.ACTIVE)
        TestDataFactory.create_offer(self.trader, status=Offer.DRAFT)
        response = self.client.get(f'/api/v1/traders/{self.trader.id}/public/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['active_offer_count'], 1)
        self.assertNotIn('bank_account_number', response.data)
        response = self.client.get(f'/api/v1/traders/{self.trader.id}/public/offers/')
        self.assertEqual(response.data['count'], 1)
