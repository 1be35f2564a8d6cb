"""
Test suite for the core module
Tests: authentication, users, activity logs, notifications, platform settings, helpers
"""
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from stockship.core.barcodes import generate_numeric_barcode, render_barcode_data_url
from stockship.core.cache import make_cache_key, get_or_set
from stockship.core.models import User, ActivityLog, Notification, PlatformSettings
from stockship.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockship.core.utils import create_activity_log, notify, generate_sequential_code, build_unique_username
from stockship.parties.models import Employee

STRONG_PASSWORD = 'Str0ngPass!234'


class AuthenticationTests(TestCase):
    """Test login, registration and the current-user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_login_with_username(self):
        user = TestDataFactory.create_user(username='alice')
        response = self.client.post('/api/v1/auth/login/', {'username': 'alice', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['id'], user.id)

    def test_login_with_email(self):
        TestDataFactory.create_user(username='bob', email='bob@example.com')
        response = self.client.post('/api/v1/auth/login/', {'username': 'bob@example.com', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'bob')

    def test_login_picks_account_by_role_when_email_is_shared(self):
        TestDataFactory.create_user(username='shared', email='shared@example.com', role=User.CLIENT)
        TestDataFactory.create_user(username='shared-trader', email='shared@example.com', role=User.TRADER)
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'shared@example.com', 'password': 'testpass123', 'role': 'TRADER'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['role'], User.TRADER)

    def test_login_wrong_password(self):
        TestDataFactory.create_user(username='carol')
        response = self.client.post('/api/v1/auth/login/', {'username': 'carol', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_disabled_account(self):
        TestDataFactory.create_user(username='dave', is_active=False)
        response = self.client.post('/api/v1/auth/login/', {'username': 'dave', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_register_client(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'newclient',
            'email': 'newclient@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
            'first_name': 'New',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], User.CLIENT)
        self.assertIn('access', response.data)
        self.assertTrue(ActivityLog.objects.filter(action='CLIENT_REGISTERED').exists())

    def test_register_password_mismatch(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'mismatch',
            'email': 'mismatch@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD + 'x',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_disabled(self):
        PlatformSettings.objects.create(allow_client_registration=False)
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'blocked',
            'email': 'blocked@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_me_for_employee(self):
        employee = TestDataFactory.create_employee()
        self.client.authenticate_user(employee.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_employee'])
        self.assertTrue(response.data['can_access_dashboard'])
        self.assertEqual(response.data['employee']['id'], employee.id)
        self.assertIsNone(response.data['trader'])

    def test_me_for_client(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_client'])
        self.assertFalse(response.data['can_access_dashboard'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserManagementTests(TestCase):
    """Test admin user CRUD"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_users_filtered_by_role(self):
        TestDataFactory.create_moderator()
        TestDataFactory.create_client()
        response = self.client.get('/api/v1/users/?role=moderator')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['role'], User.MODERATOR)

    def test_create_moderator(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'mod1',
            'email': 'mod1@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
            'role': User.MODERATOR,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(username='mod1').role, User.MODERATOR)

    def test_duplicate_email_rejected(self):
        TestDataFactory.create_user(email='taken@example.com')
        response = self.client.post('/api/v1/users/', {
            'username': 'other',
            'email': 'taken@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_user(self):
        user = TestDataFactory.create_client()
        response = self.client.patch(f'/api/v1/users/{user.id}/', {'city': 'Jeddah'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.city, 'Jeddah')

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        user = TestDataFactory.create_client()
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user.id).exists())

    def test_non_admin_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_moderator())
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ActivityLogTests(TestCase):
    """Test activity log listing and export"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        create_activity_log(user=self.admin, action='OFFER_APPROVED', entity_type='OFFER', entity_id=7,
                            description='Approved offer seven')
        create_activity_log(user=self.admin, action='DEAL_CANCELLED', entity_type='DEAL', entity_id=3,
                            description='Cancelled deal three')

    def test_list_filtered_by_entity_type(self):
        response = self.client.get('/api/v1/activity-logs/?entity_type=deal')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['action'], 'DEAL_CANCELLED')

    def test_entity_history(self):
        response = self.client.get('/api/v1/activity-logs/entity/OFFER/7/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

    def test_export_csv(self):
        response = self.client.get('/api/v1/activity-logs/export/?format=csv')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        body = response.content.decode()
        self.assertIn('OFFER_APPROVED', body)
        self.assertIn('DEAL_CANCELLED', body)

    def test_export_json(self):
        response = self.client.get('/api/v1/activity-logs/export/?format=json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment', response['Content-Disposition'])

    def test_export_unknown_format(self):
        response = self.client.get('/api/v1/activity-logs/export/?format=xml')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_log_without_action_is_skipped(self):
        self.assertIsNone(create_activity_log(user=self.admin, action=None))

    def test_system_log_has_no_user(self):
        log = create_activity_log(action='DEAL_CANCELLED', entity_type='DEAL', entity_id=1)
        self.assertIsNone(log.user)
        self.assertEqual(log.user_type, 'SYSTEM')


class NotificationTests(TestCase):
    """Test notifications of the signed-in user"""

    def setUp(self):
        self.user = TestDataFactory.create_client()
        self.other = TestDataFactory.create_client()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        notify([self.user, None], 'SYSTEM', 'Welcome', 'Hello there')
        notify([self.user], 'DEAL', 'Deal update')
        notify([self.other], 'SYSTEM', 'Not yours')

    def test_list_only_own(self):
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['unread_count'], 2)

    def test_mark_read(self):
        notification = Notification.objects.filter(user=self.user).first()
        response = self.client.put(f'/api/v1/notifications/{notification.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])
        response = self.client.get('/api/v1/notifications/unread-count/')
        self.assertEqual(response.data['unread_count'], 1)

    def test_mark_all_read(self):
        response = self.client.put('/api/v1/notifications/read-all/')
        self.assertEqual(response.data['updated'], 2)
        self.assertFalse(Notification.objects.filter(user=self.user, is_read=False).exists())
        self.assertTrue(Notification.objects.filter(user=self.other, is_read=False).exists())

    def test_cannot_touch_other_users_notification(self):
        foreign = Notification.objects.get(user=self.other)
        response = self.client.delete(f'/api/v1/notifications/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_all(self):
        response = self.client.delete('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 0)


class PlatformSettingsTests(TestCase):
    """Test platform settings management"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_defaults_without_saved_row(self):
        response = self.client.get('/api/v1/platform-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['platform_commission_rate']), Decimal('2.5'))
        self.assertEqual(response.data['commission_method'], PlatformSettings.PERCENTAGE)

    def test_cbm_method_requires_rate(self):
        response = self.client.put('/api/v1/platform-settings/', {'commission_method': 'CBM'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('cbm_rate', response.data)

    def test_update_settings(self):
        response = self.client.put('/api/v1/platform-settings/', {
            'commission_method': 'BOTH', 'cbm_rate': '12.50', 'currency': 'usd'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        saved = PlatformSettings.load()
        self.assertEqual(saved.commission_method, PlatformSettings.BOTH)
        self.assertEqual(saved.currency, 'USD')

    def test_rate_out_of_range(self):
        response = self.client.put('/api/v1/platform-settings/', {'platform_commission_rate': '150'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_admin_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_client())
        response = self.client.get('/api/v1/platform-settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class HelperTests(TestCase):
    """Test numbering, caching and barcode helpers"""

    def test_sequential_code(self):
        TestDataFactory.create_employee(code='EMP-0007')
        TestDataFactory.create_employee(code='EMP-0002')
        self.assertEqual(generate_sequential_code(Employee, 'employee_code', 'EMP'), 'EMP-0008')

    def test_unique_username(self):
        TestDataFactory.create_user(username='seller@example.com')
        self.assertEqual(build_unique_username('seller@example.com'), 'seller@example.com-2')
        self.assertEqual(build_unique_username('fresh@example.com'), 'fresh@example.com')

    def test_cache_key_is_stable(self):
        self.assertEqual(make_cache_key('offers_public', page=1, search='x'),
                         make_cache_key('offers_public', search='x', page=1))
        self.assertNotEqual(make_cache_key('offers_public', page=1), make_cache_key('offers_public', page=2))
        self.assertTrue(make_cache_key('offers_public').startswith('offers_public:'))

    def test_get_or_set_calls_producer_once(self):
        cache.clear()
        calls = []

        def producer():
            calls.append(1)
            return {'value': 42}

        key = make_cache_key('helper_test')
        self.assertEqual(get_or_set(key, producer, 60), {'value': 42})
        self.assertEqual(get_or_set(key, producer, 60), {'value': 42})
        self.assertEqual(len(calls), 1)

    def test_numeric_barcode(self):
        value = generate_numeric_barcode()
        self.assertTrue(value.isdigit())
        self.assertGreaterEqual(len(value), 16)

    def test_barcode_image(self):
        data_url = render_barcode_data_url('1718000000000042', caption='DEAL-2026-000001')
        self.assertTrue(data_url.startswith('data:image/png;base64,'))
