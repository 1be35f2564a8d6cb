"""
Test suite for the API client
Tests run against a mocked requests session
"""
import base64
import json
from unittest import mock

from django.test import SimpleTestCase

from stockship.client import ApiError, AuthenticationError, StockshipClient


def fake_response(status_code=200, payload=None, text=''):
    response = mock.Mock()
    response.status_code = status_code
    response.reason = 'Error' if status_code >= 400 else 'OK'
    if payload is None:
        response.content = text.encode('utf-8')
        response.text = text
        response.json.side_effect = ValueError('No JSON')
    else:
        response.content = json.dumps(payload).encode('utf-8')
        response.text = json.dumps(payload)
        response.json.return_value = payload
    return response


def fake_token(claims):
    def segment(data):
        return base64.urlsafe_b64encode(json.dumps(data).encode('utf-8')).rstrip(b'=').decode('ascii')
    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment(claims)}.signature"


class StockshipClientTests(SimpleTestCase):

    def setUp(self):
        self.session = mock.Mock()
        self.client_api = StockshipClient('http://api.test/api/v1/', session=self.session, timeout=5)

    def test_login_stores_tokens(self):
        self.session.request.return_value = fake_response(200, {
            'access': 'access-token', 'refresh': 'refresh-token', 'user': {'id': 1, 'role': 'ADMIN'}
        })
        data = self.client_api.login('admin@test.com', 'secret', role='ADMIN')

        self.assertEqual(data['user']['id'], 1)
        self.assertEqual(self.client_api.token, 'access-token')
        self.assertEqual(self.client_api.refresh_token, 'refresh-token')
        self.session.request.assert_called_once_with(
            'POST', 'http://api.test/api/v1/auth/login/',
            headers={'Accept': 'application/json'},
            json={'username': 'admin@test.com', 'password': 'secret', 'role': 'ADMIN'},
            timeout=5,
        )

    def test_bearer_token_attached(self):
        self.client_api.token = 'abc'
        self.session.request.return_value = fake_response(200, {'results': []})
        self.assertEqual(self.client_api.get('deals/', params={'status': 'APPROVED'}), {'results': []})

        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer abc')
        self.assertEqual(kwargs['params'], {'status': 'APPROVED'})
        self.assertEqual(self.session.request.call_args[0][1], 'http://api.test/api/v1/deals/')

    def test_absolute_url_kept(self):
        self.client_api.token = 'abc'
        self.session.request.return_value = fake_response(204, text='')
        self.assertIsNone(self.client_api.delete('https://other.test/x/'))
        args, kwargs = self.session.request.call_args
        self.assertEqual(args[1], 'https://other.test/x/')
        self.assertNotIn('Authorization', kwargs['headers'])

    def test_token_sent_to_absolute_api_url(self):
        self.client_api.token = 'abc'
        self.session.request.return_value = fake_response(200, {})
        self.client_api.get('http://api.test/api/v1/offers/')
        self.assertEqual(self.session.request.call_args[1]['headers']['Authorization'], 'Bearer abc')

    def test_token_not_sent_to_lookalike_host(self):
        self.client_api.token = 'abc'
        self.session.request.return_value = fake_response(200, {})
        self.client_api.get('http://api.test/api/v1.evil.test/offers/')
        self.assertNotIn('Authorization', self.session.request.call_args[1]['headers'])

    def test_foreign_401_keeps_token(self):
        self.client_api.token = 'abc'
        self.session.request.return_value = fake_response(401, {'detail': 'Denied'})
        with self.assertRaises(ApiError) as ctx:
            self.client_api.get('https://other.test/x/')
        self.assertNotIsInstance(ctx.exception, AuthenticationError)
        self.assertEqual(self.client_api.token, 'abc')

    def test_error_message_from_payload(self):
        self.session.request.return_value = fake_response(400, {'error': 'Deal is locked'})
        with self.assertRaises(ApiError) as ctx:
            self.client_api.put('/deals/1/items/', {'items': []})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.message, 'Deal is locked')
        self.assertEqual(ctx.exception.payload, {'error': 'Deal is locked'})

    def test_field_errors_serialized(self):
        self.session.request.return_value = fake_response(400, {'amount': ['This field is required.']})
        with self.assertRaises(ApiError) as ctx:
            self.client_api.post('/deals/1/payments/', {})
        self.assertIn('amount', ctx.exception.message)

    def test_non_json_error(self):
        self.session.request.return_value = fake_response(502, text='Bad gateway')
        with self.assertRaises(ApiError) as ctx:
            self.client_api.get('/offers/')
        self.assertEqual(ctx.exception.message, 'Bad gateway')
        self.assertIsNone(ctx.exception.payload)

    def test_unauthorized_clears_token(self):
        self.client_api.token = 'expired'
        self.client_api.user = {'id': 3}
        self.session.request.return_value = fake_response(401, {'detail': 'Token is invalid or expired'})
        with self.assertRaises(AuthenticationError) as ctx:
            self.client_api.get('/auth/me/')
        self.assertEqual(ctx.exception.message, 'Token is invalid or expired')
        self.assertIsNone(self.client_api.token)
        self.assertIsNone(self.client_api.user)

    def test_role_hint(self):
        self.assertIsNone(self.client_api.role_hint())
        self.client_api.token = fake_token({'user_id': 1, 'role': 'EMPLOYEE'})
        self.assertEqual(self.client_api.role_hint(), 'EMPLOYEE')
        self.assertTrue(self.client_api.has_role('EMPLOYEE', 'ADMIN'))
        self.assertFalse(self.client_api.is_admin())

    def test_role_hint_malformed_token(self):
        self.client_api.token = 'not-a-jwt'
        self.assertIsNone(self.client_api.role_hint())
        self.client_api.token = 'a.@@@.c'
        self.assertIsNone(self.client_api.role_hint())
