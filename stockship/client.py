"""
Small HTTP client for the Stockship API.

    client = StockshipClient('http://127.0.0.1:8000/api/v1')
    client.login('admin', 'secret')
    deals = client.get('/deals/', params={'status': 'APPROVED'})
"""
import base64
import json
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, status_code: int, message: str, payload=None):
        self.status_code = status_code
        self.message = message
        self.payload = payload
        super().__init__(f"{status_code}: {message}")


class AuthenticationError(ApiError):
    """The API rejected the credentials or the access token (HTTP 401)"""


class StockshipClient:
    """Session wrapper that attaches the bearer token and turns error responses into exceptions"""

    def __init__(self, base_url: str, token: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: float = 30):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token = token
        self.refresh_token = None
        self.user = None

    def _url(self, path: str) -> str:
        if path.startswith('http://') or path.startswith('https://'):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _is_api_url(self, url: str) -> bool:
        return url == self.base_url or url.startswith(self.base_url + '/')

    def _headers(self, url: str) -> dict:
        headers = {'Accept': 'application/json'}
        # The token only goes to our own API
        if self.token and self._is_api_url(url):
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    @staticmethod
    def _error_message(response, payload) -> str:
        if isinstance(payload, dict):
            for key in ('error', 'detail', 'message'):
                if payload.get(key):
                    return str(payload[key])
            return json.dumps(payload)
        return response.text or response.reason or 'Request failed'

    def request(self, method: str, path: str, **kwargs):
        kwargs.setdefault('timeout', self.timeout)
        url = self._url(path)
        headers = self._headers(url)
        headers.update(kwargs.pop('headers', None) or {})
        response = self.session.request(method, url, headers=headers, **kwargs)

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        if response.status_code == 401 and self._is_api_url(url):
            logger.warning(f"{method} {path} rejected with 401, clearing token")
            self.logout()
            raise AuthenticationError(401, self._error_message(response, payload), payload)
        if response.status_code >= 400:
            raise ApiError(response.status_code, self._error_message(response, payload), payload)
        return payload

    def get(self, path: str, params=None, **kwargs):
        return self.request('GET', path, params=params, **kwargs)

    def post(self, path: str, data=None, **kwargs):
        return self.request('POST', path, json=data, **kwargs)

    def put(self, path: str, data=None, **kwargs):
        return self.request('PUT', path, json=data, **kwargs)

    def patch(self, path: str, data=None, **kwargs):
        return self.request('PATCH', path, json=data, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.request('DELETE', path, **kwargs)

    def login(self, username: str, password: str, role: Optional[str] = None) -> dict:
        """Obtain a token pair. ``username`` may also be an email address."""
        body = {'username': username, 'password': password}
        if role:
            body['role'] = role
        data = self.post('/auth/login/', body)
        self.token = data.get('access')
        self.refresh_token = data.get('refresh')
        self.user = data.get('user')
        return data

    def logout(self):
        self.token = None
        self.refresh_token = None
        self.user = None

    def role_hint(self) -> Optional[str]:
        """
        Role claim of the current access token.
        The payload is only decoded, not verified, so use it for UI decisions only.
        """
        if not self.token:
            return None
        parts = self.token.split('.')
        if len(parts) != 3:
            return None
        segment = parts[1] + '=' * (-len(parts[1]) % 4)
        try:
            claims = json.loads(base64.urlsafe_b64decode(segment.encode('ascii')))
        except (ValueError, UnicodeDecodeError):
            return None
        return claims.get('role') if isinstance(claims, dict) else None

    def has_role(self, *roles: str) -> bool:
        return self.role_hint() in roles

    def is_admin(self) -> bool:
        return self.has_role('ADMIN')
