"""
Identity providers

An identity provider authenticates credentials and hands out session tokens.
It knows nothing about profiles, clients or invoices; those live in the data
store keyed by the identity id.

Two implementations:

* ``RemoteIdentityProvider`` talks to a hosted, GoTrue-compatible auth API.
* ``FixtureIdentityProvider`` keeps a handful of identities in memory for demos.

Which one is used is decided by configuration (see ``app.build_backend``).
"""
import logging
import secrets
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import requests

from .errors import AuthenticationError
from .models import new_id

logger = logging.getLogger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'


@dataclass
class Identity:
    id: str
    email: str

    def to_dict(self):
        return {'id': self.id, 'email': self.email}


@dataclass
class AuthSession:
    access_token: str
    user: Identity


class IdentityProvider:

    def __init__(self):
        self._listeners: List[Callable] = []

    def on_session_change(self, callback):
        """Register ``callback(event, session)``; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event, session):
        for callback in list(self._listeners):
            callback(event, session)

    def sign_in(self, email, password) -> AuthSession:
        raise NotImplementedError

    def sign_up(self, email, password) -> Identity:
        raise NotImplementedError

    def sign_out(self, token):
        raise NotImplementedError

    def get_user(self, token) -> Identity:
        raise NotImplementedError


class RemoteIdentityProvider(IdentityProvider):

    def __init__(self, base_url, api_key, timeout=10, http=None):
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, token=None):
        headers = {'apikey': self.api_key, 'Content-Type': 'application/json'}
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    def _request(self, method, path, token=None, **kwargs):
        url = f'{self.base_url}/auth/v1/{path}'
        try:
            resp = self.http.request(method, url, headers=self._headers(token), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("Identity service unreachable: %s", e)
            raise AuthenticationError('Identity service unavailable') from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = body.get('error_description') or body.get('msg') or body.get('message') or 'Authentication failed'
            raise AuthenticationError(message)

        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    @staticmethod
    def _identity(data):
        return Identity(id=data['id'], email=data.get('email', ''))

    def sign_in(self, email, password):
        data = self._request('POST', 'token', params={'grant_type': 'password'},
                             json={'email': email, 'password': password})
        session = AuthSession(access_token=data['access_token'], user=self._identity(data['user']))
        self._emit(SIGNED_IN, session)
        return session

    def sign_up(self, email, password):
        data = self._request('POST', 'signup', json={'email': email, 'password': password})
        # Depending on email confirmation settings the user is nested or top-level
        return self._identity(data.get('user') or data)

    def sign_out(self, token):
        self._request('POST', 'logout', token=token)
        self._emit(SIGNED_OUT, None)

    def get_user(self, token):
        return self._identity(self._request('GET', 'user', token=token))


@dataclass
class FixtureAccount:
    id: str
    email: str
    # None accepts any password
    password: Optional[str]
    profile: Dict = field(default_factory=dict)


class FixtureIdentityProvider(IdentityProvider):
    """In-memory identities. Tokens live only as long as the process."""

    def __init__(self, accounts=()):
        super().__init__()
        self._accounts = {account.email.lower(): account for account in accounts}
        self._tokens: Dict[str, Identity] = {}

    @property
    def accounts(self):
        return list(self._accounts.values())

    def sign_in(self, email, password):
        account = self._accounts.get((email or '').lower())
        if account is None or (account.password is not None and account.password != password):
            raise AuthenticationError('Invalid login credentials')

        token = secrets.token_urlsafe(32)
        identity = Identity(id=account.id, email=account.email)
        self._tokens[token] = identity
        session = AuthSession(access_token=token, user=identity)
        self._emit(SIGNED_IN, session)
        return session

    def sign_up(self, email, password):
        if email.lower() in self._accounts:
            raise AuthenticationError('User already registered')
        account = FixtureAccount(id=new_id(), email=email, password=password)
        self._accounts[email.lower()] = account
        return Identity(id=account.id, email=account.email)

    def sign_out(self, token):
        self._tokens.pop(token, None)
        self._emit(SIGNED_OUT, None)

    def get_user(self, token):
        try:
            return self._tokens[token]
        except KeyError:
            raise AuthenticationError('Session expired')
