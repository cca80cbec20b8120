import pytest
import requests

from invoicepro.errors import AuthenticationError
from invoicepro.fixtures import ADMIN_ID, DEMO_ACCOUNTS, DEMO_ID
from invoicepro.identity import (SIGNED_IN, SIGNED_OUT, FixtureIdentityProvider, Identity,
                                 RemoteIdentityProvider)


class FakeResponse:

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.content = b'' if body is None else b'{}'

    def json(self):
        if self._body is None:
            raise ValueError('No JSON object could be decoded')
        return self._body


class FakeHttp:
    """Records calls and replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fixture_provider():
    return FixtureIdentityProvider(DEMO_ACCOUNTS)


def test_fixture_admin_requires_password(fixture_provider):
    session = fixture_provider.sign_in('admin@invoicepro.com', 'admin123')
    assert session.user == Identity(id=ADMIN_ID, email='admin@invoicepro.com')
    assert session.access_token

    with pytest.raises(AuthenticationError, match='Invalid login credentials'):
        fixture_provider.sign_in('admin@invoicepro.com', 'wrong')


def test_fixture_demo_accepts_any_password(fixture_provider):
    assert fixture_provider.sign_in('DEMO@invoicepro.com', 'whatever').user.id == DEMO_ID


def test_fixture_unknown_email(fixture_provider):
    with pytest.raises(AuthenticationError):
        fixture_provider.sign_in('nobody@example.com', 'x')


def test_fixture_token_lifecycle(fixture_provider):
    session = fixture_provider.sign_in('demo@invoicepro.com', '')

    assert fixture_provider.get_user(session.access_token).id == DEMO_ID

    fixture_provider.sign_out(session.access_token)
    with pytest.raises(AuthenticationError, match='Session expired'):
        fixture_provider.get_user(session.access_token)


def test_fixture_sign_up(fixture_provider):
    identity = fixture_provider.sign_up('new@example.com', 'secret1')

    assert identity.email == 'new@example.com'
    assert len(fixture_provider.accounts) == len(DEMO_ACCOUNTS) + 1
    assert fixture_provider.sign_in('new@example.com', 'secret1').user.id == identity.id
    with pytest.raises(AuthenticationError, match='already registered'):
        fixture_provider.sign_up('NEW@example.com', 'other-password')


def test_session_change_events(fixture_provider):
    events = []
    unsubscribe = fixture_provider.on_session_change(lambda event, session: events.append(event))

    session = fixture_provider.sign_in('demo@invoicepro.com', '')
    fixture_provider.sign_out(session.access_token)
    unsubscribe()
    fixture_provider.sign_in('demo@invoicepro.com', '')

    assert events == [SIGNED_IN, SIGNED_OUT]


def test_remote_sign_in():
    http = FakeHttp(FakeResponse(200, {
        'access_token': 'tok-123',
        'user': {'id': 'abc', 'email': 'jane@example.com'},
    }))
    provider = RemoteIdentityProvider('https://auth.example.test/', 'anon-key', timeout=5, http=http)
    events = []
    provider.on_session_change(lambda event, session: events.append((event, session.access_token)))

    session = provider.sign_in('jane@example.com', 'pw')

    assert session.access_token == 'tok-123'
    assert session.user == Identity(id='abc', email='jane@example.com')
    assert events == [(SIGNED_IN, 'tok-123')]

    method, url, kwargs = http.calls[0]
    assert (method, url) == ('POST', 'https://auth.example.test/auth/v1/token')
    assert kwargs['params'] == {'grant_type': 'password'}
    assert kwargs['json'] == {'email': 'jane@example.com', 'password': 'pw'}
    assert kwargs['headers']['apikey'] == 'anon-key'
    assert 'Authorization' not in kwargs['headers']
    assert kwargs['timeout'] == 5


def test_remote_error_message_is_surfaced():
    http = FakeHttp(FakeResponse(400, {'error': 'invalid_grant', 'error_description': 'Invalid login credentials'}))
    provider = RemoteIdentityProvider('https://auth.example.test', 'key', http=http)

    with pytest.raises(AuthenticationError, match='Invalid login credentials'):
        provider.sign_in('jane@example.com', 'bad')


def test_remote_error_without_body():
    provider = RemoteIdentityProvider('https://auth.example.test', 'key', http=FakeHttp(FakeResponse(502)))

    with pytest.raises(AuthenticationError, match='Authentication failed'):
        provider.get_user('tok')


def test_remote_unreachable():
    http = FakeHttp(requests.ConnectionError('connection refused'))
    provider = RemoteIdentityProvider('https://auth.example.test', 'key', http=http)

    with pytest.raises(AuthenticationError, match='unavailable'):
        provider.sign_in('jane@example.com', 'pw')


def test_remote_sign_up_handles_both_shapes():
    http = FakeHttp(
        FakeResponse(200, {'user': {'id': 'nested', 'email': 'a@example.com'}}),
        FakeResponse(200, {'id': 'flat', 'email': 'b@example.com'}),
    )
    provider = RemoteIdentityProvider('https://auth.example.test', 'key', http=http)

    assert provider.sign_up('a@example.com', 'secret1').id == 'nested'
    assert provider.sign_up('b@example.com', 'secret1').id == 'flat'


def test_remote_get_user_and_sign_out_send_token():
    http = FakeHttp(FakeResponse(200, {'id': 'abc', 'email': 'jane@example.com'}), FakeResponse(204))
    provider = RemoteIdentityProvider('https://auth.example.test', 'key', http=http)
    events = []
    provider.on_session_change(lambda event, session: events.append((event, session)))

    assert provider.get_user('tok-123').id == 'abc'
    provider.sign_out('tok-123')

    assert [call[0:2] for call in http.calls] == [
        ('GET', 'https://auth.example.test/auth/v1/user'),
        ('POST', 'https://auth.example.test/auth/v1/logout'),
    ]
    assert all(call[2]['headers']['Authorization'] == 'Bearer tok-123' for call in http.calls)
    assert events == [(SIGNED_OUT, None)]


def test_remote_uses_requests_session_by_default(monkeypatch):
    calls = []

    def fake_request(self, method, url, **kwargs):
        calls.append((method, url))
        return FakeResponse(200, {'id': 'abc', 'email': 'jane@example.com'})

    monkeypatch.setattr(requests.Session, 'request', fake_request)
    provider = RemoteIdentityProvider('https://auth.example.test', 'key')

    assert provider.get_user('tok').email == 'jane@example.com'
    assert calls == [('GET', 'https://auth.example.test/auth/v1/user')]
