"""
Tests for the access guard and request authenticator.
"""

from unittest.mock import MagicMock

from oriento_shared.interfaces import INavigator
from oriento_shared.models import AccessDecision, OutgoingRequest
from oriento_client.auth.authenticator import RequestAuthenticator
from oriento_client.auth.guard import AccessGuard
from oriento_client.auth.session_store import SessionStore


class TestAccessGuard:
    """Entry checks for protected areas."""

    def setup_method(self):
        self.store = SessionStore()
        self.navigator = MagicMock(spec=INavigator)
        self.guard = AccessGuard(self.store, self.navigator)

    def test_denies_and_redirects_without_session(self):
        assert self.guard.can_enter() is False
        self.navigator.navigate.assert_called_once_with('/login')

    def test_allows_with_session(self):
        self.store.set_session('C1', {'id': 1})

        assert self.guard.can_enter() is True
        self.navigator.navigate.assert_not_called()

    def test_check_has_no_side_effects(self):
        assert self.guard.check() == AccessDecision(allowed=False, redirect_to='/login')
        self.navigator.navigate.assert_not_called()

    def test_follows_session_changes(self):
        self.store.set_session('C1')
        assert self.guard.can_enter() is True

        self.store.clear()
        assert self.guard.can_enter() is False

    def test_custom_login_route(self):
        guard = AccessGuard(self.store, self.navigator, login_route='/entrar')

        guard.can_enter()

        self.navigator.navigate.assert_called_once_with('/entrar')

    def test_never_touches_the_network(self, client, transport):
        client.session_store.clear()

        assert client.guard.can_enter() is False
        assert transport.sent == []


class TestRequestAuthenticator:
    """Credential attachment."""

    def test_adds_bearer_header(self):
        store = SessionStore()
        store.set_session('C1')
        request = OutgoingRequest('GET', '/api/r1', headers={'Accept': 'application/json'})

        authenticated = RequestAuthenticator(store).authenticate(request)

        assert authenticated.headers == {'Accept': 'application/json', 'Authorization': 'Bearer C1'}
        assert 'Authorization' not in request.headers

    def test_unchanged_without_credential(self):
        request = OutgoingRequest('GET', '/api/r1')

        assert RequestAuthenticator(SessionStore()).authenticate(request) is request

    def test_replaces_stale_header(self):
        store = SessionStore()
        store.set_session('C2')
        request = OutgoingRequest('GET', '/api/r1').with_header('Authorization', 'Bearer C1')

        authenticated = RequestAuthenticator(store).authenticate(request)

        assert authenticated.headers['Authorization'] == 'Bearer C2'
