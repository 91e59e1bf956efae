"""
Tests for the authentication calls and their wire payloads.
"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from oriento_shared.exceptions import (
    APIClientError, CredentialRejectedError, ErrorCode, MalformedResponseError, NetworkError,
    RenewalFailedError, ServerError, ValidationError
)
from oriento_shared.interfaces import ITransport
from oriento_shared.models import HTTPResponse

from oriento_client.auth.auth_service import (
    AuthService, INVALID_LOGIN_MESSAGE, INVALID_REGISTRATION_MESSAGE, UNEXPECTED_LOGIN_MESSAGE
)
from oriento_client.auth.payloads import (
    LoginRequest, RegisterRequest, build_body, expiry_from_token, parse_credential_grant
)
from oriento_client.auth.session_store import SessionStore


def make_service(*responses):
    transport = MagicMock(spec=ITransport)
    transport.send = AsyncMock(side_effect=list(responses))
    store = SessionStore()
    return AuthService(transport, store), transport, store


class TestLogin:
    """Login call."""

    @pytest.mark.asyncio
    async def test_login_populates_session(self):
        service, transport, store = make_service(HTTPResponse(200, {
            'accessToken': 'C1', 'expiresIn': 300, 'usuario': {'id': 1, 'nome': 'ACME'}
        }))
        stream = store.identity_stream()

        grant = await service.login('me@example.com', 'secret')

        assert grant.credential == 'C1'
        assert store.current_credential() == 'C1'
        assert store.current_identity() == {'id': 1, 'nome': 'ACME'}
        assert stream.pending() == 1

        request = transport.send.await_args.args[0]
        assert request.method == 'POST'
        assert request.path == '/api/auth/login'
        assert request.json == {'email': 'me@example.com', 'senha': 'secret'}

    @pytest.mark.asyncio
    async def test_login_rejected_leaves_session_alone(self):
        service, _, store = make_service(HTTPResponse(401, {'detail': 'bad credentials'}))

        with pytest.raises(CredentialRejectedError) as exc_info:
            await service.login('me@example.com', 'wrong')

        assert exc_info.value.user_message == INVALID_LOGIN_MESSAGE
        assert exc_info.value.error_code is ErrorCode.AUTH_CREDENTIAL_REJECTED
        assert not store.is_authenticated()

    @pytest.mark.asyncio
    async def test_login_server_error(self):
        service, _, store = make_service(HTTPResponse(503, {'detail': 'maintenance'}))

        with pytest.raises(ServerError) as exc_info:
            await service.login('me@example.com', 'secret')

        assert exc_info.value.status == 503
        assert exc_info.value.user_message == UNEXPECTED_LOGIN_MESSAGE
        assert not store.is_authenticated()

    @pytest.mark.asyncio
    async def test_login_other_status(self):
        service, _, _ = make_service(HTTPResponse(429, {}))

        with pytest.raises(APIClientError) as exc_info:
            await service.login('me@example.com', 'secret')

        assert not isinstance(exc_info.value, ServerError)
        assert exc_info.value.status == 429

    @pytest.mark.asyncio
    async def test_malformed_success_payload_never_reaches_store(self):
        service, _, store = make_service(HTTPResponse(200, {'token': 'C1'}))

        with pytest.raises(MalformedResponseError):
            await service.login('me@example.com', 'secret')

        assert not store.is_authenticated()

    @pytest.mark.asyncio
    async def test_network_error_propagates(self):
        service, transport, store = make_service()
        transport.send.side_effect = NetworkError("connection refused")

        with pytest.raises(NetworkError):
            await service.login('me@example.com', 'secret')
        assert not store.is_authenticated()

    @pytest.mark.asyncio
    async def test_empty_input_rejected_before_sending(self):
        service, transport, _ = make_service()

        with pytest.raises(ValidationError):
            await service.login('', 'secret')
        transport.send.assert_not_awaited()


class TestRegister:
    """Registration call."""

    @pytest.mark.asyncio
    async def test_register_sends_wire_fields(self):
        service, transport, store = make_service(HTTPResponse(201, {'id': 9}))

        result = await service.register('ACME', '12345678000199', 'me@example.com', 'secret')

        assert result == {'id': 9}
        assert not store.is_authenticated()
        request = transport.send.await_args.args[0]
        assert request.path == '/api/auth/register'
        assert request.json == {
            'nome': 'ACME', 'cnpj': '12345678000199', 'email': 'me@example.com', 'senha': 'secret'
        }

    @pytest.mark.asyncio
    async def test_register_rejected(self):
        service, _, _ = make_service(HTTPResponse(400, {'detail': 'cnpj taken'}))

        with pytest.raises(CredentialRejectedError) as exc_info:
            await service.register('ACME', '12345678000199', 'me@example.com', 'secret')

        assert exc_info.value.user_message == INVALID_REGISTRATION_MESSAGE
        assert exc_info.value.error_code is ErrorCode.AUTH_REGISTRATION_REJECTED


class TestRenewAndLogout:
    """Renewal and logout calls."""

    @pytest.mark.asyncio
    async def test_renew_returns_grant_without_touching_store(self):
        service, transport, store = make_service(HTTPResponse(200, {'accessToken': 'C2', 'expiresIn': 60}))
        store.set_session('C1', {'id': 1})

        grant = await service.renew()

        assert grant.credential == 'C2'
        assert store.current_credential() == 'C1'
        request = transport.send.await_args.args[0]
        assert request.path == '/api/auth/refresh'
        assert 'Authorization' not in request.headers

    @pytest.mark.asyncio
    async def test_renew_rejected(self):
        service, _, _ = make_service(HTTPResponse(401, {'detail': 'Refresh token expired'}))

        with pytest.raises(RenewalFailedError) as exc_info:
            await service.renew()
        assert exc_info.value.context['status'] == 401

    @pytest.mark.asyncio
    async def test_logout_clears_immediately(self):
        service, transport, store = make_service(HTTPResponse(200, {}))
        store.set_session('C1', {'id': 1})

        task = service.logout()

        assert not store.is_authenticated()
        assert store.current_identity() is None
        await task
        assert transport.send.await_args.args[0].path == '/api/auth/logout'

    @pytest.mark.asyncio
    async def test_logout_call_failure_is_ignored(self):
        service, transport, store = make_service()
        transport.send.side_effect = NetworkError("connection refused")
        store.set_session('C1')

        task = service.logout()
        await task

        assert task.exception() is None
        assert not store.is_authenticated()

    @pytest.mark.asyncio
    async def test_end_server_session_keeps_store(self):
        service, transport, store = make_service(HTTPResponse(200, {}))
        store.set_session('C1', {'id': 1})
        stream = store.identity_stream()

        await service.end_server_session()

        assert store.current_credential() == 'C1'
        assert stream.pending() == 0
        assert transport.send.await_args.args[0].path == '/api/auth/logout'

    def test_logout_without_event_loop(self):
        service, transport, store = make_service()
        store.set_session('C1')

        assert service.logout() is None
        assert not store.is_authenticated()
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_logout_call(self):
        gate = asyncio.Event()

        async def slow_send(request):
            await gate.wait()
            return HTTPResponse(200, {})

        service, transport, _ = make_service()
        transport.send.side_effect = slow_send
        task = service.logout()

        gate.set()
        await service.shutdown()
        assert task.done()


class TestPayloads:
    """Wire payload validation."""

    def test_build_body_uses_aliases(self):
        assert build_body(LoginRequest, email='a@b.c', secret='x') == {'email': 'a@b.c', 'senha': 'x'}

    def test_build_body_reports_field(self):
        with pytest.raises(ValidationError) as exc_info:
            build_body(RegisterRequest, display_name='ACME', tax_id='', email='a@b.c', secret='x')
        assert exc_info.value.context['field_name'] in ('cnpj', 'tax_id')

    def test_expiry_from_expires_in(self):
        now = datetime(2026, 1, 1, 12, 0, 0)
        grant = parse_credential_grant({'accessToken': 'C1', 'expiresIn': 300}, now=now)
        assert grant.expires_at == now + timedelta(seconds=300)

    def test_expiry_falls_back_to_token_claim(self):
        exp = datetime(2030, 1, 1, 0, 0, 0)
        token = jwt.encode({'sub': '1', 'exp': int(exp.timestamp())}, 'secret', algorithm='HS256')

        grant = parse_credential_grant({'accessToken': token})

        assert grant.expires_at == exp
        assert expiry_from_token(token) == exp

    def test_opaque_token_has_no_expiry(self):
        grant = parse_credential_grant({'accessToken': 'opaque'})
        assert grant.expires_at is None
        assert grant.identity is None

    def test_out_of_range_expires_in_means_unknown_expiry(self):
        grant = parse_credential_grant({'accessToken': 'C1', 'expiresIn': 10 ** 20})

        assert grant.credential == 'C1'
        assert grant.expires_at is None

    def test_out_of_range_exp_claim_means_unknown_expiry(self):
        token = jwt.encode({'sub': '1', 'exp': 10 ** 20}, 'secret', algorithm='HS256')

        assert expiry_from_token(token) is None
        assert parse_credential_grant({'accessToken': token}).expires_at is None

    @pytest.mark.parametrize("payload", [
        {},
        {'accessToken': ''},
        {'accessToken': 'C1', 'expiresIn': -5},
        {'accessToken': 'C1', 'usuario': 'not-an-object'},
        ['C1'],
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(MalformedResponseError):
            parse_credential_grant(payload)
