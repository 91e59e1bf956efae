"""
Shared fixtures for the Oriento session client tests.

ScriptedTransport plays the API server in memory: protected paths accept only
the currently valid credential, and the refresh endpoint blocks on a gate so
tests can pile requests up behind an in-flight renewal.
"""

import asyncio
from typing import List, Optional
from unittest.mock import MagicMock

import pytest

from oriento_shared.interfaces import ITransport, INavigator
from oriento_shared.models import OutgoingRequest, HTTPResponse

from oriento_client.api_client import OrientoAPIClient


class ScriptedTransport(ITransport):
    """In-memory transport with a gated refresh endpoint."""

    def __init__(self, valid_credential: Optional[str] = 'C2'):
        self.valid_credential = valid_credential
        self.sent: List[OutgoingRequest] = []
        self.refresh_calls = 0
        self.refresh_gate = asyncio.Event()
        self.refresh_gate.set()
        self.refresh_response = HTTPResponse(200, {'accessToken': 'C2', 'expiresIn': 300})
        self.login_response = HTTPResponse(200, {
            'accessToken': 'C1', 'expiresIn': 300, 'usuario': {'id': 1, 'nome': 'ACME'}
        })
        self.closed = False

    def protected_sends(self) -> List[OutgoingRequest]:
        return [r for r in self.sent if not r.path.startswith('/api/auth/')]

    async def send(self, request: OutgoingRequest) -> HTTPResponse:
        self.sent.append(request)

        if request.path == '/api/auth/refresh':
            self.refresh_calls += 1
            await self.refresh_gate.wait()
            return self.refresh_response
        if request.path == '/api/auth/login':
            return self.login_response
        if request.path.startswith('/api/auth/'):
            return HTTPResponse(200, {})

        # Let every concurrent caller reach the server before anyone answers
        await asyncio.sleep(0)
        if request.headers.get('Authorization') == f'Bearer {self.valid_credential}':
            return HTTPResponse(200, {'path': request.path})
        return HTTPResponse(401, {'detail': 'Token expired'})

    async def close(self) -> None:
        self.closed = True


async def wait_for(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until the predicate holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0)


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def navigator():
    return MagicMock(spec=INavigator)


@pytest.fixture
def client(transport, navigator):
    api_client = OrientoAPIClient(transport, navigator=navigator)
    api_client.session_store.set_session('C1', {'id': 1})
    return api_client
