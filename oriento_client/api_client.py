"""
Authenticated HTTP API client for the Oriento session client.

This module wires the session store, request authenticator, renewal
coordinator, auth service and access guard around one transport. Each is
constructed exactly once here and shared by reference.
"""

import logging
from typing import Optional, Dict, Any

from oriento_shared.exceptions import APIClientError, ErrorCode, RenewalFailedError, ServerError
from oriento_shared.interfaces import ITransport, INavigator
from oriento_shared.logging_config import AuditLogger
from oriento_shared.models import CredentialGrant, OutgoingRequest, RequestEnvelope, HTTPResponse

from oriento_client.auth.auth_service import AuthService
from oriento_client.auth.authenticator import RequestAuthenticator
from oriento_client.auth.guard import AccessGuard
from oriento_client.auth.renewal import RenewalCoordinator
from oriento_client.auth.session_store import SessionStore
from oriento_client.config import ClientConfiguration
from oriento_client.transport import HTTPTransport, RetryConfig

logger = logging.getLogger(__name__)


class OrientoAPIClient:
    """
    HTTP API client with transparent credential renewal.

    Requests carry the current credential. A 401 response hands the request to
    the renewal coordinator, which replays it once after a shared renewal.
    Every other status, and every transport failure, reaches the caller as-is.
    """

    def __init__(
        self,
        transport: ITransport,
        navigator: Optional[INavigator] = None,
        auth_path: str = '/api/auth',
        login_route: str = '/login',
        home_route: str = '/dashboard',
        session_store: Optional[SessionStore] = None
    ):
        self.transport = transport
        self.navigator = navigator
        self.login_route = login_route
        self.home_route = home_route

        audit_logger = AuditLogger()
        self.session_store = session_store or SessionStore()
        self.authenticator = RequestAuthenticator(self.session_store)
        self.auth = AuthService(transport, self.session_store, auth_path, audit_logger=audit_logger)
        self.coordinator = RenewalCoordinator(
            self.session_store,
            renew=self.auth.renew,
            dispatch=self._dispatch,
            audit_logger=audit_logger
        )
        self.coordinator.add_failure_callback(self._on_renewal_failed)
        self.guard = AccessGuard(self.session_store, navigator, login_route) if navigator else None

        logger.info("API client initialized")

    @classmethod
    def from_config(cls, config: ClientConfiguration, navigator: Optional[INavigator] = None) -> 'OrientoAPIClient':
        """Build a client and its aiohttp transport from configuration."""
        transport = HTTPTransport(
            config.get_server_url(),
            timeout=config.get_server_timeout(),
            retry_config=RetryConfig(
                max_retries=config.get_retry_attempts(),
                base_delay=config.get_retry_delay()
            )
        )
        return cls(
            transport,
            navigator=navigator,
            auth_path=config.get_auth_path(),
            login_route=config.get_login_route(),
            home_route=config.get_home_route()
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Stop background work and close the transport."""
        await self.coordinator.shutdown()
        await self.auth.shutdown()
        await self.transport.close()

    def _on_renewal_failed(self, error: RenewalFailedError) -> None:
        # Forced logout: the coordinator already cleared the store
        self.auth.end_server_session()
        if self.navigator:
            logger.info(f"Session expired, redirecting to {self.login_route}")
            self.navigator.navigate(self.login_route)

    async def _dispatch(self, envelope: RequestEnvelope) -> HTTPResponse:
        """Authenticate and send one envelope, recovering from a 401."""
        request = self.authenticator.authenticate(envelope.request)
        response = await self.transport.send(request)

        if response.is_auth_failure:
            return await self.coordinator.recover(envelope)
        return response

    async def send(self, request: OutgoingRequest) -> HTTPResponse:
        """
        Send a request through the authentication pipeline.

        Returns:
            The final response; never a 401

        Raises:
            AuthenticationError: If renewal failed or the replay was rejected
            NetworkError: On transport failure
        """
        return await self._dispatch(RequestEnvelope(request))

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make an authenticated request and return its JSON body.

        Raises:
            APIClientError: On 4xx statuses other than 401
            ServerError: On 5xx statuses
        """
        response = await self.send(OutgoingRequest(method, path, json=json, params=params))

        if response.ok:
            return response.data

        detail = response.detail
        if response.status == 403:
            raise APIClientError(f"Forbidden: {detail or 'Access denied'}",
                                 status=403, error_code=ErrorCode.HTTP_FORBIDDEN)
        if response.status == 404:
            raise APIClientError(f"Not found: {detail or 'Resource not found'}",
                                 status=404, error_code=ErrorCode.HTTP_NOT_FOUND)
        if response.status >= 500:
            raise ServerError(f"Server error ({response.status}): {detail or 'Internal server error'}",
                              status=response.status)
        raise APIClientError(f"Request failed ({response.status}): {detail or 'Unknown error'}",
                             status=response.status)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request('GET', path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request('POST', path, json=json)

    async def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request('PUT', path, json=json)

    async def delete(self, path: str) -> Dict[str, Any]:
        return await self.request('DELETE', path)

    async def login(self, identifier: str, secret: str) -> CredentialGrant:
        return await self.auth.login(identifier, secret)

    async def register(self, display_name: str, tax_id: str, email: str, secret: str) -> Dict[str, Any]:
        return await self.auth.register(display_name, tax_id, email, secret)

    def logout(self) -> None:
        self.auth.logout()

    def is_authenticated(self) -> bool:
        return self.session_store.is_authenticated()
