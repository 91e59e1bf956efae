"""
Authentication calls for the Oriento session client.

This module performs the login, registration, renewal and logout calls against
the authentication API and keeps the session store in step with their results.
"""

import asyncio
import logging
from typing import Optional, Dict, Any, Set

from oriento_shared.exceptions import (
    APIClientError, CredentialRejectedError, ErrorCode, NetworkError, RenewalFailedError, ServerError
)
from oriento_shared.interfaces import ITransport
from oriento_shared.logging_config import AuditLogger
from oriento_shared.models import CredentialGrant, OutgoingRequest, HTTPResponse

from oriento_client.auth.payloads import LoginRequest, RegisterRequest, build_body, parse_credential_grant
from oriento_client.auth.session_store import SessionStore

logger = logging.getLogger(__name__)


INVALID_LOGIN_MESSAGE = "Invalid e-mail or password."
UNEXPECTED_LOGIN_MESSAGE = "Unexpected error while trying to sign in."
INVALID_REGISTRATION_MESSAGE = "Invalid data. Check the information provided."
UNEXPECTED_REGISTRATION_MESSAGE = "Unexpected error while trying to register."


class AuthService:
    """
    Client for the authentication endpoints.

    Login updates the session store directly. Renewal only returns the new
    grant; the renewal coordinator decides when to apply it.
    """

    def __init__(self, transport: ITransport, session_store: SessionStore, auth_path: str = '/api/auth',
                 audit_logger: Optional[AuditLogger] = None):
        self.transport = transport
        self.session_store = session_store
        self.auth_path = '/' + auth_path.strip('/')
        self._audit = audit_logger or AuditLogger()
        self._background: Set[asyncio.Task] = set()

    def _url(self, action: str) -> str:
        return f"{self.auth_path}/{action}"

    @staticmethod
    def _failure(response: HTTPResponse, action: str, user_message: str) -> APIClientError:
        detail = response.detail or 'Unknown error'
        if response.status >= 500:
            return ServerError(f"{action} failed ({response.status}): {detail}",
                               status=response.status, user_message=user_message)
        return APIClientError(f"{action} failed ({response.status}): {detail}",
                              status=response.status, user_message=user_message)

    async def login(self, identifier: str, secret: str) -> CredentialGrant:
        """
        Log in and populate the session.

        Args:
            identifier: E-mail or tax id of the account
            secret: Account password

        Returns:
            The validated credential grant

        Raises:
            CredentialRejectedError: If the server rejected the credentials
            APIClientError: On any other unsuccessful status
            MalformedResponseError: If the success payload is malformed
        """
        body = build_body(LoginRequest, email=identifier, secret=secret)
        logger.info(f"Logging in: {identifier}")

        try:
            response = await self.transport.send(OutgoingRequest('POST', self._url('login'), json=body))
        except NetworkError as e:
            self._audit.log_authentication(identifier, success=False, failure_reason=str(e))
            raise

        if response.status == 401:
            self._audit.log_authentication(identifier, success=False, failure_reason="rejected")
            raise CredentialRejectedError(
                f"Login rejected for {identifier}",
                user_message=INVALID_LOGIN_MESSAGE
            )
        if not response.ok:
            self._audit.log_authentication(identifier, success=False, failure_reason=f"status {response.status}")
            raise self._failure(response, "Login", UNEXPECTED_LOGIN_MESSAGE)

        grant = parse_credential_grant(response.data)
        self.session_store.set_session(grant.credential, grant.identity, grant.expires_at)
        self._audit.log_authentication(identifier, success=True)
        return grant

    async def register(self, display_name: str, tax_id: str, email: str, secret: str) -> Dict[str, Any]:
        """
        Register a new account. The session is not modified.

        Returns:
            The server's response body

        Raises:
            CredentialRejectedError: If the server rejected the registration data
            APIClientError: On any other unsuccessful status
        """
        body = build_body(RegisterRequest, display_name=display_name, tax_id=tax_id,
                          email=email, secret=secret)
        logger.info(f"Registering account: {email}")

        response = await self.transport.send(OutgoingRequest('POST', self._url('register'), json=body))

        if response.status == 400:
            self._audit.log_registration(email, success=False, failure_reason=response.detail or "rejected")
            raise CredentialRejectedError(
                f"Registration rejected for {email}: {response.detail or 'invalid data'}",
                user_message=INVALID_REGISTRATION_MESSAGE,
                error_code=ErrorCode.AUTH_REGISTRATION_REJECTED
            )
        if not response.ok:
            self._audit.log_registration(email, success=False, failure_reason=f"status {response.status}")
            raise self._failure(response, "Registration", UNEXPECTED_REGISTRATION_MESSAGE)

        self._audit.log_registration(email, success=True)
        return response.data

    async def renew(self) -> CredentialGrant:
        """
        Exchange the durable cookie for a new credential.

        Raises:
            RenewalFailedError: On any unsuccessful status
            MalformedResponseError: If the success payload is malformed
        """
        response = await self.transport.send(OutgoingRequest('POST', self._url('refresh'), json={}))

        if not response.ok:
            raise RenewalFailedError(
                f"Renewal rejected ({response.status}): {response.detail or 'Unauthorized'}",
                context={'status': response.status}
            )

        return parse_credential_grant(response.data)

    def logout(self) -> Optional[asyncio.Task]:
        """
        Clear the session now and notify the server in the background.

        Returns:
            The background logout task, when an event loop is running
        """
        self.session_store.clear()
        self._audit.log_logout("user")
        return self.end_server_session()

    def end_server_session(self) -> Optional[asyncio.Task]:
        """
        Ask the server to revoke the durable cookie, in the background.

        The session store is left untouched.

        Returns:
            The background logout task, when an event loop is running
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, skipping server logout call")
            return None

        task = loop.create_task(self._post_logout())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _post_logout(self) -> None:
        try:
            response = await self.transport.send(OutgoingRequest('POST', self._url('logout'), json={}))
            if not response.ok:
                logger.warning(f"Server logout returned status {response.status}")
        except Exception as e:
            logger.warning(f"Server logout failed: {e}")

    async def shutdown(self) -> None:
        """Wait for background logout calls to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
