"""
Request authentication for the Oriento session client.
"""

from oriento_shared.models import OutgoingRequest

from oriento_client.auth.session_store import SessionStore


class RequestAuthenticator:
    """Attaches the current credential to outgoing requests."""

    HEADER = 'Authorization'

    def __init__(self, session_store: SessionStore):
        self.session_store = session_store

    def authenticate(self, request: OutgoingRequest) -> OutgoingRequest:
        """
        Return the request carrying a bearer credential, if the session has one.

        The request is returned unchanged when there is no credential.
        """
        credential = self.session_store.current_credential()
        if credential is None:
            return request
        return request.with_header(self.HEADER, f'Bearer {credential}')
