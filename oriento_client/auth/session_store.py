"""
Session Store for the Oriento session client.

This module holds the current credential and authenticated identity. It is the
single source of truth for whether requests are authenticated, and it notifies
subscribers on every login, renewal and logout.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Dict, Any, Callable, List

from oriento_shared.models import Session

logger = logging.getLogger(__name__)


Identity = Optional[Dict[str, Any]]

_CLOSED = object()


class IdentityStream:
    """
    Subscription to identity changes.

    Yields the identity (or None after a logout) once per session mutation, in
    mutation order, until closed. The subscription is registered when the
    stream is created, so nothing emitted after that point is missed.
    """

    def __init__(self, store: 'SessionStore'):
        self._store = store
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._sentinel_queued = False

    def _push(self, identity: Identity) -> None:
        self._queue.put_nowait(identity)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Identity:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._sentinel_queued = False
            raise StopAsyncIteration
        return item

    def pending(self) -> int:
        """Number of emissions received but not consumed yet."""
        return self._queue.qsize() - (1 if self._sentinel_queued else 0)

    def close(self) -> None:
        """Stop receiving emissions."""
        if not self._closed:
            self._closed = True
            self._store._unsubscribe(self)
            # Wakes a consumer blocked on the queue
            self._sentinel_queued = True
            self._queue.put_nowait(_CLOSED)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SessionStore:
    """
    Owns the Session snapshot.

    Every mutation swaps the snapshot in a single step and then emits the new
    identity exactly once, even when it did not change.
    """

    def __init__(self):
        self._session = Session()
        self._streams: List[IdentityStream] = []
        self._identity_callbacks: List[Callable[[Identity], None]] = []
        self._generation = 0

        logger.info("Session store initialized")

    def set_session(
        self,
        credential: str,
        identity: Identity = None,
        expires_at: Optional[datetime] = None
    ) -> None:
        """
        Replace the credential and identity together.

        Args:
            credential: New access credential
            identity: User profile of the authenticated user
            expires_at: Known expiry of the credential, if any

        Raises:
            ValueError: If the credential is empty
        """
        if not credential:
            raise ValueError("Cannot set a session without a credential")

        self._session = Session(credential=credential, identity=identity, expires_at=expires_at)
        logger.debug("Session credential updated")
        self._notify(identity)

    def clear(self) -> None:
        """Drop the credential and identity together."""
        self._session = Session()
        self._generation += 1
        logger.debug("Session cleared")
        self._notify(None)

    @property
    def generation(self) -> int:
        """Counter bumped on every clear; a changed value means the session ended."""
        return self._generation

    def current_credential(self) -> Optional[str]:
        return self._session.credential

    def current_identity(self) -> Identity:
        return self._session.identity

    def snapshot(self) -> Session:
        """Current session as an immutable snapshot."""
        return self._session

    def is_authenticated(self) -> bool:
        return self._session.credential is not None

    def identity_stream(self, replay_current: bool = False) -> IdentityStream:
        """
        Open a new subscription to identity changes.

        Args:
            replay_current: Yield the current identity before any change

        Returns:
            An async iterator of identity-or-None values
        """
        stream = IdentityStream(self)
        if replay_current:
            stream._push(self._session.identity)
        self._streams.append(stream)
        return stream

    def add_identity_callback(self, callback: Callable[[Identity], None]) -> None:
        """
        Add callback for identity changes.

        Args:
            callback: Function called with the new identity (or None)
        """
        self._identity_callbacks.append(callback)

    def _unsubscribe(self, stream: IdentityStream) -> None:
        if stream in self._streams:
            self._streams.remove(stream)

    def _notify(self, identity: Identity) -> None:
        """Deliver one emission to every subscriber."""
        for stream in self._streams:
            stream._push(identity)

        for callback in self._identity_callbacks:
            try:
                callback(identity)
            except Exception as e:
                logger.error(f"Error in identity callback: {e}")
