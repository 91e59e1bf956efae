"""
Tests for the session store and its identity stream.
"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from oriento_shared.models import Session
from oriento_client.auth.session_store import SessionStore


class TestSessionState:
    """Credential and identity bookkeeping."""

    def test_starts_unauthenticated(self):
        store = SessionStore()

        assert store.current_credential() is None
        assert store.current_identity() is None
        assert store.is_authenticated() is False

    def test_set_session_replaces_both_fields(self):
        store = SessionStore()
        expires_at = datetime.now() + timedelta(minutes=5)

        store.set_session('C1', {'id': 1}, expires_at)

        assert store.is_authenticated() is True
        assert store.current_credential() == 'C1'
        assert store.current_identity() == {'id': 1}
        assert store.snapshot() == Session('C1', {'id': 1}, expires_at)

    def test_clear_drops_both_fields(self):
        store = SessionStore()
        store.set_session('C1', {'id': 1})

        store.clear()

        assert store.is_authenticated() is False
        assert store.current_identity() is None

    def test_empty_credential_rejected(self):
        store = SessionStore()

        with pytest.raises(ValueError):
            store.set_session('', {'id': 1})
        assert store.is_authenticated() is False

    def test_identity_requires_credential(self):
        with pytest.raises(ValueError):
            Session(credential=None, identity={'id': 1})

    def test_expiry_is_informational(self):
        store = SessionStore()
        store.set_session('C1', None, datetime.now() - timedelta(seconds=1))

        assert store.snapshot().is_expired() is True
        assert store.is_authenticated() is True


class TestIdentityStream:
    """Identity notifications."""

    @pytest.mark.asyncio
    async def test_set_then_clear_emits_twice_in_order(self):
        store = SessionStore()
        stream = store.identity_stream()

        store.set_session('C', {'id': 7})
        store.clear()

        assert store.is_authenticated() is False
        assert await stream.__anext__() == {'id': 7}
        assert await stream.__anext__() is None
        assert stream.pending() == 0

    @pytest.mark.asyncio
    async def test_emits_even_when_unchanged(self):
        store = SessionStore()
        stream = store.identity_stream()

        store.clear()
        store.clear()

        assert stream.pending() == 2

    @pytest.mark.asyncio
    async def test_emission_visible_before_next_read(self):
        store = SessionStore()
        stream = store.identity_stream()

        store.set_session('C2', {'id': 2})

        # No await between the mutation and these checks
        assert stream.pending() == 1
        assert store.current_credential() == 'C2'

    @pytest.mark.asyncio
    async def test_streams_are_independent_and_restartable(self):
        store = SessionStore()
        first = store.identity_stream()
        store.set_session('C1', {'id': 1})
        first.close()

        second = store.identity_stream()
        store.clear()

        assert first.pending() == 1
        assert second.pending() == 1
        assert await second.__anext__() is None

    @pytest.mark.asyncio
    async def test_replay_current_yields_current_identity_first(self):
        store = SessionStore()
        store.set_session('C1', {'id': 1})

        stream = store.identity_stream(replay_current=True)
        store.clear()

        assert await stream.__anext__() == {'id': 1}
        assert await stream.__anext__() is None

    @pytest.mark.asyncio
    async def test_async_iteration_until_closed(self):
        store = SessionStore()
        received = []

        async def consume():
            async with store.identity_stream() as stream:
                async for identity in stream:
                    received.append(identity)
                    if identity is None:
                        break

        consumer = asyncio.ensure_future(consume())
        await asyncio.sleep(0)
        store.set_session('C1', {'id': 1})
        store.clear()
        await asyncio.wait_for(consumer, timeout=1)

        assert received == [{'id': 1}, None]
        assert store._streams == []

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self):
        """Closing from another task ends an iteration blocked on the stream."""
        store = SessionStore()
        stream = store.identity_stream()

        async def collect():
            return [identity async for identity in stream]

        consumer = asyncio.ensure_future(collect())
        await asyncio.sleep(0)
        store.set_session('C1', {'id': 1})
        await asyncio.sleep(0)

        stream.close()

        assert await asyncio.wait_for(consumer, timeout=1) == [{'id': 1}]
        assert stream.pending() == 0
        store.clear()
        assert stream.pending() == 0

    def test_generation_changes_only_on_clear(self):
        store = SessionStore()
        start = store.generation

        store.set_session('C1', {'id': 1})
        assert store.generation == start

        store.clear()
        assert store.generation == start + 1

    def test_callbacks_notified_and_errors_contained(self):
        store = SessionStore()
        broken = MagicMock(side_effect=RuntimeError("boom"))
        seen = MagicMock()
        store.add_identity_callback(broken)
        store.add_identity_callback(seen)

        store.set_session('C1', {'id': 1})
        store.clear()

        assert [c.args[0] for c in seen.call_args_list] == [{'id': 1}, None]
        assert store.is_authenticated() is False
