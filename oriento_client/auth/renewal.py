"""
Coordinated credential renewal for the Oriento session client.

When a request is rejected with an authentication failure, the coordinator
runs at most one renewal at a time. Requests rejected while a renewal is in
flight wait in a FIFO queue. Once the renewal settles, the triggering request
and every waiter are either replayed once with the new credential or failed
together with the same error.

All state changes happen on the event loop without an intervening await, so the
phase check and the enqueue cannot interleave with another request.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Optional, Callable, Awaitable, Deque, List, Set

from oriento_shared.exceptions import AuthenticationFailedError, RenewalFailedError
from oriento_shared.logging_config import AuditLogger
from oriento_shared.models import CredentialGrant, HTTPResponse, RenewalPhase, RequestEnvelope

from oriento_client.auth.session_store import SessionStore

logger = logging.getLogger(__name__)


RenewCall = Callable[[], Awaitable[CredentialGrant]]
DispatchCall = Callable[[RequestEnvelope], Awaitable[HTTPResponse]]


@dataclass
class ReplayTask:
    """A request waiting on a renewal, with the channel its caller awaits."""
    envelope: RequestEnvelope
    future: asyncio.Future


class RenewalCoordinator:
    """
    Single-flight credential renewal with FIFO replay of waiting requests.

    Args:
        session_store: Store updated on success and cleared on failure
        renew: Coroutine function performing the external renewal call
        dispatch: Coroutine function that authenticates, sends and handles
            authentication failures for one envelope
    """

    def __init__(self, session_store: SessionStore, renew: RenewCall, dispatch: DispatchCall,
                 audit_logger: Optional[AuditLogger] = None):
        self.session_store = session_store
        self._renew = renew
        self._dispatch = dispatch
        self._audit = audit_logger or AuditLogger()

        self._phase = RenewalPhase.IDLE
        self._waiters: Deque[ReplayTask] = deque()
        self._renewal_task: Optional[asyncio.Task] = None
        self._replays: Set[asyncio.Task] = set()
        self._failure_callbacks: List[Callable[[RenewalFailedError], None]] = []

    @property
    def phase(self) -> RenewalPhase:
        return self._phase

    @property
    def pending_waiters(self) -> int:
        return len(self._waiters)

    def add_failure_callback(self, callback: Callable[[RenewalFailedError], None]) -> None:
        """
        Add callback for terminal renewal failures.

        Args:
            callback: Function called once per failed renewal with its error
        """
        self._failure_callbacks.append(callback)

    async def recover(self, envelope: RequestEnvelope) -> HTTPResponse:
        """
        Handle an authentication failure for the given request.

        Returns:
            The response of the replayed request

        Raises:
            AuthenticationFailedError: If the request was already replayed once
            RenewalFailedError: If the renewal it waited on failed
        """
        if envelope.retried:
            raise AuthenticationFailedError(
                "Request rejected again after credential renewal",
                context={'method': envelope.request.method, 'path': envelope.request.path}
            )

        task = ReplayTask(envelope, asyncio.get_running_loop().create_future())

        if self._phase is RenewalPhase.IN_FLIGHT:
            self._waiters.append(task)
            logger.debug(f"Queued {envelope.request.method} {envelope.request.path} "
                         f"behind in-flight renewal ({len(self._waiters)} waiting)")
        else:
            self._phase = RenewalPhase.IN_FLIGHT
            logger.info(f"Authentication failure on {envelope.request.method} "
                        f"{envelope.request.path}, renewing credential")
            self._renewal_task = asyncio.ensure_future(
                self._run_renewal(task, self.session_store.generation)
            )

        return await task.future

    async def _run_renewal(self, trigger: ReplayTask, generation: int) -> None:
        """
        Run one renewal cycle and settle the trigger and every waiter.

        A grant that arrives after the session was cleared is discarded and
        every request fails, so a logout is never undone by a late renewal.
        """
        try:
            grant = await self._renew()
        except asyncio.CancelledError:
            batch = self._settle()
            self._drain([trigger] + batch, RenewalFailedError("Credential renewal was cancelled"))
            raise
        except Exception as e:
            error = e if isinstance(e, RenewalFailedError) else RenewalFailedError(
                f"Credential renewal failed: {e}", cause=e
            )
            self.session_store.clear()
            batch = self._settle()
            logger.warning(f"Credential renewal failed, failing {len(batch) + 1} request(s): {e}")
            self._audit.log_renewal(success=False, waiters=len(batch), failure_reason=str(e))
            self._drain([trigger] + batch, error)
            self._notify_failure(error)
            return

        if self.session_store.generation != generation:
            batch = self._settle()
            logger.info(f"Session ended during renewal, discarding new credential "
                        f"and failing {len(batch) + 1} request(s)")
            self._audit.log_renewal(success=False, waiters=len(batch), failure_reason="session ended")
            self._drain([trigger] + batch, RenewalFailedError("Session ended during credential renewal"))
            return

        identity = grant.identity if grant.identity is not None else self.session_store.current_identity()
        self.session_store.set_session(grant.credential, identity, grant.expires_at)
        batch = self._settle()
        logger.info(f"Credential renewed, replaying {len(batch) + 1} request(s)")
        self._audit.log_renewal(success=True, waiters=len(batch))
        self._drain([trigger] + batch)

    def _settle(self) -> List[ReplayTask]:
        """Return to IDLE and take the waiter queue in enqueue order."""
        batch = list(self._waiters)
        self._waiters.clear()
        self._phase = RenewalPhase.IDLE
        return batch

    def _drain(self, batch: List[ReplayTask], error: Optional[BaseException] = None) -> int:
        """
        Resolve a settled batch in order.

        With an error every task fails with that same error; otherwise each
        task is replayed once. Tasks whose caller already gave up are skipped.

        Returns:
            Number of tasks resolved or replayed
        """
        handled = 0
        for task in batch:
            if task.future.done():
                logger.debug(f"Skipping abandoned request {task.envelope.request.path}")
                continue

            if error is not None:
                task.future.set_exception(error)
            else:
                replay = asyncio.ensure_future(self._replay(task))
                self._replays.add(replay)
                replay.add_done_callback(self._replays.discard)
                task.future.add_done_callback(
                    lambda future, replay=replay: replay.cancel() if future.cancelled() else None
                )
            handled += 1
        return handled

    async def _replay(self, task: ReplayTask) -> None:
        """Resend one request with the renewed credential."""
        try:
            response = await self._dispatch(task.envelope.for_retry())
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as e:
            if not task.future.done():
                task.future.set_exception(e)
        else:
            if not task.future.done():
                task.future.set_result(response)

    def _notify_failure(self, error: RenewalFailedError) -> None:
        for callback in self._failure_callbacks:
            try:
                callback(error)
            except Exception as e:
                logger.error(f"Error in renewal failure callback: {e}")

    async def shutdown(self) -> None:
        """Cancel an in-flight renewal and pending replays."""
        pending = [t for t in [self._renewal_task, *self._replays] if t and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
