# ============================================================
# correlator.py - Pending-Request Registry
# ============================================================
# Joins a command sent over the room data channel to the result
# the browser later PUTs back, keyed by correlation id. Each entry
# is a one-shot future plus a deadline timer. Removal always
# happens before resolution, so delivery and expiry cannot both
# win for the same id.
# ============================================================

import asyncio
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from errors import DuplicateRequestError
from models import CorrelationId


class OutcomeStatus(str, Enum):
    DELIVERED = "delivered"
    TIMED_OUT = "timed_out"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class RequestOutcome:
    """Terminal state of one pending request. Only DELIVERED carries a payload."""
    status: OutcomeStatus
    payload: Any = None

    @property
    def delivered(self) -> bool:
        return self.status is OutcomeStatus.DELIVERED


@dataclass
class _PendingEntry:
    future: asyncio.Future
    timer: asyncio.TimerHandle
    deadline: float


class PendingHandle:
    """What register() hands back. Await wait() to park until delivery or expiry."""

    def __init__(self, correlation_id: CorrelationId, future: asyncio.Future, deadline: float):
        self.correlation_id = correlation_id
        self.deadline = deadline
        self._future = future

    async def wait(self) -> RequestOutcome:
        # shield: a cancelled waiter must not cancel the shared future
        return await asyncio.shield(self._future)

    def done(self) -> bool:
        return self._future.done()


class PendingRequestRegistry:
    """
    Process-wide map of in-flight request/response pairs.

    Empty at startup and never persisted: a restart simply drops every
    pending entry. All mutation happens on the event loop thread with no
    await between lookup and removal.
    """

    def __init__(self):
        self._pending: dict[CorrelationId, _PendingEntry] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __bool__(self) -> bool:
        # An empty registry is still a registry
        return True

    def __contains__(self, correlation_id) -> bool:
        return correlation_id in self._pending

    def register(self, correlation_id: CorrelationId, timeout: float) -> PendingHandle:
        """
        Create a pending request and start its deadline.

        Args:
            correlation_id: Fresh id; must not already be pending
            timeout: Seconds until the request expires as TIMED_OUT

        Returns:
            A handle whose wait() resolves to the RequestOutcome
        """
        if correlation_id in self._pending:
            raise DuplicateRequestError(f"Request {correlation_id} is already pending")
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError("timeout must be a positive, finite number of seconds")

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        deadline = loop.time() + timeout
        timer = loop.call_later(timeout, self._expire, correlation_id, future)
        self._pending[correlation_id] = _PendingEntry(future=future, timer=timer, deadline=deadline)
        return PendingHandle(correlation_id, future, deadline)

    def deliver(self, correlation_id: CorrelationId, payload: Any) -> bool:
        """
        Resolve a pending request with its payload.

        Returns False for unknown, already delivered or expired ids.
        Never raises.
        """
        entry = self._pending.pop(correlation_id, None)
        if entry is None:
            print(f"[DELIVER] No pending request for {correlation_id}")
            return False
        entry.timer.cancel()
        return self._settle(entry.future, RequestOutcome(OutcomeStatus.DELIVERED, payload))

    def discard(self, correlation_id: CorrelationId) -> bool:
        """Drop a request whose command never left, resolving it as ABANDONED."""
        entry = self._pending.pop(correlation_id, None)
        if entry is None:
            return False
        entry.timer.cancel()
        return self._settle(entry.future, RequestOutcome(OutcomeStatus.ABANDONED))

    def close(self):
        """Expire every pending request. Called at shutdown."""
        for correlation_id in list(self._pending):
            entry = self._pending.pop(correlation_id)
            entry.timer.cancel()
            self._settle(entry.future, RequestOutcome(OutcomeStatus.TIMED_OUT))

    def _expire(self, correlation_id: CorrelationId, future: asyncio.Future):
        entry = self._pending.get(correlation_id)
        # Only the entry this timer was armed for
        if entry is None or entry.future is not future:
            return
        del self._pending[correlation_id]
        print(f"[TIMEOUT] Request {correlation_id} expired")
        self._settle(future, RequestOutcome(OutcomeStatus.TIMED_OUT))

    @staticmethod
    def _settle(future: asyncio.Future, outcome: RequestOutcome) -> bool:
        if future.done():
            return False
        future.set_result(outcome)
        return True
