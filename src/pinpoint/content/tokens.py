"""Cancellation primitives for content resolution.

A LoadingToken scopes one user-initiated query across every tab slot; an
AbortHandle guards a single in-flight probe and owns its timeout timer.
Both carry the reason they were cancelled, and the first reason sticks.
"""

from __future__ import annotations

import asyncio
from enum import Enum


class CancelReason(str, Enum):
    NEW_QUERY = "new_query"              # a later query replaced this one
    SUPERSEDED = "superseded"            # a later probe took the same slot
    TIMEOUT = "timeout"                  # the load timer fired
    LAYER_DEACTIVATED = "layer_deactivated"
    TEARDOWN = "teardown"
    USER = "user"


class LoadingToken:
    """Cancel signal shared by every probe issued for one query."""

    def __init__(self, query_id: int) -> None:
        self.query_id = query_id
        self._reason: CancelReason | None = None

    @property
    def canceled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.USER) -> None:
        if self._reason is None:
            self._reason = reason

    def __repr__(self) -> str:
        state = self._reason.value if self._reason else "live"
        return f"LoadingToken(query_id={self.query_id}, {state})"


class AbortHandle:
    """Abort signal for one probe, keyed by "{slot}:{layer_id}".

    The timeout is a loop timer that fires this same abort with reason
    TIMEOUT, so a timed-out probe and a superseded probe unwind the same way.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        self._reason: CancelReason | None = None
        self._task: asyncio.Future | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def aborted(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    def attach(self, task: asyncio.Future, timeout: float | None = None) -> None:
        """Bind the probe task and arm the timeout timer."""
        self._task = task
        if self.aborted:
            task.cancel()
            return
        if timeout is not None and timeout > 0:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(timeout, self.abort, CancelReason.TIMEOUT)

    def abort(self, reason: CancelReason) -> None:
        if self._reason is not None:
            return
        self._reason = reason
        self.disarm()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def disarm(self) -> None:
        """Cancel the timeout timer (the probe finished on its own)."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
