"""Shared runtime state for the replacement engine.

The resolved channel, the ready flag and the backfill cancel token are the only
mutable state shared between event handlers and the backfill task. They sit
behind one read/write lock: filters read concurrently, the one-time channel
resolution and the cancel token installation write.

The lock is a plain thread lock rather than an asyncio one. Nothing holds it
across an ``await``, so it never blocks the event loop for longer than a few
attribute reads, and the filters stay synchronous.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import contextmanager
from typing import Iterator, NamedTuple


class ReadWriteLock:
    """Many readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class CancelToken:
    """Cooperative cancellation signal for the backfill loop.

    Cancelling more than once is harmless.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class StateSnapshot(NamedTuple):
    """Point-in-time view of the readiness state."""

    ready: bool
    channel_id: str | None


class RuntimeState:
    """Channel ID, readiness, and backfill cancel token.

    Transitions NotReady -> Ready exactly once; there is no way back.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._channel_id: str | None = None
        self._ready = False
        self._cancel: CancelToken | None = None
        self._cancel_requested = False

    def publish_channel(self, channel_id: str) -> None:
        """Record the resolved channel and mark the engine ready.

        Raises:
            RuntimeError: If a channel has already been published.
        """
        with self._lock.write():
            if self._ready:
                raise RuntimeError(f"channel already resolved to {self._channel_id}")
            self._channel_id = channel_id
            self._ready = True

    def snapshot(self) -> StateSnapshot:
        with self._lock.read():
            return StateSnapshot(self._ready, self._channel_id)

    @property
    def ready(self) -> bool:
        return self.snapshot().ready

    @property
    def channel_id(self) -> str | None:
        return self.snapshot().channel_id

    def install_cancel_token(self) -> CancelToken:
        """Create the cancel token for a backfill run about to start.

        If cancellation was already requested the token comes back cancelled,
        so the backfill stops before fetching anything.
        """
        token = CancelToken()
        with self._lock.write():
            if self._cancel_requested:
                token.cancel()
            self._cancel = token
        return token

    def cancel(self) -> bool:
        """Signal the running backfill to stop.

        The request is remembered, so a backfill that has not installed its
        token yet starts out cancelled.

        Returns:
            True if a token was signalled, False if no backfill was started.
        """
        with self._lock.write():
            self._cancel_requested = True
            token = self._cancel
        if token is None:
            return False
        token.cancel()
        return True
