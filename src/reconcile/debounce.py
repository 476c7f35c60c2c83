"""Debounced writers for the asyncio event loop."""

import asyncio
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from common.logger import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class SessionToken:
    """Cancellation token shared by the writers of one open book.

    Once cancelled it stays cancelled; writers bound to it drop whatever they
    still hold and ignore timers that fire late.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"SessionToken({self.label!r}, {state})"


def replace(pending: Any, payload: Any) -> Any:
    """Default merge: the newest payload wins."""
    return payload


class DebouncedWriter(Generic[T]):
    """Coalesce a burst of payloads into one call of ``write``.

    The write runs ``wait`` seconds after the last ``schedule()`` of a burst
    (trailing edge), but never later than ``max_wait`` seconds after the
    first one, so a never-ending drag still gets saved.

    Example:
        >>> writer = DebouncedWriter(save, wait=0.3, max_wait=1.0, merge=merge_cards)
        >>> writer.schedule({"a1": draft})  # inside a running event loop
    """

    def __init__(
        self,
        write: Callable[[T], Any],
        wait: float,
        max_wait: float | None = None,
        token: SessionToken | None = None,
        merge: Callable[[T, T], T] = replace,
        name: str = "writer",
    ):
        """Initialize the writer.

        Args:
            write: Called with the merged payload; exceptions are logged
            wait: Seconds of quiet before the write happens
            max_wait: Upper bound in seconds between the first event of a
                burst and the write; None means no ceiling
            token: Session the writer belongs to
            merge: Folds a new payload into the pending one
            name: Used in log messages
        """
        if wait < 0 or (max_wait is not None and max_wait < wait):
            raise ValueError("Expected 0 <= wait <= max_wait")
        self.write = write
        self.wait = wait
        self.max_wait = max_wait
        self.token = token or SessionToken(name)
        self.merge = merge
        self.name = name
        self.writes = 0
        self._pending: T | None = None
        self._has_pending = False
        self._burst_started: float | None = None
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._has_pending

    def schedule(self, payload: T) -> None:
        """Queue ``payload`` and (re)arm the timer.

        Without a running event loop the payload is held until ``flush()``.
        """
        if self.token.cancelled:
            logger.debug("%s: session closed, dropping update", self.name)
            return

        self._pending = self.merge(self._pending, payload) if self._has_pending else payload
        self._has_pending = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("%s: no running event loop, holding update until flush", self.name)
            return

        now = loop.time()
        if self._burst_started is None:
            self._burst_started = now

        delay = self.wait
        if self.max_wait is not None:
            delay = min(delay, self._burst_started + self.max_wait - now)

        self._cancel_timer()
        self._handle = loop.call_later(max(delay, 0), self._fire)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _take(self) -> tuple[bool, T | None]:
        has_pending, payload = self._has_pending, self._pending
        self._pending = None
        self._has_pending = False
        self._burst_started = None
        return has_pending, payload

    def _fire(self) -> None:
        self._handle = None
        if self.token.cancelled:
            self._take()
            return
        self._run()

    def _run(self) -> bool:
        has_pending, payload = self._take()
        if not has_pending:
            return False
        try:
            self.write(payload)
        except Exception as e:
            logger.warning("%s: write failed: %s", self.name, e)
            return False
        self.writes += 1
        return True

    def flush(self) -> bool:
        """Write the pending payload now.

        Returns:
            True if a write happened and succeeded
        """
        self._cancel_timer()
        if self.token.cancelled:
            self._take()
            return False
        return self._run()

    def cancel(self) -> None:
        """Drop the pending payload without writing it."""
        self._cancel_timer()
        self._take()
