"""
Line correlator: maps one ordered stream of engine output lines onto
multiple concurrent awaited responses.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .errors import ResponseTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0  # seconds

LinePredicate = Callable[[str], bool]
LineCallback = Callable[[str], None]


@dataclass(eq=False)
class PendingWaiter:
    """A registered wait for the first line matching `predicate`."""
    predicate: LinePredicate
    future: asyncio.Future
    on_line: Optional[LineCallback] = None
    timeout_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def resolve(self, line: str) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_result(line)

    def reject(self, error: BaseException) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    def _cancel_timer(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


class LineCorrelator:
    """
    Matches incoming lines against pending waiters.

    Every line is first handed to each live waiter's on_line callback, then
    tested against the predicates in registration order; the first waiter
    that matches is resolved and removed, the others stay live. A waiter
    only sees lines dispatched after it was registered.
    """

    def __init__(self):
        self._pending: List[PendingWaiter] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def wait_for_line(
        self,
        predicate: LinePredicate,
        timeout: float = DEFAULT_TIMEOUT,
        on_line: Optional[LineCallback] = None,
    ) -> asyncio.Future:
        """
        Register a waiter and return a future for the matching line.

        Args:
            predicate: Returns True for the line that completes the wait
            timeout: Seconds before the future fails with ResponseTimeoutError
            on_line: Called with every line while the waiter is live

        Returns:
            Future resolving to the matching line
        """
        loop = asyncio.get_running_loop()
        waiter = PendingWaiter(predicate=predicate, future=loop.create_future(), on_line=on_line)
        waiter.timeout_handle = loop.call_later(timeout, self._expire, waiter, timeout)
        self._pending.append(waiter)
        return waiter.future

    def _expire(self, waiter: PendingWaiter, timeout: float) -> None:
        """Drop a waiter whose deadline passed."""
        waiter.timeout_handle = None
        if waiter in self._pending:
            self._pending.remove(waiter)
        logger.debug(f"Waiter timed out after {timeout}s")
        waiter.reject(ResponseTimeoutError("Engine response timeout"))

    def dispatch(self, line: str) -> None:
        """Deliver one engine line to the live waiters."""
        matched = False
        snapshot = list(self._pending)
        finished = []

        for waiter in snapshot:
            if waiter.future.done():
                finished.append(waiter)
                continue

            try:
                if waiter.on_line is not None:
                    waiter.on_line(line)
                is_match = not matched and waiter.predicate(line)
            except Exception as e:
                # A broken callback fails only its own waiter
                waiter.reject(e)
                finished.append(waiter)
                continue

            if is_match:
                matched = True
                waiter.resolve(line)
                finished.append(waiter)

        # Waiters registered by a callback during this pass stay pending
        self._pending = [w for w in self._pending if w not in finished]

    def reject_all(self, error: BaseException) -> None:
        """Fail every live waiter with `error` and clear the list."""
        pending, self._pending = self._pending, []
        for waiter in pending:
            waiter.reject(error)
