"""Request spacing for the rate-limited map provider."""

import logging
import threading
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestThrottler:
    """
    FIFO gate enforcing a minimum delay between the starts of outbound requests.

    Callers are served strictly in the order they call acquire(). Each caller
    waits until min_delay has elapsed since the previous caller was released.
    Only the start is serialized: once acquire() returns, the request runs
    without holding anything, so slow transfers never delay the queue beyond
    the spacing itself.

    One instance should be shared by everything talking to the same provider.
    The clock and sleep functions are injectable for tests.
    """

    def __init__(
        self,
        min_delay: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize throttler.

        Args:
            min_delay: Minimum spacing between request starts, in seconds
            clock: Monotonic clock returning seconds
            sleep: Blocking sleep taking seconds
        """
        if min_delay < 0:
            raise ValueError("min_delay must be >= 0")
        self.min_delay = min_delay
        self._clock = clock
        self._sleep = sleep

        self._cond = threading.Condition()
        self._next_ticket = 0
        self._now_serving = 0
        self._abandoned: set[int] = set()
        self._last_start: Optional[float] = None

    @property
    def pending(self) -> int:
        """Number of callers queued or being released."""
        with self._cond:
            return self._next_ticket - self._now_serving

    @property
    def last_start(self) -> Optional[float]:
        """Clock time at which the last caller was released."""
        with self._cond:
            return self._last_start

    def acquire(self) -> float:
        """
        Block until this caller may start its request.

        Returns:
            Clock time at which the caller was released
        """
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            try:
                while ticket != self._now_serving:
                    self._cond.wait()
            except BaseException:
                if ticket == self._now_serving:
                    self._advance()
                else:
                    self._abandoned.add(ticket)
                raise
            last_start = self._last_start

        started: Optional[float] = None
        try:
            # Only the ticket holder gets here, so the spacing wait needs no lock
            if last_start is not None:
                wait = last_start + self.min_delay - self._clock()
                if wait > 0:
                    logger.debug("Throttling request %d for %.3fs", ticket, wait)
                    self._sleep(wait)
            started = self._clock()
        finally:
            # The next ticket is served even when this caller gave up waiting
            with self._cond:
                if started is not None:
                    self._last_start = started
                self._advance()
        return started

    def _advance(self) -> None:
        """Serve the next live ticket. Caller holds the lock."""
        self._now_serving += 1
        while self._now_serving in self._abandoned:
            self._abandoned.discard(self._now_serving)
            self._now_serving += 1
        self._cond.notify_all()

    def submit(self, request: Callable[..., T], *args, **kwargs) -> T:
        """Wait for a slot, then run request(*args, **kwargs) outside the gate."""
        self.acquire()
        return request(*args, **kwargs)

