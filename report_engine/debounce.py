"""
Latest-wins scheduling for debounced search.

Raw keystrokes are coalesced: each submission replaces the pending one, and
only the most recent call runs once the quiet interval elapses. Superseded
calls are discarded, never queued or merged.
"""

import logging
import threading
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.3

TimerFactory = Callable[[float, Callable[[], None]], Any]


class LatestWinsScheduler:
    """Thread-safe single-slot holder for one pending call."""

    def __init__(
        self,
        delay: float = DEFAULT_DELAY_SECONDS,
        timer_factory: TimerFactory = threading.Timer,
    ):
        """Initialize the scheduler.

        Args:
            delay: Quiet interval in seconds before the pending call fires
            timer_factory: Builds a startable, cancellable timer from
                (delay, callback); threading.Timer by default
        """
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._timer: Optional[Any] = None
        self._pending: Optional[Tuple[Callable[..., Any], tuple, dict]] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """Schedule fn, discarding whatever call was pending."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                logger.debug("Discarded superseded call")
            self._generation += 1
            generation = self._generation
            self._pending = (fn, args, kwargs)
            self._timer = self._timer_factory(
                self.delay, lambda: self._fire(generation)
            )
            if hasattr(self._timer, 'daemon'):
                self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None
            self._generation += 1

    def flush(self) -> Any:
        """Run the pending call now and return its result (None if idle)."""
        with self._lock:
            call = self._take(self._generation)
        if call is None:
            return None
        fn, args, kwargs = call
        return fn(*args, **kwargs)

    def _take(self, generation: int) -> Optional[Tuple[Callable[..., Any], tuple, dict]]:
        # A timer that lost the race with submit/cancel finds a newer
        # generation and does nothing.
        if generation != self._generation or self._pending is None:
            return None
        call = self._pending
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending = None
        return call

    def _fire(self, generation: int) -> None:
        with self._lock:
            call = self._take(generation)
        if call is None:
            return
        fn, args, kwargs = call
        fn(*args, **kwargs)
