"""Adaptive polling loop with exponential backoff."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace

from printstation.api import ApiConnectionError, ApiError, AuthenticationError
from printstation.events import CONNECTION_STATUS, EventBus
from printstation.retry import next_backoff_interval

logger = logging.getLogger(__name__)

# Polling interval bounds in seconds
MIN_POLL_INTERVAL = 5.0
MAX_POLL_INTERVAL = 60.0


@dataclass
class PollingState:
    """Backoff state of one scheduler.

    Attributes:
        current_interval: Seconds until the next poll.
        consecutive_failures: Failed polls since the last success.
    """

    current_interval: float = MIN_POLL_INTERVAL
    consecutive_failures: int = 0


class PollingScheduler:
    """Self-rearming polling loop.

    Each tick runs one fetch-and-process cycle and only then arms the next
    timer, so a slow cycle never overlaps the following one. Failed fetches
    double the interval up to the maximum; a successful fetch resets it.
    """

    def __init__(
        self,
        fetch: Callable[[], list[dict]],
        handle: Callable[[list[dict]], None],
        events: EventBus | None = None,
        min_interval: float = MIN_POLL_INTERVAL,
        max_interval: float = MAX_POLL_INTERVAL,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """Initialize the scheduler.

        Args:
            fetch: Returns pending jobs; raises on any fetch failure.
            handle: Processes the jobs of a successful fetch.
            events: Event bus for connection-status events.
            min_interval: Interval after a success, in seconds.
            max_interval: Backoff ceiling, in seconds.
            timer_factory: threading.Timer compatible factory.
        """
        self.fetch = fetch
        self.handle = handle
        self.events = events or EventBus()
        self.min_interval = min_interval
        self.max_interval = max_interval
        self._timer_factory = timer_factory
        self._state = PollingState(current_interval=min_interval)
        self._timer = None
        self._running = False
        self._in_flight = False
        self._lock = threading.RLock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> PollingState:
        with self._lock:
            return replace(self._state)

    def start(self) -> None:
        """Start polling, with the first fetch right away.

        If a cycle from before a stop() is still running, that cycle arms
        the next poll when it finishes, so there is only ever one chain.
        """
        with self._lock:
            if self._running:
                return
            logger.info("Starting job polling")
            self._running = True
            self._state = PollingState(current_interval=self.min_interval)
            if self._in_flight:
                logger.debug("Poll cycle in flight, next poll armed when it finishes")
                return
            self._arm(0)

    def stop(self) -> None:
        """Cancel the next scheduled poll. A cycle already running completes."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._running:
                logger.info("Job polling stopped")
            self._running = False

    def _arm(self, delay: float) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._timer_factory(delay, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _schedule_next(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._arm(self._state.current_interval)

    def _tick(self) -> None:
        with self._lock:
            if self._in_flight or not self._running:
                return
            self._in_flight = True

        try:
            self.run_cycle()
        finally:
            with self._lock:
                self._in_flight = False
                self._schedule_next()

    def _record(self, success: bool) -> None:
        with self._lock:
            state = self._state
            if success:
                state.consecutive_failures = 0
            else:
                state.consecutive_failures += 1
            state.current_interval = next_backoff_interval(
                state.current_interval, self.min_interval, self.max_interval, success
            )

    def run_cycle(self) -> bool:
        """Run one fetch-and-process cycle.

        Returns:
            bool: True if the fetch succeeded.
        """
        try:
            jobs = self.fetch()
        except Exception as e:
            self._record(success=False)
            self._log_fetch_error(e)
            self.events.emit(CONNECTION_STATUS, False)
            return False

        self._record(success=True)
        self.events.emit(CONNECTION_STATUS, True)

        try:
            self.handle(jobs)
        except Exception as e:
            logger.exception(f"Error handling polled jobs: {e}")
        return True

    def _log_fetch_error(self, error: Exception) -> None:
        state = self.state
        if isinstance(error, AuthenticationError):
            logger.warning("Poll rejected (401): token expired or invalid, reconfigure the agent")
        elif isinstance(error, ApiConnectionError):
            logger.error(f"Could not connect to server: {error}")
        elif isinstance(error, ApiError):
            logger.error(f"Server error while polling: {error}")
        else:
            logger.error(f"Error while polling: {error}")

        logger.warning(
            f"Backoff: next poll in {state.current_interval:g}s "
            f"(failure {state.consecutive_failures})"
        )
