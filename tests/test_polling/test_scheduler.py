"""Tests for the adaptive polling scheduler."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from printstation.api import ApiConnectionError, ApiError, AuthenticationError
from printstation.events import CONNECTION_STATUS
from printstation.scheduler import MAX_POLL_INTERVAL, MIN_POLL_INTERVAL, PollingScheduler


@pytest.fixture
def fetch():
    fetch = MagicMock(return_value=[])
    fetch.__name__ = "fetch"
    return fetch


@pytest.fixture
def handle():
    return MagicMock()


@pytest.fixture
def scheduler(fetch, handle, events, fake_timer_factory):
    return PollingScheduler(fetch, handle, events=events, timer_factory=fake_timer_factory)


def _connection_events(recorded):
    return [payload for name, payload in recorded if name == CONNECTION_STATUS]


class TestStartStop:
    """Tests for starting and stopping the loop."""

    def test_start_fetches_immediately(self, scheduler, timers):
        """The first poll is armed with no delay."""
        scheduler.start()

        assert scheduler.is_running
        assert len(timers) == 1
        assert timers[0].interval == 0
        assert timers[0].started
        assert timers[0].daemon is True

    def test_start_is_idempotent(self, scheduler, timers):
        """Starting twice keeps a single timer chain."""
        scheduler.start()
        scheduler.start()
        assert len(timers) == 1

    def test_start_resets_state(self, scheduler, fetch):
        """Restarting resets the interval and failure count."""
        fetch.side_effect = ApiConnectionError("refused")
        scheduler.run_cycle()
        scheduler.run_cycle()
        assert scheduler.state.consecutive_failures == 2

        scheduler.start()

        assert scheduler.state.current_interval == MIN_POLL_INTERVAL
        assert scheduler.state.consecutive_failures == 0

    def test_stop_cancels_pending_timer(self, scheduler, timers):
        scheduler.start()
        scheduler.stop()

        assert not scheduler.is_running
        assert timers[0].cancelled

    def test_stop_is_idempotent(self, scheduler):
        scheduler.stop()
        scheduler.stop()
        assert not scheduler.is_running

    def test_tick_rearms_after_cycle(self, scheduler, timers, fetch):
        """Each tick runs one cycle then arms the next timer at the current interval."""
        scheduler.start()
        timers[0].fire()

        fetch.assert_called_once()
        assert len(timers) == 2
        assert timers[1].interval == MIN_POLL_INTERVAL
        assert timers[1].started

    def test_stop_during_cycle_prevents_rearm(self, scheduler, timers, fetch):
        """A cycle in flight completes, but the loop is not re-armed after stop()."""
        fetch.side_effect = lambda: scheduler.stop() or []
        scheduler.start()

        timers[0].fire()

        assert len(timers) == 1
        assert not scheduler.is_running

    def test_restart_during_cycle_keeps_one_chain(self, scheduler, timers, fetch):
        """stop() then start() inside a cycle arms exactly one next poll."""
        fetch.side_effect = lambda: scheduler.stop() or scheduler.start() or []
        scheduler.start()

        timers[0].fire()

        assert scheduler.is_running
        assert len(timers) == 2
        assert timers[1].started

    def test_stale_timer_does_not_overlap(self, scheduler, timers, fetch):
        """A timer firing while a cycle runs is ignored."""
        fetch.side_effect = lambda: timers[0].fire() or []
        scheduler.start()

        timers[0].fire()

        fetch.assert_called_once()


class TestBackoff:
    """Tests for the adaptive interval."""

    @pytest.mark.parametrize("failures", [1, 2, 3, 4, 5, 8])
    def test_interval_after_failures(self, scheduler, fetch, failures):
        """After N failures the interval is min(MIN * 2^N, MAX)."""
        fetch.side_effect = ApiConnectionError("timeout")

        for _ in range(failures):
            assert scheduler.run_cycle() is False

        state = scheduler.state
        assert state.consecutive_failures == failures
        assert state.current_interval == min(MIN_POLL_INTERVAL * 2**failures, MAX_POLL_INTERVAL)

    def test_success_resets(self, scheduler, fetch):
        """A successful fetch resets interval and failures."""
        fetch.side_effect = [ApiError("HTTP 500"), ApiError("HTTP 502"), []]

        scheduler.run_cycle()
        scheduler.run_cycle()
        assert scheduler.state.current_interval == 20.0

        assert scheduler.run_cycle() is True
        assert scheduler.state.current_interval == MIN_POLL_INTERVAL
        assert scheduler.state.consecutive_failures == 0

    def test_interval_stays_in_bounds(self, scheduler, fetch):
        """The interval never leaves [MIN, MAX]."""
        fetch.side_effect = RuntimeError("unexpected")
        for _ in range(20):
            scheduler.run_cycle()
            assert MIN_POLL_INTERVAL <= scheduler.state.current_interval <= MAX_POLL_INTERVAL

    @pytest.mark.parametrize(
        "error",
        [
            ApiConnectionError("refused"),
            AuthenticationError("token expired", status_code=401),
            ApiError("HTTP 500", status_code=500),
            ValueError("bad payload"),
        ],
    )
    def test_every_error_backs_off(self, scheduler, fetch, error):
        """Error kind does not change the backoff."""
        fetch.side_effect = error
        scheduler.run_cycle()
        assert scheduler.state.current_interval == MIN_POLL_INTERVAL * 2

    def test_next_timer_uses_backed_off_interval(self, scheduler, timers, fetch):
        """After a failed tick the next timer waits the doubled interval."""
        fetch.side_effect = ApiConnectionError("refused")
        scheduler.start()
        timers[0].fire()
        timers[1].fire()

        assert timers[1].interval == MIN_POLL_INTERVAL * 2
        assert timers[2].interval == MIN_POLL_INTERVAL * 4

    def test_state_is_a_copy(self, scheduler):
        """Mutating the returned state does not affect the scheduler."""
        state = scheduler.state
        state.consecutive_failures = 99
        assert scheduler.state.consecutive_failures == 0


class TestCycle:
    """Tests for one fetch-and-process cycle."""

    def test_success_hands_jobs_over(self, scheduler, fetch, handle):
        jobs = [{"id": "1"}]
        fetch.return_value = jobs

        assert scheduler.run_cycle() is True
        handle.assert_called_once_with(jobs)

    def test_failure_skips_handling(self, scheduler, fetch, handle):
        fetch.side_effect = ApiConnectionError("refused")
        scheduler.run_cycle()
        handle.assert_not_called()

    def test_connection_status_events(self, scheduler, fetch, recorded):
        """Every fetch outcome is reported to the UI."""
        fetch.side_effect = [[], ApiConnectionError("refused"), AuthenticationError("401"), []]

        for _ in range(4):
            scheduler.run_cycle()

        assert _connection_events(recorded) == [True, False, False, True]

    def test_handler_error_does_not_break_loop(self, scheduler, timers, handle):
        """A crash while handling jobs is logged and the loop continues."""
        handle.side_effect = RuntimeError("boom")
        scheduler.start()

        timers[0].fire()

        assert len(timers) == 2
        assert scheduler.state.consecutive_failures == 0

    def test_independent_schedulers(self, fetch, handle, fake_timer_factory):
        """Two schedulers keep separate state."""
        failing = MagicMock(side_effect=ApiConnectionError("refused"))
        first = PollingScheduler(failing, handle, timer_factory=fake_timer_factory)
        second = PollingScheduler(fetch, handle, timer_factory=fake_timer_factory)

        first.run_cycle()
        second.run_cycle()

        assert first.state.consecutive_failures == 1
        assert second.state.consecutive_failures == 0


class TestRealTimers:
    """Tests driving the loop with threading.Timer."""

    def test_restart_mid_fetch_never_overlaps(self, handle):
        """Cycles never run concurrently after stop() and start() during a slow fetch."""
        lock = threading.Lock()
        in_fetch = threading.Event()
        counts = {"active": 0, "peak": 0, "calls": 0}

        def slow_fetch():
            with lock:
                counts["active"] += 1
                counts["calls"] += 1
                counts["peak"] = max(counts["peak"], counts["active"])
            in_fetch.set()
            time.sleep(0.3)
            with lock:
                counts["active"] -= 1
            return []

        scheduler = PollingScheduler(slow_fetch, handle, min_interval=0.05, max_interval=0.4)
        try:
            scheduler.start()
            assert in_fetch.wait(2)
            scheduler.stop()
            scheduler.start()
            time.sleep(1.0)
        finally:
            scheduler.stop()
        time.sleep(0.4)

        assert counts["peak"] == 1
        assert counts["calls"] >= 2
