"""Tests for timeout, retry and backoff helpers."""

import time
from unittest.mock import MagicMock

import pytest

from printstation.retry import OperationTimeout, next_backoff_interval, retry_call, run_with_timeout


class TestRunWithTimeout:
    def test_returns_value(self):
        assert run_with_timeout(lambda a, b=0: a + b, 1, 2, b=3) == 5

    def test_reraises_error(self):
        def broken():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            run_with_timeout(broken, 1)

    def test_timeout(self):
        def slow():
            time.sleep(1)

        with pytest.raises(OperationTimeout, match="slow timed out after 0.05s"):
            run_with_timeout(slow, 0.05)


class TestRetryCall:
    """Tests for bounded retries."""

    def test_first_attempt_succeeds(self):
        func = MagicMock(return_value="ok")
        sleep = MagicMock()

        assert retry_call(func, "a", attempts=3, delay=2.0, sleep=sleep, key="v") == "ok"

        func.assert_called_once_with("a", key="v")
        sleep.assert_not_called()

    def test_retries_with_delay(self):
        func = MagicMock(side_effect=[OSError("busy"), OSError("busy"), "ok"])
        sleep = MagicMock()

        assert retry_call(func, attempts=3, delay=2.0, sleep=sleep) == "ok"

        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 2.0]

    def test_raises_last_error(self):
        func = MagicMock(side_effect=[OSError("first"), OSError("last")])

        with pytest.raises(OSError, match="last"):
            retry_call(func, attempts=2, delay=0, sleep=MagicMock())

    def test_at_least_one_attempt(self):
        func = MagicMock(return_value=1)
        assert retry_call(func, attempts=0, sleep=MagicMock()) == 1
        func.assert_called_once()


class TestNextBackoffInterval:
    @pytest.mark.parametrize(
        "current,expected",
        [(5.0, 10.0), (10.0, 20.0), (40.0, 60.0), (60.0, 60.0), (1.0, 5.0)],
    )
    def test_failure_doubles_within_bounds(self, current, expected):
        assert next_backoff_interval(current, 5.0, 60.0, success=False) == expected

    def test_success_resets(self):
        assert next_backoff_interval(60.0, 5.0, 60.0, success=True) == 5.0
