"""Timeout, retry and backoff helpers."""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationTimeout(Exception):
    """A bounded call did not finish in time."""

    pass


def run_with_timeout(func: Callable[..., T], timeout: float, *args: Any, **kwargs: Any) -> T:
    """Run a call in a daemon thread and wait at most `timeout` seconds.

    A call that overruns is abandoned, not interrupted: its thread keeps
    running in the background but never blocks interpreter exit.

    Args:
        func: Callable to run.
        timeout: Seconds to wait.
        *args: Positional arguments for func.
        **kwargs: Keyword arguments for func.

    Returns:
        The value returned by func.

    Raises:
        OperationTimeout: If func did not finish in time.
        Exception: Whatever func raised.
    """
    outcome: dict[str, Any] = {}

    def _target():
        try:
            outcome["value"] = func(*args, **kwargs)
        except BaseException as e:
            outcome["error"] = e

    name = getattr(func, "__name__", "call")
    worker = threading.Thread(target=_target, daemon=True, name=f"printstation-{name}")
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise OperationTimeout(f"{name} timed out after {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


def retry_call(
    func: Callable[..., T],
    *args: Any,
    attempts: int = 3,
    delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Call `func` until it succeeds, with a fixed delay between attempts.

    Args:
        func: Callable to run.
        *args: Positional arguments for func.
        attempts: Maximum number of attempts (>= 1).
        delay: Seconds to wait between attempts.
        sleep: Sleep function (injectable for tests).
        **kwargs: Keyword arguments for func.

    Returns:
        The value returned by the first successful attempt.

    Raises:
        Exception: The error of the last attempt once all attempts failed.
    """
    attempts = max(1, attempts)
    name = getattr(func, "__name__", "call")

    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if attempt == attempts:
                logger.error(f"{name} failed after {attempts} attempts: {e}")
                raise
            logger.warning(
                f"{name} attempt {attempt}/{attempts} failed: {e}; retrying in {delay:g}s"
            )
            sleep(delay)

    raise AssertionError("unreachable")


def next_backoff_interval(current: float, minimum: float, maximum: float, success: bool) -> float:
    """Compute the next polling interval.

    Success resets to the minimum; failure doubles the interval up to the
    maximum. The result is always within [minimum, maximum].
    """
    if success:
        return minimum
    return max(minimum, min(current * 2, maximum))
