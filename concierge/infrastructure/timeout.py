"""
Deadline wrapper for collaborator calls (message fetch, classification, calendar writes).

The call runs on a single-use worker thread; if it misses the deadline the
caller gets ExternalCallFailure immediately and the worker is abandoned
rather than joined.
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable
from typing import Any, TypeVar

from concierge.config import CALL_TIMEOUT_SECONDS
from concierge.errors import ExternalCallFailure
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter

T = TypeVar("T")

logger = get_logger(__name__)


def run_with_timeout(
    operation: str,
    func: Callable[..., T],
    *args: Any,
    timeout_seconds: float | None = None,
    **kwargs: Any,
) -> T:
    """
    Run func(*args, **kwargs) with a deadline.

    Args:
        operation: Short name used in logs, counters and the raised error
        func: Callable to run
        timeout_seconds: Deadline in seconds (default CALL_TIMEOUT_SECONDS)

    Returns:
        Whatever func returns

    Raises:
        ExternalCallFailure: On timeout or on any exception raised by func
    """
    timeout = CALL_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=1, thread_name_prefix=f"call-{operation}"
    )
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError:
        counter(f"external.{operation}.timeout")
        logger.warning("%s timed out after %.1fs", operation, timeout)
        raise ExternalCallFailure(operation, f"timed out after {timeout}s") from None
    except ExternalCallFailure:
        raise
    except Exception as e:
        counter(f"external.{operation}.error")
        logger.warning("%s failed: %s", operation, e)
        raise ExternalCallFailure(operation, str(e)) from e
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
