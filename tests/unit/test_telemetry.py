"""
Tests for in-process telemetry and the collaborator deadline wrapper.
"""

from __future__ import annotations

import threading

import pytest

from concierge.errors import ExternalCallFailure
from concierge.infrastructure.timeout import run_with_timeout
from concierge.observability.telemetry import (
    counter,
    get_counter,
    get_latency_stats,
    reset_latencies,
    time_block,
)


class TestCounters:
    def test_counter_accumulates(self):
        counter("x.hits")
        counter("x.hits", 2)
        assert get_counter("x.hits") == 3
        assert get_counter("x.never") == 0

    def test_counter_is_thread_safe(self):
        def work():
            for _ in range(500):
                counter("x.threads")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert get_counter("x.threads") == 4000


def test_time_block_records_latency():
    reset_latencies()
    with time_block("x.latency"):
        pass
    stats = get_latency_stats("x.latency")
    assert stats["count"] == 1
    assert stats["min"] >= 0.0
    reset_latencies()


class TestRunWithTimeout:
    def test_returns_result(self):
        assert run_with_timeout("add", lambda a, b: a + b, 1, 2) == 3

    def test_timeout_raises_and_counts(self):
        release = threading.Event()
        try:
            with pytest.raises(ExternalCallFailure) as exc_info:
                run_with_timeout("slow", release.wait, 5, timeout_seconds=0.05)
        finally:
            release.set()
        assert exc_info.value.operation == "slow"
        assert get_counter("external.slow.timeout") == 1

    def test_error_is_wrapped_and_counted(self):
        def boom():
            raise ConnectionError("reset by peer")

        with pytest.raises(ExternalCallFailure, match="reset by peer"):
            run_with_timeout("fetch", boom)
        assert get_counter("external.fetch.error") == 1
