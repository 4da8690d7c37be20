"""
Unit tests for the Concurrent Generation Dispatcher and its worker.

Tests:
1. Worker returns tagged result/error messages and never raises
2. Results are delivered on the caller's thread, keyed by request
3. Requests are spread round-robin over the contexts
4. Cancelled keys and unknown messages invoke no callback
5. Worker crashes are routed to on_error
6. Shutdown drops callbacks and rejects new submits
7. Shutdown terminates process workers that are still running a request
8. One round trip through the default loky backend

Run with: python -m pytest mgrs_graticule/_tests/test_dispatcher.py -v
"""

import os
import threading
import time
from pathlib import Path

import pytest

from mgrs_graticule.config_types import ParallelConfig
from mgrs_graticule.models import DispatchError, GenerationRequest
from mgrs_graticule.parallel.dispatcher import GenerationDispatcher, create_dispatcher
from mgrs_graticule.parallel.generation_worker import (
    ERROR_MESSAGE,
    RESULT_MESSAGE,
    run_generation_request,
)
from mgrs_graticule.zone_boundaries import get_zone


# ============================================================================
# FIXTURES
# ============================================================================


def _request(key: str = "05Q", parent_id: str = "05Q") -> GenerationRequest:
    zone = get_zone("05Q")
    return GenerationRequest(
        key=key,
        zone=zone.number,
        hemisphere=zone.hemisphere,
        boundary=(zone.ring,),
        cell_size_m=100000,
        parent_id=parent_id,
    )


def _echo_worker(payload):
    return {"type": RESULT_MESSAGE, "key": payload["key"], "features": []}


def _sleeping_worker(payload):
    """Record the worker pid in the file named by the key, then block."""
    Path(payload["key"]).write_text(str(os.getpid()))
    time.sleep(60)
    return _echo_worker(payload)


def _drain(dispatcher: GenerationDispatcher, timeout: float = 10.0) -> int:
    """Deliver until nothing is pending or the timeout expires."""
    delivered = 0
    deadline = time.monotonic() + timeout
    while dispatcher.has_pending and time.monotonic() < deadline:
        delivered += dispatcher.deliver_results(timeout=0.05)
    return delivered


@pytest.fixture
def thread_dispatcher():
    dispatcher = GenerationDispatcher(pool_size=4, backend="thread", worker_fn=_echo_worker)
    yield dispatcher
    dispatcher.shutdown()


# ============================================================================
# TESTS
# ============================================================================


class TestGenerationWorker:
    """The worker function itself, called in-process."""

    def test_success_message(self):
        """A valid request yields a tagged result with serialised features."""
        message = run_generation_request(_request().to_dict())

        assert message["type"] == RESULT_MESSAGE
        assert message["key"] == "05Q"
        assert message["features"]
        assert message["diagnostics"]["feature_count"] == len(message["features"])

    def test_error_message_instead_of_raising(self):
        """A malformed parent id comes back as an error message."""
        message = run_generation_request(_request(parent_id="bogus").to_dict())

        assert message["type"] == ERROR_MESSAGE
        assert message["key"] == "05Q"
        assert "EncodingError" in message["error"]

    def test_missing_fields(self):
        message = run_generation_request({"key": "broken"})
        assert message["type"] == ERROR_MESSAGE
        assert message["key"] == "broken"


class TestDelivery:
    """Callbacks fire on the caller's thread, matched by key."""

    def test_result_reaches_its_callback(self, thread_dispatcher):
        results = {}
        caller = threading.get_ident()

        def on_result(result):
            results[result.key] = threading.get_ident()

        for key in ("05Q", "06Q", "07Q"):
            thread_dispatcher.submit(_request(key), on_result=on_result)

        assert _drain(thread_dispatcher) == 3
        assert set(results) == {"05Q", "06Q", "07Q"}
        assert all(ident == caller for ident in results.values())

    def test_callbacks_wait_for_delivery(self, thread_dispatcher):
        """Nothing is invoked until deliver_results runs."""
        results = []
        thread_dispatcher.submit(_request(), on_result=results.append)
        time.sleep(0.2)

        assert results == []
        _drain(thread_dispatcher)
        assert len(results) == 1
        assert results[0].success

    def test_round_robin(self):
        """Four requests on four contexts run concurrently."""
        gate = threading.Barrier(4, timeout=5)

        def worker(payload):
            gate.wait()
            return _echo_worker(payload)

        dispatcher = GenerationDispatcher(pool_size=4, backend="thread", worker_fn=worker)
        try:
            for i in range(4):
                dispatcher.submit(_request(f"k{i}"), on_result=lambda r: None)
            assert _drain(dispatcher) == 4
            assert dispatcher.stats.delivered == 4
        finally:
            dispatcher.shutdown()


class TestDroppedMessages:
    """Messages nobody waits for are dropped silently."""

    def test_cancelled_key_invokes_nothing(self):
        release = threading.Event()
        results = []

        def slow_worker(payload):
            release.wait(5)
            return _echo_worker(payload)

        dispatcher = GenerationDispatcher(pool_size=1, backend="thread", worker_fn=slow_worker)
        try:
            dispatcher.submit(_request(), on_result=results.append)
            assert dispatcher.cancel("05Q")
            assert not dispatcher.has_pending
            release.set()

            deadline = time.monotonic() + 5
            while dispatcher.stats.dropped == 0 and time.monotonic() < deadline:
                dispatcher.deliver_results(timeout=0.05)

            assert results == []
            assert dispatcher.stats.dropped == 1
        finally:
            dispatcher.shutdown()

    def test_unknown_key(self, thread_dispatcher):
        handled = thread_dispatcher.handle_message(
            {"type": RESULT_MESSAGE, "key": "never-submitted", "features": []}
        )
        assert not handled
        assert thread_dispatcher.stats.dropped == 1

    def test_callback_fires_at_most_once(self, thread_dispatcher):
        """A duplicate message for the same key is dropped."""
        results = []
        thread_dispatcher.submit(_request(), on_result=results.append)
        _drain(thread_dispatcher)

        duplicate = {"type": RESULT_MESSAGE, "key": "05Q", "features": []}
        assert not thread_dispatcher.handle_message(duplicate)
        assert len(results) == 1

    def test_forget_all(self, thread_dispatcher):
        thread_dispatcher.submit(_request("a"), on_result=lambda r: None)
        thread_dispatcher.submit(_request("b"), on_result=lambda r: None)
        thread_dispatcher.forget_all()
        assert thread_dispatcher.pending_keys == set()


class TestErrors:
    """Failures reach on_error with (key, message)."""

    def test_worker_crash_routes_to_on_error(self):
        errors = []

        def crashing_worker(payload):
            raise RuntimeError("worker died")

        dispatcher = GenerationDispatcher(
            pool_size=2, backend="thread", worker_fn=crashing_worker
        )
        try:
            dispatcher.submit(
                _request(),
                on_result=lambda r: pytest.fail("unexpected result"),
                on_error=lambda key, error: errors.append((key, error)),
            )
            _drain(dispatcher)
        finally:
            dispatcher.shutdown()

        assert len(errors) == 1
        key, error = errors[0]
        assert key == "05Q"
        assert "RuntimeError" in error
        assert dispatcher.stats.errors == 1

    def test_error_message_without_on_error(self, thread_dispatcher):
        """An error with no on_error registered is still consumed."""
        thread_dispatcher.submit(_request("x"), on_result=lambda r: None)
        handled = thread_dispatcher.handle_message(
            {"type": ERROR_MESSAGE, "key": "x", "error": "boom"}
        )
        assert handled
        assert "x" not in thread_dispatcher.pending_keys


class TestShutdown:
    """Teardown semantics."""

    def test_submit_after_shutdown_raises(self, thread_dispatcher):
        thread_dispatcher.shutdown()
        with pytest.raises(DispatchError):
            thread_dispatcher.submit(_request(), on_result=lambda r: None)

    def test_no_callback_after_shutdown(self):
        release = threading.Event()
        results = []

        def slow_worker(payload):
            release.wait(5)
            return _echo_worker(payload)

        dispatcher = GenerationDispatcher(pool_size=1, backend="thread", worker_fn=slow_worker)
        dispatcher.submit(_request(), on_result=results.append)
        dispatcher.shutdown()
        release.set()
        time.sleep(0.1)

        assert dispatcher.deliver_results(timeout=0.1) == 0
        assert results == []
        assert dispatcher.closed
        assert not dispatcher.has_pending

    def test_shutdown_is_idempotent(self, thread_dispatcher):
        thread_dispatcher.shutdown()
        thread_dispatcher.shutdown()
        assert thread_dispatcher.closed

    def test_context_manager(self):
        with GenerationDispatcher(pool_size=1, backend="thread", worker_fn=_echo_worker) as d:
            assert not d.closed
        assert d.closed

    def test_invalid_pool_size(self):
        with pytest.raises(ValueError):
            GenerationDispatcher(pool_size=0, backend="thread")


class TestProcessTermination:
    """Process backends kill a worker that is mid-request."""

    @pytest.mark.parametrize("backend", ["process", "loky"])
    def test_running_worker_is_terminated(self, backend, tmp_path):
        started = tmp_path / "started"
        dispatcher = GenerationDispatcher(
            pool_size=1, backend=backend, worker_fn=_sleeping_worker
        )
        request = _request(key=str(started))
        dispatcher.submit(request, on_result=lambda r: None)

        deadline = time.monotonic() + 60.0
        while not started.exists() and time.monotonic() < deadline:
            time.sleep(0.05)
        assert started.exists(), "worker never started"
        workers = list(dispatcher._executors[0]._processes.values())
        assert workers

        dispatcher.shutdown()

        deadline = time.monotonic() + 10.0
        while any(p.is_alive() for p in workers) and time.monotonic() < deadline:
            time.sleep(0.05)
        assert not any(p.is_alive() for p in workers)


class TestLokyBackend:
    """The default process backend runs the real worker."""

    def test_round_trip(self):
        config = ParallelConfig(pool_size=1, backend="loky")
        results = []
        with create_dispatcher(config) as dispatcher:
            dispatcher.submit(_request(), on_result=results.append)
            _drain(dispatcher, timeout=120.0)

        assert len(results) == 1
        result = results[0]
        assert result.key == "05Q"
        assert result.features
        assert all(f.id.startswith("05Q") for f in result.features)
        assert result.diagnostics.feature_count == len(result.features)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
