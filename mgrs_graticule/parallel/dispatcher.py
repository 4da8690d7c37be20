"""
Concurrent Generation Dispatcher

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Run generation requests off the caller's thread on a fixed
pool of isolated execution contexts, and deliver each tagged result back to
the callback registered for its key.

Key Functions:
- GenerationDispatcher.submit(): register callbacks, post request round-robin
- GenerationDispatcher.deliver_results(): drain the inbox on the caller's thread
- GenerationDispatcher.handle_message(): route one tagged message to its callback
- GenerationDispatcher.shutdown(): terminate contexts, drop callbacks and inbox
- create_dispatcher(): factory from ParallelConfig

Concurrency Model:
- N single-worker executors (default 4), each a separate context, chosen
  round-robin per request
- Backends: "loky" (joblib's process executor, default), "process"
  (concurrent.futures), "thread" (tests and debugging)
- Futures complete on executor threads; their done-callbacks only put a
  message into a thread-safe inbox. Callbacks run exclusively inside
  deliver_results(), i.e. on the caller's thread, so the cache keeps a
  single writer.
- No deduplication: single-flight is the controller's job
- No ordering guarantees: messages are matched by key only

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import concurrent.futures
import itertools
import logging
import queue
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Set

from joblib.externals.loky import ProcessPoolExecutor as LokyProcessPoolExecutor

from mgrs_graticule.config_types import ParallelConfig, VALID_BACKENDS
from mgrs_graticule.models import (
    DispatchError,
    GenerationDiagnostics,
    GenerationRequest,
    GenerationResult,
    GridPolygon,
)
from mgrs_graticule.parallel.generation_worker import (
    ERROR_MESSAGE,
    RESULT_MESSAGE,
    run_generation_request,
)

logger = logging.getLogger("MGRS.Parallel.Dispatcher")

ResultCallback = Callable[[GenerationResult], None]
ErrorCallback = Callable[[str, str], None]
WorkerFn = Callable[[Dict[str, Any]], Dict[str, Any]]


# ═══════════════════════════════════════════════════════════════════════════
# 📊 DISPATCH STATISTICS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class DispatchStats:
    """Counters for dispatcher activity."""

    submitted: int = 0
    delivered: int = 0
    errors: int = 0
    dropped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary for logging."""
        return {
            "submitted": self.submitted,
            "delivered": self.delivered,
            "errors": self.errors,
            "dropped": self.dropped,
        }


@dataclass
class _PendingCallbacks:
    on_result: ResultCallback
    on_error: Optional[ErrorCallback] = None
    submitted_at: float = field(default_factory=time.perf_counter)


# ═══════════════════════════════════════════════════════════════════════════
# 🏗️ EXECUTION CONTEXTS
# ═══════════════════════════════════════════════════════════════════════════


def _create_executor(backend: str) -> concurrent.futures.Executor:
    """One single-worker executor; each is an isolated context."""
    if backend == "loky":
        return LokyProcessPoolExecutor(max_workers=1)
    if backend == "process":
        return concurrent.futures.ProcessPoolExecutor(max_workers=1)
    if backend == "thread":
        return concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mgrs-generation"
        )
    raise ValueError(f"backend must be one of {VALID_BACKENDS}, got {backend!r}")


def _shutdown_executor(executor: concurrent.futures.Executor, backend: str) -> None:
    """
    Stop an executor without waiting for running work.

    Process backends terminate their worker, including a request that is
    already running. Threads cannot be killed: a running thread request
    finishes in the background and its result is dropped.
    """
    if backend == "loky":
        executor.shutdown(wait=False, kill_workers=True)
        return
    if backend == "process":
        terminate = getattr(executor, "terminate_workers", None)
        if terminate is not None:
            # Python 3.14+
            terminate()
            return
        processes = list((getattr(executor, "_processes", None) or {}).values())
        executor.shutdown(wait=False, cancel_futures=True)
        for process in processes:
            if process.is_alive():
                process.terminate()
        return
    executor.shutdown(wait=False, cancel_futures=True)


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 DISPATCHER
# ═══════════════════════════════════════════════════════════════════════════


class GenerationDispatcher:
    """
    Fixed pool of isolated generation contexts with keyed callbacks.

    Example:
        with GenerationDispatcher(pool_size=4) as dispatcher:
            dispatcher.submit(request, on_result=store, on_error=report)
            while dispatcher.has_pending:
                dispatcher.deliver_results(timeout=0.05)
    """

    def __init__(
        self,
        pool_size: int = 4,
        backend: str = "loky",
        worker_fn: WorkerFn = run_generation_request,
    ):
        """
        Args:
            pool_size: Number of isolated contexts (each runs one request at a time)
            backend: "loky", "process" or "thread"
            worker_fn: Module-level function executed for each request payload
        """
        if pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {pool_size}")
        self.pool_size = pool_size
        self.backend = backend
        self.stats = DispatchStats()
        self._worker_fn = worker_fn
        self._executors: List[concurrent.futures.Executor] = [
            _create_executor(backend) for _ in range(pool_size)
        ]
        self._next_context = itertools.cycle(range(pool_size))
        self._callbacks: Dict[str, _PendingCallbacks] = {}
        self._inbox: "queue.Queue[Dict[str, Any]]" = queue.Queue()
        self._closed = False

        logger.info(
            f"🚀 Generation dispatcher started: {pool_size} contexts ({backend})"
        )

    # ───────────────────────────────────────────────────────────────────────
    # Submission
    # ───────────────────────────────────────────────────────────────────────

    def submit(
        self,
        request: GenerationRequest,
        on_result: ResultCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """
        Post a request to the next context round-robin.

        A second submit for a key that is still pending replaces its
        callbacks; both results will arrive and the first one wins.

        Raises:
            DispatchError: The dispatcher was shut down or the executor
                refused the request.
        """
        if self._closed:
            raise DispatchError(f"Dispatcher is shut down, cannot submit {request.key}")

        context = next(self._next_context)
        self._callbacks[request.key] = _PendingCallbacks(on_result, on_error)
        try:
            future = self._executors[context].submit(
                self._worker_fn, request.to_dict()
            )
        except Exception as exc:
            self._callbacks.pop(request.key, None)
            raise DispatchError(f"Cannot submit {request.key}: {exc}") from exc

        future.add_done_callback(partial(self._on_future_done, request.key))
        self.stats.submitted += 1
        logger.debug(f"📤 {request.key} -> context {context}")

    def _on_future_done(self, key: str, future: concurrent.futures.Future) -> None:
        """Runs on an executor thread: only enqueue, never touch callbacks."""
        if self._closed or future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            message = {
                "type": ERROR_MESSAGE,
                "key": key,
                "error": f"Worker crashed: {type(exc).__name__}: {exc}",
            }
        else:
            message = future.result()
        self._inbox.put(message)

    # ───────────────────────────────────────────────────────────────────────
    # Delivery (caller's thread)
    # ───────────────────────────────────────────────────────────────────────

    def deliver_results(self, timeout: float = 0.0) -> int:
        """
        Route every queued message to its callback.

        Args:
            timeout: Seconds to wait for the first message when the inbox is
                empty (0 never blocks)

        Returns:
            Number of callbacks invoked
        """
        delivered = 0
        block = timeout > 0
        while not self._closed:
            try:
                message = self._inbox.get(block=block, timeout=timeout if block else None)
            except queue.Empty:
                break
            block = False
            if self.handle_message(message):
                delivered += 1
        return delivered

    def handle_message(self, message: Dict[str, Any]) -> bool:
        """
        Route one tagged message to the callbacks registered for its key.

        The callbacks are removed before being invoked, so each fires at most
        once. Messages for unknown keys (cancelled, already delivered, or
        arriving after shutdown) are dropped silently.

        Returns:
            True when a callback was invoked
        """
        key = message.get("key", "")
        pending = None if self._closed else self._callbacks.pop(key, None)
        if pending is None:
            self.stats.dropped += 1
            logger.debug(f"Dropped message for {key!r}: no pending callback")
            return False

        if message.get("type") == RESULT_MESSAGE:
            self.stats.delivered += 1
            elapsed = time.perf_counter() - pending.submitted_at
            logger.debug(f"📥 {key} delivered after {elapsed:.2f}s")
            pending.on_result(_result_from_message(message))
            return True

        self.stats.errors += 1
        error = str(message.get("error", "unknown error"))
        logger.warning(f"⚠️ Generation failed for {key}: {error}")
        if pending.on_error is not None:
            pending.on_error(key, error)
        return True

    # ───────────────────────────────────────────────────────────────────────
    # Pending state
    # ───────────────────────────────────────────────────────────────────────

    @property
    def pending_keys(self) -> Set[str]:
        return set(self._callbacks)

    @property
    def has_pending(self) -> bool:
        return bool(self._callbacks)

    def cancel(self, key: str) -> bool:
        """Forget the callbacks of a key; its result will be dropped."""
        return self._callbacks.pop(key, None) is not None

    def forget_all(self) -> None:
        """Forget every pending callback; running work is left to finish."""
        if self._callbacks:
            logger.debug(f"Forgetting {len(self._callbacks)} pending callbacks")
        self._callbacks.clear()

    # ───────────────────────────────────────────────────────────────────────
    # Teardown
    # ───────────────────────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    def shutdown(self) -> None:
        """Terminate every context; no callback fires afterwards."""
        if self._closed:
            return
        self._closed = True
        self._callbacks.clear()
        for executor in self._executors:
            _shutdown_executor(executor, self.backend)
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                break
        logger.info(f"♻️ Generation dispatcher shut down: {self.stats.to_dict()}")

    def __enter__(self) -> "GenerationDispatcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()


def _result_from_message(message: Dict[str, Any]) -> GenerationResult:
    diagnostics = message.get("diagnostics")
    return GenerationResult(
        key=message["key"],
        features=tuple(GridPolygon.from_dict(f) for f in message.get("features", [])),
        diagnostics=(
            GenerationDiagnostics.from_dict(diagnostics) if diagnostics else None
        ),
    )


# ═══════════════════════════════════════════════════════════════════════════
# 🏭 FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════


def create_dispatcher(config: Optional[ParallelConfig] = None) -> GenerationDispatcher:
    """Create a dispatcher from ParallelConfig (defaults when None)."""
    config = config or ParallelConfig()
    return GenerationDispatcher(pool_size=config.pool_size, backend=config.backend)
