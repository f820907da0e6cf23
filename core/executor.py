"""Blocking-work executor and completion results.

Module purpose and system role:
    - Run blocking actions on a worker pool and hand their outcome to a
      single-shot completion handler.
    - Deliver the handler on the submitting asyncio loop when there is one,
      otherwise on the worker thread.

Integration points and dependencies:
    - Cluster backends schedule their async operations here.
    - Local containers use :func:`complete_inline` for the same contract
      without a thread hop.
"""

from __future__ import annotations

import asyncio
import os
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Hashable, Optional, Tuple

from core.logger import log_error
from core import metrics


@dataclass(frozen=True)
class AsyncResult:
    """Outcome of an asynchronous operation: a value or a failure."""

    result: Any = None
    cause: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.cause is None

    @property
    def failed(self) -> bool:
        return self.cause is not None

    @classmethod
    def success(cls, value: Any = None) -> "AsyncResult":
        return cls(result=value)

    @classmethod
    def failure(cls, cause: BaseException) -> "AsyncResult":
        return cls(cause=cause)


Handler = Callable[[AsyncResult], None]
_Task = Tuple[Callable[[], Any], Optional[Handler], Optional[asyncio.AbstractEventLoop]]


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def deliver(handler: Optional[Handler], result: AsyncResult) -> None:
    """Pass ``result`` to ``handler``; a failing handler is logged, not raised."""
    if handler is None:
        return
    try:
        handler(result)
    except Exception as exc:
        metrics.record_handler_failure()
        log_error("executor", f"completion handler failed: {exc}", event="handler_failed")


def _run(action: Callable[[], Any]) -> AsyncResult:
    try:
        return AsyncResult.success(action())
    except Exception as exc:
        return AsyncResult.failure(exc)


def complete_inline(action: Callable[[], Any], handler: Optional[Handler]) -> None:
    """Run ``action`` now and deliver its outcome to ``handler`` before returning."""
    deliver(handler, _run(action))


class BlockingExecutor:
    """Thread pool that reports every action's outcome to a completion handler.

    Ordered execution (the default) keeps one FIFO queue per ``order_key``:
    actions sharing a key run one at a time in submission order, so
    completions for one key arrive in submission order, while different keys
    run concurrently on the pool. Unordered submissions skip the queues.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        *,
        ordered: bool = True,
        thread_name_prefix: str = "shared-data-blocking",
    ) -> None:
        if max_workers is None:
            max_workers = int(os.getenv("SHARED_DATA_WORKERS", "4"))
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        self.ordered = ordered
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        # a key is present while its queue is being drained
        self._queues: Dict[Hashable, Deque[_Task]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    def execute_blocking(
        self,
        action: Callable[[], Any],
        handler: Optional[Handler] = None,
        *,
        ordered: bool | None = None,
        order_key: Hashable = None,
    ) -> None:
        """Schedule ``action`` on a worker and deliver its result to ``handler``.

        Ordered actions with the same ``order_key`` never overlap and
        complete in submission order. The default key ``None`` is one queue
        shared by every caller that passes no key.
        """

        task: _Task = (action, handler, _running_loop())
        if ordered is None:
            ordered = self.ordered
        if not ordered:
            self._pool.submit(self._execute, task)
            return
        with self._lock:
            queue = self._queues.get(order_key)
            if queue is not None:
                queue.append(task)
                return
            self._queues[order_key] = deque([task])
        try:
            self._pool.submit(self._drain, order_key)
        except RuntimeError:
            with self._lock:
                self._queues.pop(order_key, None)
            raise

    def _drain(self, order_key: Hashable) -> None:
        while True:
            with self._lock:
                queue = self._queues[order_key]
                if not queue:
                    del self._queues[order_key]
                    return
                task = queue.popleft()
            self._execute(task)

    def _execute(self, task: _Task) -> None:
        action, handler, loop = task
        result = _run(action)
        if loop is not None:
            try:
                loop.call_soon_threadsafe(deliver, handler, result)
                return
            except RuntimeError:
                # submitting loop already closed
                pass
        deliver(handler, result)

    # ------------------------------------------------------------------
    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "BlockingExecutor":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()
