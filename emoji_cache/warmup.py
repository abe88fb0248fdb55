from __future__ import annotations

"""
Background cache warmup.

Warmup queries go through the same search entry point as ordinary callers, so
primed entries are indistinguishable from organically cached ones. The batch
runs on a single worker thread and returns a future right away; failures are
logged and reported on the result, never raised.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Sequence, Set

from loguru import logger

from .errors import WarmupFailure


@dataclass
class WarmupReport:
    requested: int
    completed: int = 0
    failures: List[WarmupFailure] = field(default_factory=list)
    cancelled: bool = False


class WarmupCoordinator:
    """
    Runs warmup batches on a detached, cancellable worker.

    Each warmed query is a self-contained miss-then-put, so abandoning a batch
    half way leaves the cache consistent.
    """

    def __init__(self, search: Callable[[str], object]):
        self._search = search
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._active: Set[threading.Event] = set()
        self._closed = False

    def warmup(self, queries: Sequence[str]) -> Future:
        """Schedule ``queries`` and return a future resolving to a ``WarmupReport``."""
        batch = [q for q in queries if q and q.strip()]
        with self._lock:
            if self._closed:
                raise RuntimeError("warmup coordinator has been shut down")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="emoji-cache-warmup"
                )
            cancel_event = threading.Event()
            self._active.add(cancel_event)
            future = self._executor.submit(self._run, batch, cancel_event)
        logger.info("Scheduled cache warmup with {} queries", len(batch))
        return future

    def _run(self, queries: List[str], cancel_event: threading.Event) -> WarmupReport:
        report = WarmupReport(requested=len(queries))
        try:
            for query in queries:
                if cancel_event.is_set():
                    report.cancelled = True
                    logger.info(
                        "Warmup cancelled after {} of {} queries", report.completed, report.requested
                    )
                    break
                try:
                    self._search(query)
                except Exception as e:
                    failure = WarmupFailure(query, e)
                    report.failures.append(failure)
                    logger.warning("{}", failure)
                else:
                    report.completed += 1
        finally:
            with self._lock:
                self._active.discard(cancel_event)

        if not report.cancelled:
            logger.info(
                "Warmup complete: {} queries primed, {} failed",
                report.completed,
                len(report.failures),
            )
        return report

    def cancel(self) -> None:
        """Ask every running or pending batch to stop before its next query."""
        with self._lock:
            for event in self._active:
                event.set()

    def shutdown(self, wait: bool = False) -> None:
        self.cancel()
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=True)
