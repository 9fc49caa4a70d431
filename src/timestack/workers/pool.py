"""Worker pool helper utilities."""

from __future__ import annotations

from concurrent.futures import ALL_COMPLETED, FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
import logging
import os
import threading
from typing import Any, Callable, Iterable, TypeVar

from timestack.errors import CompositeError, InvalidConfigError, WorkerFailureError
from timestack.observability.logging import get_logger, log_event


_LOGGER = get_logger("timestack.workers")

T = TypeVar("T")

WorkItem = tuple[str, Callable[[], T]]


def normalize_worker_count(requested: int | None) -> int:
    """Return a safe worker count, defaulting to the machine's parallelism."""

    cpu = os.cpu_count() or 1
    if requested is None:
        return cpu
    if int(requested) < 1:
        raise InvalidConfigError(f"thread_count must be >= 1, got {requested}")
    return min(int(requested), cpu)


class CancelFlag:
    """Run-wide cancellation flag checked by workers between frames."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _surface(unit: str, exc: BaseException) -> BaseException:
    log_event(
        _LOGGER,
        "worker_failed",
        level=logging.ERROR,
        unit=unit,
        error=f"{type(exc).__name__}: {exc}",
    )
    if isinstance(exc, CompositeError):
        return exc
    failure = WorkerFailureError(unit, exc)
    failure.__cause__ = exc
    return failure


def _run_inline(work: Iterable[WorkItem], cancel: CancelFlag) -> list[Any]:
    results: list[Any] = []
    for unit, task in work:
        if cancel.cancelled:
            break
        try:
            results.append(task())
        except Exception as exc:
            cancel.cancel()
            raise _surface(unit, exc)
    return results


def run_tasks(
    work: Iterable[WorkItem],
    *,
    max_workers: int,
    cancel: CancelFlag,
    max_pending: int | None = None,
) -> list[Any]:
    """Run named work items on a thread pool and return results in submission order.

    At most `max_pending` items are in flight, so a lazily produced `work`
    iterable is consumed as workers free up. The first failure cancels the
    flag and every queued item; it is re-raised once running items return.
    """

    if max_workers <= 1:
        return _run_inline(work, cancel)

    limit = max_pending if max_pending is not None else max_workers * 2
    results: dict[int, Any] = {}
    failure: tuple[str, BaseException] | None = None
    pending: dict[Future[Any], tuple[int, str]] = {}

    def _collect(return_when: str) -> None:
        nonlocal failure
        done, _ = wait(pending, return_when=return_when)
        for future in done:
            seq, unit = pending.pop(future)
            if future.cancelled():
                continue
            exc = future.exception()
            if exc is None:
                results[seq] = future.result()
                continue
            if failure is None:
                failure = (unit, exc)
                cancel.cancel()
                for other in pending:
                    other.cancel()

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="timestack") as executor:
        try:
            for seq, (unit, task) in enumerate(work):
                if cancel.cancelled:
                    break
                pending[executor.submit(task)] = (seq, unit)
                if len(pending) >= limit:
                    _collect(FIRST_COMPLETED)
        except BaseException:
            cancel.cancel()
            for future in pending:
                future.cancel()
            raise
        while pending:
            _collect(ALL_COMPLETED)

    if failure is not None:
        unit, exc = failure
        raise _surface(unit, exc)
    return [results[seq] for seq in sorted(results)]
