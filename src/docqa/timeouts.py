"""Bounded waiting on blocking calls to external services."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

T = TypeVar("T")


def call_with_timeout(func: Callable[..., T], *args: object, timeout: float | None = None, **kwargs: object) -> T:
    """Run ``func`` and wait at most ``timeout`` seconds for its result.

    Raises :class:`TimeoutError` when the deadline passes. The worker thread is
    abandoned, not interrupted; the call's eventual result is discarded.
    """

    if timeout is None:
        return func(*args, **kwargs)
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="docqa-call")
    try:
        future = executor.submit(func, *args, **kwargs)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            future.cancel()
            raise TimeoutError(f"{getattr(func, '__qualname__', func)!s} timed out after {timeout:.1f}s") from exc
    finally:
        executor.shutdown(wait=False)
