from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class BackgroundTasks:
    """Run whole scans and imports off the caller's thread.

    Each submission resolves its ``Future`` exactly once, with the function's result
    or the exception it raised. Nothing is reported before the work completes.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._logger = logging.getLogger("imgeval.offload")
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="imgeval")

    def _run(self, label: str, fn: Callable[..., T], args: tuple[Any, ...], kwargs: dict[str, Any]) -> T:
        self._logger.info("task started label=%s", label)
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            self._logger.warning("task failed label=%s error=%s", label, exc)
            raise
        self._logger.info("task finished label=%s", label)
        return result

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        label = getattr(fn, "__qualname__", repr(fn))
        return self._executor.submit(self._run, label, fn, args, kwargs)

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> "BackgroundTasks":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
