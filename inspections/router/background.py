"""
Background Task Runner

Lets the inbound handler start a pipeline run, forward the email right away,
and wait for the run only afterwards. Task errors go to the log; nothing is
re-raised to the caller.
"""

from concurrent import futures
from typing import Any, Callable

import structlog

log = structlog.get_logger()


class BackgroundTasks:
    """
    Thread-pool backed fire-and-forget tasks with a bounded drain.

    Usage:
        tasks = BackgroundTasks()
        tasks.spawn(pipeline.run, inspection)
        ...
        tasks.drain(timeout=remaining_seconds)
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="inspection-task"
        )
        self._pending: list[futures.Future] = []

    @property
    def pending(self) -> int:
        """Number of spawned tasks not yet finished."""
        return sum(1 for future in self._pending if not future.done())

    def spawn(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> futures.Future:
        """Run fn(*args, **kwargs) on a worker thread."""
        name = getattr(fn, "__qualname__", repr(fn))
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: self._log_result(name, f))
        self._pending.append(future)
        log.debug("background_task_spawned", task=name)
        return future

    @staticmethod
    def _log_result(name: str, future: futures.Future) -> None:
        if future.cancelled():
            log.warning("background_task_cancelled", task=name)
            return

        error = future.exception()
        if error is not None:
            log.error(
                "background_task_failed",
                task=name,
                error=str(error),
                error_type=type(error).__name__,
            )

    def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for every spawned task.

        Args:
            timeout: Seconds to wait at most; None waits indefinitely

        Returns:
            True if all tasks finished, False if the timeout expired first
        """
        if not self._pending:
            return True

        done, not_done = futures.wait(self._pending, timeout=timeout)
        self._pending = list(not_done)

        if not_done:
            log.warning(
                "background_drain_timeout",
                finished=len(done),
                unfinished=len(not_done),
                timeout_seconds=timeout,
            )
            return False

        log.info("background_drain_complete", finished=len(done))
        return True

    def shutdown(self) -> None:
        """Stop accepting tasks; running tasks are left to finish."""
        self._executor.shutdown(wait=False)
