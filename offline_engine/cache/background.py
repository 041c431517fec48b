"""
Detached background work.

Stale-while-revalidate refreshes run here so the response path never
waits on them. Failures go to an error sink instead of the caller.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, Set

logger = logging.getLogger("engine.background")

ErrorSink = Callable[[str, BaseException], None]


def log_error(label: str, error: BaseException) -> None:
    """Default error sink."""
    logger.error(f"Background task failed: {label} - {error}", exc_info=error)


class BackgroundRunner:
    """
    Thread pool for fire-and-forget tasks, keyed for de-duplication.

    A key already running is not submitted again until it finishes.
    """

    def __init__(
        self,
        max_workers: int = 4,
        error_sink: Optional[ErrorSink] = None,
        thread_name_prefix: str = "engine-background",
    ):
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._error_sink = error_sink or log_error
        self._running: Set[str] = set()
        self._futures: Set[Future] = set()
        self._lock = threading.Lock()

    def spawn(self, key: str, fn: Callable[[], None]) -> Optional[Future]:
        """
        Run fn in the background unless key is already running.

        Returns the future, or None when the task was de-duplicated.
        """
        with self._lock:
            if key in self._running:
                logger.debug(f"Already running: {key}")
                return None
            self._running.add(key)

        def run():
            try:
                fn()
            except Exception as e:
                self._error_sink(key, e)
            finally:
                with self._lock:
                    self._running.discard(key)

        future = self._pool.submit(run)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every task submitted so far.

        Returns False if the timeout expired first.
        """
        with self._lock:
            pending = set(self._futures)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    @property
    def active(self) -> int:
        with self._lock:
            return len(self._running)

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        self._pool.shutdown(wait=wait_for_tasks)
