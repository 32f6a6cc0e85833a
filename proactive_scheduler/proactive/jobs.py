"""Background job queue for best-effort proactive work."""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Set

from proactive_scheduler.config import settings
from proactive_scheduler.utils.logger import get_logger

logger = get_logger(__name__)


class BackgroundJobQueue:
    """
    Thread pool for fire-and-forget jobs.

    Each job runs in isolation: whatever it raises is logged with the job
    name and swallowed, so callers only ever see a Future that resolves to the
    job's return value or None.
    """

    def __init__(self, max_workers: Optional[int] = None, thread_name_prefix: str = 'proactive'):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.PROACTIVE_MAX_WORKERS,
            thread_name_prefix=thread_name_prefix
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, job_name: str, fn: Callable[..., Any], *args, **kwargs) -> Future:
        future = self._executor.submit(self._run, job_name, fn, *args, **kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued jobs; returns False if some are still running."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    @property
    def is_running(self) -> bool:
        return not self._closed

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait_for_jobs)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run(job_name: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        start_time = time.time()
        try:
            result = fn(*args, **kwargs)
            logger.debug(f"Job {job_name} finished in {time.time() - start_time:.2f}s")
            return result
        except Exception:
            logger.exception(f"Background job {job_name} failed")
            return None
