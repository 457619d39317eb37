"""Cancellable debounce timer backed by APScheduler one-shot jobs."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from apscheduler.jobstores.base import JobLookupError

from ..logging_config import get_logger

logger = get_logger("debounce")

# A run whose token was superseded returns at once.
MAX_OVERLAPPING_RUNS = 16


class JobScheduler(Protocol):
    """The subset of APScheduler's scheduler API the debouncer needs."""

    def add_job(self, func: Callable[..., Any], trigger: Any = None, **kwargs: Any) -> Any:  # pragma: no cover - interface
        ...

    def remove_job(self, job_id: str, jobstore: Optional[str] = None) -> None:  # pragma: no cover - interface
        ...


class Debouncer:
    """Runs only the last submitted call once it has settled for ``delay`` seconds.

    Every ``submit`` or ``cancel`` bumps a token; a job whose token is no
    longer current does nothing when it fires, even if the scheduler already
    started it. Callbacks run while holding ``lock``.
    """

    def __init__(
        self,
        scheduler: JobScheduler,
        *,
        job_id: str,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.scheduler = scheduler
        self.job_id = job_id
        self.lock = lock or threading.RLock()
        self._token = 0
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def submit(self, delay: float, func: Callable[..., None], *args: Any) -> int:
        """Schedule ``func(*args)`` after ``delay``, superseding any pending call."""

        with self.lock:
            self._token += 1
            token = self._token
            self._pending = True
        self.scheduler.add_job(
            self._fire,
            trigger="date",
            run_date=datetime.now() + timedelta(seconds=max(0.0, delay)),
            args=[token, func, args],
            id=self.job_id,
            replace_existing=True,
            misfire_grace_time=None,
            max_instances=MAX_OVERLAPPING_RUNS,
        )
        return token

    def cancel(self) -> None:
        """Drop the pending call, if any."""

        with self.lock:
            self._token += 1
            was_pending = self._pending
            self._pending = False
        if not was_pending:
            return
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            # Already fired or never reached the job store; the token check covers it.
            pass

    def _fire(self, token: int, func: Callable[..., None], args: tuple[Any, ...]) -> None:
        with self.lock:
            if token != self._token:
                logger.debug("Dropping superseded debounced call", extra={"job_id": self.job_id})
                return
            self._pending = False
            func(*args)
