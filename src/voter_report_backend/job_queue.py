"""
Bounded-concurrency job execution with webhook completion.

This module manages the lifecycle of report jobs:
- Handler lookup by job type at submission
- FIFO execution on a fixed-size worker pool
- Thread-safe pending/running counters
- Exactly one completion webhook per job, success or failure

Jobs live only in memory. Nothing is persisted, retried or cancelled.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict, Mapping

from .errors import UnknownJobTypeError
from .webhooks import WebhookNotifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 2

Handler = Callable[[Any], str]


class JobQueue:
    """
    Runs submitted jobs on at most ``max_workers`` threads.

    Thread Safety:
        Counters are only touched under the lock; handlers run outside it.

    Args:
        handlers: Job type -> callable producing the stored file's key
        notifier: Sends the completion webhook for every job
        max_workers: Number of jobs allowed to run at once
    """

    def __init__(
        self,
        handlers: Mapping[str, Handler],
        notifier: WebhookNotifier,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._handlers: Dict[str, Handler] = dict(handlers)
        self._notifier = notifier
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report-worker")
        self._lock = Lock()
        self._pending = 0
        self._running = 0
        self._peak_running = 0

    @property
    def max_concurrency(self) -> int:
        return self._max_workers

    @property
    def peak_running(self) -> int:
        """Highest number of jobs observed running at the same time."""
        with self._lock:
            return self._peak_running

    @property
    def pending_count(self) -> int:
        with self._lock:
            return self._pending

    @property
    def running_count(self) -> int:
        with self._lock:
            return self._running

    @property
    def job_types(self) -> list[str]:
        return list(self._handlers)

    def submit(self, job: Any) -> int:
        """
        Queue a job for execution and return immediately.

        Args:
            job: A validated, immutable job with ``job_id`` and ``type``

        Returns:
            The number of jobs that were waiting to start ahead of this one

        Raises:
            UnknownJobTypeError: If no handler is registered for ``job.type``;
                the job is not queued
        """
        handler = self._handlers.get(job.type)
        if handler is None:
            raise UnknownJobTypeError(job.type, self.job_types)

        with self._lock:
            ahead = self._pending
            self._pending += 1
        try:
            self._executor.submit(self._run_job, job, handler)
        except RuntimeError:
            # Executor already shut down; the job never reaches a worker.
            with self._lock:
                self._pending -= 1
            raise
        logger.info(f"Job {job.job_id} ({job.type}) queued with {ahead} jobs ahead")
        return ahead

    def _run_job(self, job: Any, handler: Handler) -> None:
        """
        Execute one job (runs in a worker thread).

        Note:
            Every exception from the handler is caught here and reported
            through a failure webhook; the worker thread keeps serving.
        """
        with self._lock:
            self._pending -= 1
            self._running += 1
            self._peak_running = max(self._peak_running, self._running)

        logger.info(f"Job {job.job_id} ({job.type}) started")
        try:
            url = handler(job)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"Job {job.job_id} ({job.type}) failed: {exc}")
            self._notifier.notify_failure(job.job_id, job.type, str(exc) or exc.__class__.__name__)
        else:
            logger.info(f"Job {job.job_id} ({job.type}) completed: {url}")
            self._notifier.notify_success(job.job_id, job.type, url)
        finally:
            with self._lock:
                self._running -= 1

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; with ``wait`` block until queued jobs finish."""
        self._executor.shutdown(wait=wait)

