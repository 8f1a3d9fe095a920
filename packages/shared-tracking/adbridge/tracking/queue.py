"""Background job queue abstraction.

Deliveries of Critical and High events are handed to a durable,
at-least-once job runner. The tracker only relies on ``enqueue``; the
in-memory implementation is a simple worker loop used by tests and by
single-process deployments.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

JobHandler = Callable[[dict[str, Any]], Any]


@dataclass
class Job:
    """A queued job."""

    job_type: str
    payload: dict[str, Any]
    attempts: int = 0
    errors: list[str] = field(default_factory=list)


class JobQueue(ABC):
    """Append-only channel into a background job runner."""

    @abstractmethod
    def enqueue(self, job_type: str, payload: dict[str, Any]) -> None:
        """Durably enqueue a job.

        Args:
            job_type: Name of the job handler.
            payload: JSON-serializable job arguments.
        """
        pass  # pragma: no cover


class InMemoryJobQueue(JobQueue):
    """In-process job queue with at-least-once retries.

    Payloads are round-tripped through JSON on enqueue so that handlers see
    exactly what a durable queue would hand back.

    Example:
        queue = InMemoryJobQueue()
        queue.register("send_event", handler)
        queue.enqueue("send_event", {"event": {...}})
        queue.run_pending()
    """

    def __init__(self, max_attempts: int = 3):
        self.max_attempts = max_attempts
        self._handlers: dict[str, JobHandler] = {}
        self._pending: deque[Job] = deque()
        self.failed: list[Job] = []
        self._lock = threading.Lock()

    def register(self, job_type: str, handler: JobHandler) -> None:
        self._handlers[job_type] = handler

    def enqueue(self, job_type: str, payload: dict[str, Any]) -> None:
        # Raises TypeError for payloads a durable queue could not store
        stored = json.loads(json.dumps(payload))
        with self._lock:
            self._pending.append(Job(job_type=job_type, payload=stored))
        logger.debug(f"Enqueued job {job_type}")

    @property
    def pending(self) -> list[Job]:
        with self._lock:
            return list(self._pending)

    def run_pending(self) -> int:
        """Run queued jobs until the queue is empty.

        Failing jobs are retried up to ``max_attempts`` times, then moved to
        ``failed``.

        Returns:
            Number of jobs that completed.
        """
        completed = 0
        while True:
            with self._lock:
                if not self._pending:
                    return completed
                job = self._pending.popleft()

            handler = self._handlers.get(job.job_type)
            if handler is None:
                logger.warning(f"No handler registered for job type {job.job_type}")
                self.failed.append(job)
                continue

            job.attempts += 1
            try:
                handler(job.payload)
                completed += 1
            except Exception as e:
                logger.exception(f"Job {job.job_type} failed (attempt {job.attempts})")
                job.errors.append(str(e))
                if job.attempts < self.max_attempts:
                    with self._lock:
                        self._pending.append(job)
                else:
                    self.failed.append(job)
