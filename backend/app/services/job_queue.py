"""In-process FIFO of audit jobs plus the live progress table.

The queue does no pipeline work itself.  It records progress, hands jobs
out in arrival order and wakes any registered worker when a job arrives.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from app.config import settings

logger = logging.getLogger(__name__)


class JobStage(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    CRAWLING = "crawling"
    ANALYZING = "analyzing"
    FIXING = "fixing"
    SAVING = "saving"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.DONE, JobStage.ERROR)


@dataclass(frozen=True)
class AuditJob:
    audit_id: int
    user_id: str
    url: str
    domain: str


@dataclass(frozen=True)
class JobProgress:
    stage: JobStage
    message: str
    percent: int


class AuditStatusWriter(Protocol):
    async def update_audit(self, audit_id: int, **fields) -> None: ...


class JobQueue:
    def __init__(
        self,
        store: AuditStatusWriter,
        retention_seconds: float = settings.progress_retention_seconds,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._jobs: deque[AuditJob] = deque()
        self._progress: dict[int, JobProgress] = {}
        # audit_id -> clock value after which a terminal entry is dropped
        self._expires_at: dict[int, float] = {}
        self._ready_signals: list[asyncio.Event] = []

    async def enqueue(self, job: AuditJob) -> None:
        await self.store.update_audit(job.audit_id, status="pending")
        self.set_progress(
            job.audit_id, JobProgress(JobStage.QUEUED, "Waiting in queue...", 0)
        )
        with self._lock:
            self._jobs.append(job)
            signals = list(self._ready_signals)
        logger.info("Queued audit=%s for %s (queue size %d)", job.audit_id, job.url, self.size())
        for signal in signals:
            signal.set()

    def dequeue(self) -> AuditJob | None:
        with self._lock:
            if not self._jobs:
                return None
            return self._jobs.popleft()

    def size(self) -> int:
        with self._lock:
            return len(self._jobs)

    def progress(self, audit_id: int) -> JobProgress | None:
        with self._lock:
            self._purge_expired()
            return self._progress.get(audit_id)

    def set_progress(self, audit_id: int, progress: JobProgress) -> None:
        with self._lock:
            self._purge_expired()
            self._progress[audit_id] = progress
            if progress.stage.is_terminal:
                self._expires_at[audit_id] = self._clock() + self.retention_seconds
            else:
                self._expires_at.pop(audit_id, None)

    def register_ready_signal(self, signal: asyncio.Event) -> None:
        """Have ``signal`` set every time a job is enqueued."""
        with self._lock:
            if signal not in self._ready_signals:
                self._ready_signals.append(signal)
            pending = bool(self._jobs)
        if pending:
            signal.set()

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [aid for aid, deadline in self._expires_at.items() if deadline <= now]
        for audit_id in expired:
            del self._expires_at[audit_id]
            self._progress.pop(audit_id, None)
        if expired:
            logger.debug("Purged %d finished progress entries", len(expired))
