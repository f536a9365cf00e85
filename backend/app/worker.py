import asyncio
import logging
from collections.abc import Awaitable, Callable

from app.config import settings
from app.services.ai_fixer import AiFixer
from app.services.audit_store import SqlAuditStore
from app.services.completion import build_completion_client
from app.services.job_queue import AuditJob, JobProgress, JobQueue
from app.tasks.audit_task import AuditStore, CrawlFn, crawl_site, run_audit_job

logger = logging.getLogger(__name__)


class WorkerPool:
    """Runs queued jobs with at most ``max_concurrent`` in flight.

    The pool sleeps on an event registered with the queue; an enqueue or a
    finished job wakes it, and it dispatches until it is full or the queue
    is empty.
    """

    def __init__(
        self,
        queue: JobQueue,
        runner: Callable[[AuditJob], Awaitable[object]],
        max_concurrent: int = settings.worker_max_concurrent_jobs,
    ):
        self.queue = queue
        self.runner = runner
        self.max_concurrent = max_concurrent
        self._wakeup = asyncio.Event()
        self._active: set[asyncio.Task] = set()
        self._loop_task: asyncio.Task | None = None

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self.queue.register_ready_signal(self._wakeup)
        self._loop_task = asyncio.create_task(self._run())
        logger.info("Worker pool started with max_concurrent=%s", self.max_concurrent)

    async def stop(self) -> None:
        """Stop dispatching and wait for in-flight jobs to settle."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self._active:
            logger.info("Waiting for %d running job(s) to finish", len(self._active))
            await asyncio.gather(*self._active, return_exceptions=True)
        logger.info("Worker pool stopped")

    async def _run(self) -> None:
        while True:
            self._dispatch()
            await self._wakeup.wait()
            self._wakeup.clear()

    def _dispatch(self) -> None:
        while len(self._active) < self.max_concurrent:
            job = self.queue.dequeue()
            if job is None:
                break

            logger.info(
                "Dispatching audit=%s (active: %s/%s)",
                job.audit_id,
                len(self._active) + 1,
                self.max_concurrent,
            )
            task = asyncio.create_task(self.runner(job))
            self._active.add(task)
            task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._active.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Audit job raised unhandled exception", exc_info=task.exception()
            )
        self._wakeup.set()


class AuditPipeline:
    """Queue, progress table and worker pool for audits, owned by the app."""

    def __init__(
        self,
        store: AuditStore,
        crawl: CrawlFn = crawl_site,
        fixer: AiFixer | None = None,
        max_concurrent: int = settings.worker_max_concurrent_jobs,
        retention_seconds: float = settings.progress_retention_seconds,
    ):
        self.store = store
        self.crawl = crawl
        self.fixer = fixer or AiFixer(build_completion_client())
        self.queue = JobQueue(store, retention_seconds=retention_seconds)
        self.pool = WorkerPool(self.queue, self._run_job, max_concurrent)

    async def enqueue_audit(self, job: AuditJob) -> None:
        """Queue an audit whose pending row and credit debit already exist."""
        await self.queue.enqueue(job)

    def get_job_progress(self, audit_id: int) -> JobProgress | None:
        return self.queue.progress(audit_id)

    def start_worker(self) -> None:
        self.pool.start()

    async def stop_worker(self) -> None:
        await self.pool.stop()

    async def _run_job(self, job: AuditJob) -> bool:
        return await run_audit_job(
            job,
            store=self.store,
            queue=self.queue,
            fixer=self.fixer,
            crawl=self.crawl,
        )


def build_pipeline() -> AuditPipeline:
    return AuditPipeline(SqlAuditStore())
