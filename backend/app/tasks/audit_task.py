import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Protocol

from app.services.ai_fixer import AiFixer
from app.services.analyzer import analyze
from app.services.crawler import Crawler, CrawlResult
from app.services.extractor import CrawledPage
from app.services.job_queue import AuditJob, JobProgress, JobQueue, JobStage
from app.services.report import build_results, build_summary
from app.services.scoring import compute_scores

logger = logging.getLogger(__name__)

CrawlFn = Callable[[str], Awaitable[CrawlResult]]


class AuditStore(Protocol):
    async def create_audit_pages(self, audit_id: int, records: list[dict]) -> None: ...
    async def update_audit(self, audit_id: int, **fields) -> None: ...
    async def increment_audit_count(self, user_id: str) -> None: ...
    async def add_credits(self, user_id: str, amount: int) -> bool: ...
    async def record_credit_transaction(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str,
        audit_id: int | None = None,
    ) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def crawl_site(url: str) -> CrawlResult:
    return await Crawler(url).crawl()


def _schema_types(page: CrawledPage) -> list[str]:
    types: list[str] = []
    for script in page.schema_scripts:
        schema_type = script.get("@type") if isinstance(script, dict) else None
        if isinstance(schema_type, list):
            types.extend(str(t) for t in schema_type)
        else:
            types.append(str(schema_type) if schema_type else "unknown")
    return types


def page_record(page: CrawledPage) -> dict:
    return {
        "url": page.url,
        "title": page.title or None,
        "meta_description": page.meta_description or None,
        "headings": page.headings,
        "word_count": page.word_count,
        "internal_links": page.internal_links,
        "external_links": page.external_links,
        "images": len(page.images),
        "schema_detected": _schema_types(page),
        "issues": page.issues,
    }


async def run_audit_job(
    job: AuditJob,
    *,
    store: AuditStore,
    queue: JobQueue,
    fixer: AiFixer,
    crawl: CrawlFn = crawl_site,
) -> bool:
    """Run one audit from crawl to saved results.

    Returns True when the audit completed.  Any exception marks the audit
    failed and refunds the credit the caller was charged; nothing is raised.
    """
    audit_id = job.audit_id

    def progress(stage: JobStage, message: str, percent: int) -> None:
        queue.set_progress(audit_id, JobProgress(stage, message, percent))

    logger.info("Processing audit=%s for %s", audit_id, job.url)
    try:
        await store.update_audit(audit_id, status="processing")

        progress(JobStage.CRAWLING, "Crawling website pages", 10)
        crawl_result = await crawl(job.url)
        logger.info("Crawled %d pages for audit=%s", crawl_result.pages_crawled, audit_id)

        progress(JobStage.ANALYZING, "Running SEO rule analysis", 40)
        analysis = analyze(crawl_result)
        logger.info("Found %d rule-based issues for audit=%s", analysis.meta.total_issues, audit_id)

        progress(JobStage.FIXING, "Generating AI-powered fixes", 60)
        fix_result = await fixer.generate_fixes(crawl_result.pages, analysis.issues)
        logger.info("Generated %d fixes for audit=%s", fix_result.total_fixes_generated, audit_id)

        progress(JobStage.SAVING, "Saving results", 85)
        if crawl_result.pages:
            await store.create_audit_pages(
                audit_id, [page_record(page) for page in crawl_result.pages]
            )

        scores = compute_scores(analysis.issues)
        await store.update_audit(
            audit_id,
            status="completed",
            overall_score=scores.overall,
            meta_score=scores.meta,
            content_score=scores.content,
            performance_score=scores.performance,
            technical_score=scores.technical,
            pages_crawled=crawl_result.pages_crawled,
            issues_found=analysis.meta.total_issues,
            fixes_generated=fix_result.total_fixes_generated,
            summary=build_summary(crawl_result, analysis, scores),
            results=build_results(crawl_result, analysis, fix_result),
            completed_at=_utcnow(),
        )
        await store.increment_audit_count(job.user_id)

        progress(JobStage.DONE, "Audit complete", 100)
        logger.info("Audit=%s completed (score %d)", audit_id, scores.overall)
        return True

    except Exception as exc:
        logger.exception("Audit=%s failed", audit_id)
        progress(JobStage.ERROR, str(exc) or exc.__class__.__name__, 0)
        await _mark_failed(job, store)
        return False


async def _mark_failed(job: AuditJob, store: AuditStore) -> None:
    try:
        await store.update_audit(job.audit_id, status="failed")
    except Exception:
        logger.exception("Could not mark audit=%s failed", job.audit_id)

    try:
        if not await store.add_credits(job.user_id, 1):
            return
        await store.record_credit_transaction(
            job.user_id,
            1,
            "refund",
            f"Refund for failed audit: {job.url}",
            audit_id=job.audit_id,
        )
        logger.info("Refunded 1 credit to %s for audit=%s", job.user_id, job.audit_id)
    except Exception:
        logger.exception("Refund failed for audit=%s", job.audit_id)
