import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user_id, get_pipeline
from app.models import AuditPage, SeoAudit
from app.schemas import (
    AuditCreate,
    AuditPageResponse,
    AuditProgressResponse,
    AuditResponse,
    JobProgressResponse,
)
from app.services.job_queue import AuditJob
from app.services.profiles import debit_credit, ensure_profile, refund_credit
from app.worker import AuditPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audits", tags=["audits"])

NO_CREDITS_DETAIL = "Not enough credits. Please upgrade your plan."


async def _get_owned_audit(db: AsyncSession, audit_id: int, user_id: str) -> SeoAudit:
    audit = await db.get(SeoAudit, audit_id)
    if not audit or audit.user_id != user_id:
        raise HTTPException(status_code=404, detail="Audit not found")
    return audit


@router.post("", response_model=AuditResponse, status_code=201)
async def create_audit(
    body: AuditCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    pipeline: AuditPipeline = Depends(get_pipeline),
):
    profile = await ensure_profile(db, user_id)
    if profile.credits < 1:
        raise HTTPException(status_code=402, detail=NO_CREDITS_DETAIL)

    url = str(body.url)
    domain = body.url.host or url

    audit = SeoAudit(user_id=user_id, url=url, domain=domain, status="pending")
    db.add(audit)
    await db.commit()
    await db.refresh(audit)

    debited = await debit_credit(
        db, user_id, description=f"SEO audit: {url}", audit_id=audit.id
    )
    if not debited:
        # Credits were spent by a concurrent request after the check above.
        await db.delete(audit)
        await db.commit()
        raise HTTPException(status_code=402, detail=NO_CREDITS_DETAIL)

    try:
        await pipeline.enqueue_audit(
            AuditJob(audit_id=audit.id, user_id=user_id, url=url, domain=domain)
        )
    except Exception:
        logger.exception("Could not enqueue audit=%s", audit.id)
        audit.status = "failed"
        await refund_credit(
            db,
            user_id,
            description=f"Refund for failed audit: {url}",
            audit_id=audit.id,
        )
        raise HTTPException(
            status_code=503,
            detail="Could not start the audit. Your credit was refunded.",
        )

    logger.info("Created audit=%s for %s (user=%s)", audit.id, url, user_id)
    return audit


@router.get("", response_model=list[AuditResponse])
async def list_audits(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(SeoAudit)
        .where(SeoAudit.user_id == user_id)
        .order_by(SeoAudit.created_at.desc(), SeoAudit.id.desc())
    )
    return result.scalars().all()


@router.get("/{audit_id}", response_model=AuditResponse)
async def get_audit(
    audit_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await _get_owned_audit(db, audit_id, user_id)


@router.get("/{audit_id}/pages", response_model=list[AuditPageResponse])
async def get_audit_pages(
    audit_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await _get_owned_audit(db, audit_id, user_id)
    result = await db.execute(
        select(AuditPage).where(AuditPage.audit_id == audit_id).order_by(AuditPage.id)
    )
    return result.scalars().all()


@router.get("/{audit_id}/progress", response_model=AuditProgressResponse)
async def get_audit_progress(
    audit_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    pipeline: AuditPipeline = Depends(get_pipeline),
):
    audit = await _get_owned_audit(db, audit_id, user_id)
    progress = pipeline.get_job_progress(audit_id)
    return AuditProgressResponse(
        status=audit.status,
        progress=(
            JobProgressResponse(
                stage=progress.stage.value,
                message=progress.message,
                percent=progress.percent,
            )
            if progress
            else None
        ),
    )
