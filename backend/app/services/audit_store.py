import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import async_session
from app.models import AuditPage, CreditTransaction, SeoAudit, UserProfile

logger = logging.getLogger(__name__)


class SqlAuditStore:
    """Persistence used by the audit pipeline.

    Every call opens its own session and commits before returning, so
    concurrently running jobs never share a session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session):
        self.session_factory = session_factory

    async def create_audit_pages(self, audit_id: int, records: list[dict]) -> None:
        if not records:
            return
        async with self.session_factory() as db:
            db.add_all(AuditPage(audit_id=audit_id, **record) for record in records)
            await db.commit()
        logger.info("Saved %d page records for audit=%s", len(records), audit_id)

    async def update_audit(self, audit_id: int, **fields) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(SeoAudit).where(SeoAudit.id == audit_id).values(**fields)
            )
            await db.commit()

    async def increment_audit_count(self, user_id: str) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(UserProfile)
                .where(UserProfile.user_id == user_id)
                .values(total_audits=UserProfile.total_audits + 1)
            )
            await db.commit()

    async def get_profile(self, user_id: str) -> UserProfile | None:
        async with self.session_factory() as db:
            result = await db.execute(
                select(UserProfile).where(UserProfile.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def update_credits(self, user_id: str, credits: int) -> None:
        async with self.session_factory() as db:
            await db.execute(
                update(UserProfile)
                .where(UserProfile.user_id == user_id)
                .values(credits=credits)
            )
            await db.commit()

    async def add_credits(self, user_id: str, amount: int) -> bool:
        """Atomically add ``amount`` credits.  False when the user has no profile."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(UserProfile)
                .where(UserProfile.user_id == user_id)
                .values(credits=UserProfile.credits + amount)
            )
            await db.commit()
        return result.rowcount > 0

    async def record_credit_transaction(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str,
        audit_id: int | None = None,
    ) -> None:
        async with self.session_factory() as db:
            db.add(
                CreditTransaction(
                    user_id=user_id,
                    amount=amount,
                    type=type,
                    description=description,
                    audit_id=audit_id,
                )
            )
            await db.commit()
