import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import CreditTransaction, UserProfile

logger = logging.getLogger(__name__)


async def ensure_profile(db: AsyncSession, user_id: str) -> UserProfile:
    result = await db.execute(select(UserProfile).where(UserProfile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if profile:
        return profile

    profile = UserProfile(
        user_id=user_id, credits=settings.default_credits, total_audits=0
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    logger.info("Created profile for %s with %d credits", user_id, profile.credits)
    return profile


async def debit_credit(
    db: AsyncSession, user_id: str, *, description: str, audit_id: int
) -> bool:
    """Take one credit if the user has any.  Commits only on success."""
    result = await db.execute(
        update(UserProfile)
        .where(UserProfile.user_id == user_id, UserProfile.credits >= 1)
        .values(credits=UserProfile.credits - 1)
    )
    if result.rowcount != 1:
        await db.rollback()
        return False

    db.add(
        CreditTransaction(
            user_id=user_id,
            amount=-1,
            type="debit",
            description=description,
            audit_id=audit_id,
        )
    )
    await db.commit()
    return True


async def refund_credit(
    db: AsyncSession, user_id: str, *, description: str, audit_id: int
) -> None:
    await db.execute(
        update(UserProfile)
        .where(UserProfile.user_id == user_id)
        .values(credits=UserProfile.credits + 1)
    )
    db.add(
        CreditTransaction(
            user_id=user_id,
            amount=1,
            type="refund",
            description=description,
            audit_id=audit_id,
        )
    )
    await db.commit()
