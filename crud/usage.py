"""
PromptUsageRepository: per-user, per-day AI prompt counters
"""

from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from database_models import PromptUsage
from utils.shared_utils import utc_now


class PromptUsageRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self):
        if self.db.get_bind().dialect.name == "postgresql":
            return postgresql_insert(PromptUsage)
        return sqlite_insert(PromptUsage)

    async def get_for_day(self, user_id: str, usage_date: date) -> Optional[PromptUsage]:
        result = await self.db.execute(
            select(PromptUsage).where(
                PromptUsage.user_id == user_id,
                PromptUsage.usage_date == usage_date,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, usage_date: date, prompt_limit: Optional[int]) -> PromptUsage:
        """
        Return the day's row, creating it with prompt_limit when missing.
        An existing row keeps its count but picks up a changed limit (plan upgrade).
        """
        usage = await self.get_for_day(user_id, usage_date)
        if usage is None:
            # A concurrent request may create the same row; the conflict clause keeps one
            stmt = self._insert().values(
                user_id=user_id,
                usage_date=usage_date,
                prompt_count=0,
                prompt_limit=prompt_limit,
            ).on_conflict_do_nothing(index_elements=["user_id", "usage_date"])
            await self.db.execute(stmt)
            usage = await self.get_for_day(user_id, usage_date)
        elif usage.prompt_limit != prompt_limit:
            usage.prompt_limit = prompt_limit
            await self.db.flush()
        await self.db.refresh(usage)
        return usage

    async def try_increment(self, user_id: str, usage_date: date, amount: int = 1) -> bool:
        """
        Atomically add amount to the day's count if it stays within the limit.
        Returns False when the limit would be exceeded.
        """
        result = await self.db.execute(
            update(PromptUsage)
            .where(
                PromptUsage.user_id == user_id,
                PromptUsage.usage_date == usage_date,
                or_(
                    PromptUsage.prompt_limit.is_(None),
                    PromptUsage.prompt_count + amount <= PromptUsage.prompt_limit,
                ),
            )
            .values(prompt_count=PromptUsage.prompt_count + amount, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_recent(self, user_id: str, since: date) -> list[PromptUsage]:
        result = await self.db.execute(
            select(PromptUsage)
            .where(PromptUsage.user_id == user_id, PromptUsage.usage_date >= since)
            .order_by(PromptUsage.usage_date.asc())
        )
        return list(result.scalars().all())
