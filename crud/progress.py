"""
Repositories for achievements and daily progress metrics
"""

from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from database_models import UserAchievement, UserProgress


class AchievementRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str, achievement_type: str) -> Optional[UserAchievement]:
        result = await self.db.execute(
            select(UserAchievement).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_type == achievement_type,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: str, data: dict) -> UserAchievement:
        achievement = UserAchievement(user_id=user_id, **data)
        self.db.add(achievement)
        await self.db.flush()
        await self.db.refresh(achievement)
        return achievement

    async def list_for_user(self, user_id: str, offset: int = 0, limit: int = 100) -> tuple[list[UserAchievement], int]:
        total = await self.db.scalar(
            select(func.count(UserAchievement.id)).where(UserAchievement.user_id == user_id)
        )
        result = await self.db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.earned_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0


class ProgressRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def increment(self, user_id: str, metric_name: str, day: date, amount: float = 1) -> UserProgress:
        result = await self.db.execute(
            select(UserProgress).where(
                UserProgress.user_id == user_id,
                UserProgress.metric_name == metric_name,
                UserProgress.date_recorded == day,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = UserProgress(user_id=user_id, metric_name=metric_name, date_recorded=day, metric_value=amount)
            self.db.add(row)
        else:
            row.metric_value = row.metric_value + amount
        await self.db.flush()
        return row

    async def days_with_metric(self, user_id: str, metric_name: str) -> list[date]:
        result = await self.db.execute(
            select(UserProgress.date_recorded)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.metric_name == metric_name,
                UserProgress.metric_value > 0,
            )
            .order_by(UserProgress.date_recorded.desc())
        )
        return [row[0] for row in result.all()]

    async def series(self, user_id: str, metric_name: str, since: date) -> list[UserProgress]:
        result = await self.db.execute(
            select(UserProgress)
            .where(
                UserProgress.user_id == user_id,
                UserProgress.metric_name == metric_name,
                UserProgress.date_recorded >= since,
            )
            .order_by(UserProgress.date_recorded.asc())
        )
        return list(result.scalars().all())
