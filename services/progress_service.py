"""
Progress Service - daily metrics, streaks, statistics and achievements
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from crud.progress import AchievementRepository, ProgressRepository
from crud.practice import PracticeSessionRepository, UserResponseRepository
from database_models import UserAchievement
from backend.utils.errors import ValidationError, ConflictError
from utils.shared_utils import utc_now

logger = logging.getLogger(__name__)

METRIC_QUESTIONS_ANSWERED = "questions_answered"
METRIC_SCORE_TOTAL = "score_total"
METRIC_INTERVIEWS_COMPLETED = "interviews_completed"

PERFECT_SCORE = 90
CENTURY = 100
STREAK_DAYS = 7

ACHIEVEMENTS = {
    "first_step": {
        "achievement_name": "First Step",
        "description": "Answered your first practice question",
        "icon_name": "footprints",
    },
    "century_club": {
        "achievement_name": "Century Club",
        "description": f"Answered {CENTURY} questions",
        "icon_name": "trophy",
    },
    "perfect_session": {
        "achievement_name": "Perfect Session",
        "description": f"Scored {PERFECT_SCORE} or higher",
        "icon_name": "star",
    },
    "week_warrior": {
        "achievement_name": "Week Warrior",
        "description": f"Practiced {STREAK_DAYS} days in a row",
        "icon_name": "flame",
    },
    "mock_master": {
        "achievement_name": "Mock Master",
        "description": "Completed your first mock interview",
        "icon_name": "award",
    },
}


def streak_from_days(days: list[date], today: date) -> int:
    """
    Consecutive practice days ending today, or ending yesterday when
    nothing has been recorded yet today.
    """
    recorded = set(days)
    cursor = today if today in recorded else today - timedelta(days=1)
    streak = 0
    while cursor in recorded:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def achievement_to_dict(achievement: UserAchievement) -> dict:
    return {
        "id": achievement.id,
        "achievement_type": achievement.achievement_type,
        "achievement_name": achievement.achievement_name,
        "description": achievement.description,
        "icon_name": achievement.icon_name,
        "metadata": achievement.extra or {},
        "earned_at": achievement.earned_at,
    }


class ProgressService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.achievement_repo = AchievementRepository(db)
        self.progress_repo = ProgressRepository(db)
        self.session_repo = PracticeSessionRepository(db)
        self.response_repo = UserResponseRepository(db)

    async def _award_once(self, user_id: str, achievement_type: str, metadata: Optional[dict] = None) -> Optional[UserAchievement]:
        if await self.achievement_repo.get(user_id, achievement_type) is not None:
            return None
        achievement = await self.achievement_repo.create(user_id, {
            "achievement_type": achievement_type,
            **ACHIEVEMENTS[achievement_type],
            "extra": metadata or {},
        })
        logger.info(f"User {user_id} earned achievement '{achievement_type}'")
        return achievement

    async def current_streak(self, user_id: str, today: Optional[date] = None) -> int:
        days = await self.progress_repo.days_with_metric(user_id, METRIC_QUESTIONS_ANSWERED)
        return streak_from_days(days, today or utc_now().date())

    async def record_answer(self, user_id: str, score: Optional[int], now: Optional[datetime] = None) -> list[UserAchievement]:
        """
        Update daily metrics for one scored answer and award any newly earned achievements.
        The answer row must already be flushed.
        """
        now = now or utc_now()
        await self.progress_repo.increment(user_id, METRIC_QUESTIONS_ANSWERED, now.date())
        if score is not None:
            await self.progress_repo.increment(user_id, METRIC_SCORE_TOTAL, now.date(), score)

        earned = []
        answered = await self.response_repo.count_for_user(user_id)
        if answered >= 1:
            earned.append(await self._award_once(user_id, "first_step"))
        if answered >= CENTURY:
            earned.append(await self._award_once(user_id, "century_club", {"questions_answered": answered}))
        if score is not None and score >= PERFECT_SCORE:
            earned.append(await self._award_once(user_id, "perfect_session", {"score": score}))
        streak = await self.current_streak(user_id, now.date())
        if streak >= STREAK_DAYS:
            earned.append(await self._award_once(user_id, "week_warrior", {"streak": streak}))
        return [a for a in earned if a is not None]

    async def record_interview_completed(self, user_id: str, report: dict, now: Optional[datetime] = None) -> list[UserAchievement]:
        now = now or utc_now()
        await self.progress_repo.increment(user_id, METRIC_INTERVIEWS_COMPLETED, now.date())
        earned = [await self._award_once(user_id, "mock_master", {"overall_score": report.get("overall_score")})]
        if (report.get("overall_score") or 0) >= PERFECT_SCORE:
            earned.append(await self._award_once(user_id, "perfect_session", {"score": report["overall_score"]}))
        return [a for a in earned if a is not None]

    async def award(self, user_id: str, achievement_type: str, data: dict) -> UserAchievement:
        """
        Manually award an achievement.

        Raises:
            ValidationError: unknown type without an achievement_name
            ConflictError: already earned
        """
        if await self.achievement_repo.get(user_id, achievement_type) is not None:
            raise ConflictError("Achievement already earned")

        defaults = ACHIEVEMENTS.get(achievement_type)
        if defaults is None and not data.get("achievement_name"):
            raise ValidationError(
                "achievement_name is required for custom achievements",
                details=[{"field": "achievement_name", "message": "Field required"}],
            )

        values = dict(defaults or {})
        for key in ("achievement_name", "description", "icon_name"):
            if data.get(key):
                values[key] = data[key]
        return await self.achievement_repo.create(user_id, {
            "achievement_type": achievement_type,
            **values,
            "extra": data.get("metadata") or {},
        })

    async def list_achievements(self, user_id: str, offset: int = 0, limit: int = 100) -> tuple[list[dict], int]:
        rows, total = await self.achievement_repo.list_for_user(user_id, offset, limit)
        return [achievement_to_dict(a) for a in rows], total

    async def stats(self, user_id: str, period_days: int = 30, now: Optional[datetime] = None) -> dict:
        """Totals plus a per-day series over the last period_days days."""
        now = now or utc_now()
        since_day = now.date() - timedelta(days=period_days - 1)
        since = datetime.combine(since_day, datetime.min.time())

        answered = await self.progress_repo.series(user_id, METRIC_QUESTIONS_ANSWERED, since_day)
        score_totals = {row.date_recorded: row.metric_value for row in
                        await self.progress_repo.series(user_id, METRIC_SCORE_TOTAL, since_day)}
        daily = []
        for row in answered:
            count = int(row.metric_value)
            total = score_totals.get(row.date_recorded)
            daily.append({
                "date": row.date_recorded.isoformat(),
                "questions_answered": count,
                "average_score": round(total / count, 1) if total is not None and count else None,
            })

        responses = await self.response_repo.list_for_user(user_id, since)
        scores = [r.score for r in responses if r.score is not None]
        by_type: dict[str, list[int]] = {}
        for response in responses:
            if response.score is not None and response.question_type:
                by_type.setdefault(response.question_type, []).append(response.score)

        average = await self.response_repo.average_score(user_id)
        _, achievement_count = await self.achievement_repo.list_for_user(user_id, 0, 1)
        return {
            "period_days": period_days,
            "total_sessions": await self.session_repo.count_for_user(user_id),
            "completed_sessions": await self.session_repo.count_for_user(user_id, status="completed"),
            "sessions_in_period": await self.session_repo.count_for_user(user_id, since=since),
            "total_questions_answered": await self.response_repo.count_for_user(user_id),
            "questions_in_period": len(responses),
            "average_score": round(average, 1) if average is not None else None,
            "average_score_in_period": round(sum(scores) / len(scores), 1) if scores else None,
            "best_score_in_period": max(scores) if scores else None,
            "scores_by_type": {t: round(sum(v) / len(v), 1) for t, v in by_type.items()},
            "current_streak": await self.current_streak(user_id, now.date()),
            "achievements_earned": achievement_count,
            "daily": daily,
        }
