"""
Progress Router - statistics and achievements
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response, calculate_pagination
from database import get_db
from models.progress import AchievementCreate
from services.progress_service import ProgressService, achievement_to_dict

progress_router = APIRouter(prefix="/api/progress", tags=["progress"])


@progress_router.get("/stats")
async def get_stats(
    period: int = Query(30, ge=1, le=365),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Totals and a daily series over the last `period` days"""
    stats = await ProgressService(db).stats(current_user["user_id"], period)
    return success_response(stats)


@progress_router.get("/achievements")
async def list_achievements(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    achievements, total = await ProgressService(db).list_achievements(
        current_user["user_id"], (page - 1) * limit, limit
    )
    return success_response({"achievements": achievements}, pagination=calculate_pagination(page, limit, total))


@progress_router.post("/achievements")
async def award_achievement(
    request: AchievementCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    achievement = await ProgressService(db).award(
        current_user["user_id"], request.achievement_type, request.model_dump()
    )
    return success_response({"achievement": achievement_to_dict(achievement)}, message="Achievement awarded", status=201)
