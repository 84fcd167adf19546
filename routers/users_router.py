"""
Users Router - profile CRUD and the dashboard summary
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, load_user, user_summary
from backend.utils.errors import ConflictError, NotFoundError
from backend.utils.responses import success_response
from crud.user import UserRepository, UserProfileRepository
from database import get_db
from database_models import UserProfile
from models.profile import ProfileCreate, ProfileUpdate
from services.practice_service import PracticeService
from services.progress_service import ProgressService
from services.usage_service import UsageService
from utils.shared_utils import invalidate_user_cache

logger = logging.getLogger(__name__)

users_router = APIRouter(prefix="/api/users", tags=["users"])


def profile_to_dict(profile: UserProfile) -> dict:
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "industry": profile.industry,
        "role": profile.role,
        "experience_level": profile.experience_level,
        "target_companies": profile.target_companies or [],
        "preferred_difficulty": profile.preferred_difficulty,
        "timezone": profile.timezone,
        "created_at": profile.created_at,
        "updated_at": profile.updated_at,
    }


@users_router.get("/profile")
async def get_profile(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    user = await load_user(db, current_user)
    profile = await UserProfileRepository(db).get_by_user(user.id)
    if profile is None:
        raise NotFoundError("Profile")
    return success_response({"user": user_summary(user), "profile": profile_to_dict(profile)})


@users_router.post("/profile")
async def create_profile(
    request: ProfileCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create the profile; a user has at most one."""
    profile_repo = UserProfileRepository(db)
    if await profile_repo.get_by_user(current_user["user_id"]) is not None:
        raise ConflictError("Profile already exists")
    profile = await profile_repo.create(current_user["user_id"], request.model_dump())
    return success_response({"profile": profile_to_dict(profile)}, message="Profile created", status=201)


@users_router.put("/profile")
async def update_profile(
    request: ProfileUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    updates = request.model_dump(exclude_unset=True)
    user = await load_user(db, current_user)

    if "full_name" in updates:
        user = await UserRepository(db).update_user(user, {"full_name": updates.pop("full_name")})
        invalidate_user_cache(user.id)

    profile_repo = UserProfileRepository(db)
    profile = await profile_repo.get_by_user(user.id)
    if profile is None:
        raise NotFoundError("Profile")
    profile = await profile_repo.update(profile, {k: v for k, v in updates.items() if v is not None})
    return success_response({"user": user_summary(user), "profile": profile_to_dict(profile)}, message="Profile updated")


@users_router.delete("/profile")
async def delete_profile(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    profile_repo = UserProfileRepository(db)
    profile = await profile_repo.get_by_user(current_user["user_id"])
    if profile is None:
        raise NotFoundError("Profile")
    await profile_repo.delete(profile)
    logger.info(f"Profile deleted for user {current_user['user_id']}")
    return success_response(message="Profile deleted")


@users_router.get("/dashboard")
async def get_dashboard(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Stats, recent sessions, achievements and access status in one call"""
    user = await load_user(db, current_user)
    profile = await UserProfileRepository(db).get_by_user(user.id)
    access = await UsageService(db).status(user.id)

    progress = ProgressService(db)
    stats = await progress.stats(user.id, period_days=30)
    achievements, _ = await progress.list_achievements(user.id, 0, 5)
    recent_sessions, _ = await PracticeService(db).list_sessions(user.id, 0, 5)
    for session in recent_sessions:
        session.pop("state", None)

    return success_response({
        "user": user_summary(user),
        "profile": profile_to_dict(profile) if profile else None,
        "subscription": access.to_dict(),
        "stats": stats,
        "recent_sessions": recent_sessions,
        "achievements": achievements,
    })
