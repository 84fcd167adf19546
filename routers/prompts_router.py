"""
Prompts Router - daily AI prompt usage
"""

from datetime import datetime, timedelta
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response
from database import get_db
from services.access_gate import AccessStatus
from services.usage_service import UsageService
from utils.shared_utils import utc_now

prompts_router = APIRouter(prefix="/api/prompts", tags=["prompts"])


def usage_payload(access: AccessStatus, now: datetime) -> dict:
    tomorrow = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    return {
        "today_count": access.used_today,
        "daily_limit": access.daily_limit,
        "remaining_prompts": access.remaining_quota,
        "can_make_prompt": access.can_make_prompt,
        "has_active_access": access.has_active_access,
        "reset_time": tomorrow,
        "date": now.date(),
    }


@prompts_router.get("/usage")
async def get_usage(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    now = utc_now()
    access = await UsageService(db).status(current_user["user_id"], now)
    return success_response(usage_payload(access, now))


@prompts_router.post("/usage")
async def increment_usage(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Spend one prompt; 429 once the daily limit is reached"""
    now = utc_now()
    access = await UsageService(db).consume(current_user["user_id"], 1, now)
    return success_response(usage_payload(access, now), message="Prompt recorded")


@prompts_router.put("/usage")
async def check_usage(current_user: dict = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Dry run: same checks as POST without spending a prompt"""
    now = utc_now()
    access = await UsageService(db).check(current_user["user_id"], 1, now)
    return success_response(usage_payload(access, now), message="Prompt available")
