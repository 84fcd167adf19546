"""
Sessions Router - practice and mock interview history
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response, calculate_pagination
from database import get_db
from services.practice_service import PracticeService

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@sessions_router.get("")
async def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = None,
    session_type: Optional[str] = Query(None, alias="type"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    sessions, total = await PracticeService(db).list_sessions(
        current_user["user_id"], (page - 1) * limit, limit, status, session_type
    )
    return success_response({"sessions": sessions}, pagination=calculate_pagination(page, limit, total))


@sessions_router.get("/{session_id}")
async def get_session(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    data = await PracticeService(db).session_detail(current_user["user_id"], session_id)
    return success_response(data)


@sessions_router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await PracticeService(db).delete_session(current_user["user_id"], session_id)
    return success_response(message="Session deleted")
