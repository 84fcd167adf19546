"""
Interviews Router - timed mock interviews
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response
from database import get_db
from models.practice import InterviewCreate, DraftRequest, AnswerRequest
from services.ai_service import AIService, get_ai_service
from services.practice_service import PracticeService
from utils.security_utils import sanitize_text

interviews_router = APIRouter(prefix="/api/interviews", tags=["interviews"])


@interviews_router.post("")
async def create_interview(
    request: InterviewCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    """Prepare questions for the chosen duration; the clock starts on /begin"""
    data = await PracticeService(db, ai_service).create_interview(current_user["user_id"], request.model_dump())
    return success_response(data, message="Mock interview ready", status=201)


@interviews_router.get("/{session_id}")
async def get_interview(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).get_interview(current_user["user_id"], session_id)
    return success_response(data)


@interviews_router.post("/{session_id}/begin")
async def begin_interview(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).begin_interview(current_user["user_id"], session_id)
    return success_response(data, message="Mock interview started")


@interviews_router.put("/{session_id}/draft")
async def save_draft(
    session_id: str,
    request: DraftRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).save_interview_draft(
        current_user["user_id"], session_id, sanitize_text(request.text)
    )
    return success_response(data, message="Draft saved")


@interviews_router.post("/{session_id}/answer")
async def answer_question(
    session_id: str,
    request: AnswerRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).answer_interview(
        current_user["user_id"], session_id, sanitize_text(request.answer)
    )
    return success_response(data)
