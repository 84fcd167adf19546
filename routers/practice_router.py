"""
Practice Router - single-question practice sessions and the practice buddy
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.responses import success_response
from database import get_db
from models.practice import PracticeSessionCreate, DraftRequest, AnswerRequest, NextQuestionRequest, BuddyRequest
from services.ai_service import AIService, get_ai_service
from services.practice_service import PracticeService
from services.usage_service import UsageService
from utils.security_utils import sanitize_text

practice_router = APIRouter(prefix="/api/practice", tags=["practice"])


@practice_router.post("/sessions")
async def create_session(
    request: PracticeSessionCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    """Start a practice session on a catalogue question, or a freshly generated one"""
    data = await PracticeService(db, ai_service).create_practice(current_user["user_id"], request.model_dump())
    return success_response(data, message="Practice session started", status=201)


@practice_router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).get_practice(current_user["user_id"], session_id)
    return success_response(data)


@practice_router.put("/sessions/{session_id}/draft")
async def save_draft(
    session_id: str,
    request: DraftRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).save_practice_draft(
        current_user["user_id"], session_id, sanitize_text(request.text)
    )
    return success_response(data, message="Draft saved")


@practice_router.post("/sessions/{session_id}/answer")
async def submit_answer(
    session_id: str,
    request: AnswerRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).submit_practice_answer(
        current_user["user_id"], session_id, sanitize_text(request.answer)
    )
    return success_response(data, message="Answer scored")


@practice_router.post("/sessions/{session_id}/next")
async def next_question(
    session_id: str,
    request: NextQuestionRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    data = await PracticeService(db, ai_service).next_practice_question(
        current_user["user_id"], session_id, request.model_dump()
    )
    return success_response(data)


@practice_router.post("/buddy")
async def buddy_reply(
    request: BuddyRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    """Conversational practice partner; each reply spends one prompt"""
    access = await UsageService(db).consume(current_user["user_id"], 1)
    reply, provider = await ai_service.generate_buddy_response(
        sanitize_text(request.context, 4000), sanitize_text(request.message, 2000)
    )
    return success_response({"reply": reply, "provider": provider, "usage": access.to_dict()})
