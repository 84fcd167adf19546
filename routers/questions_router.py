"""
Questions Router - question catalogue and AI generation
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.utils.errors import NotFoundError
from backend.utils.responses import success_response, calculate_pagination
from crud.practice import QuestionRepository
from database import get_db
from models.practice import GenerateQuestionsRequest
from services.ai_service import AIService, get_ai_service
from services.practice_service import PracticeService, question_to_dict
from services.question_bank import CATEGORIES, INDUSTRIES, QUESTION_TYPES, DIFFICULTIES

questions_router = APIRouter(prefix="/api/questions", tags=["questions"])


@questions_router.get("")
async def list_questions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    question_type: Optional[str] = Query(None, alias="type"),
    difficulty: Optional[str] = None,
    industry: Optional[str] = None,
    category: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    rows, total = await QuestionRepository(db).search(
        offset=(page - 1) * limit,
        limit=limit,
        question_type=question_type,
        difficulty=difficulty,
        industry=industry,
        category=category,
    )
    return success_response(
        {"questions": [question_to_dict(q) for q in rows]},
        pagination=calculate_pagination(page, limit, total),
    )


@questions_router.get("/categories")
async def list_categories():
    return success_response({
        "categories": CATEGORIES,
        "industries": INDUSTRIES,
        "question_types": list(QUESTION_TYPES),
        "difficulties": list(DIFFICULTIES),
    })


@questions_router.post("/generate")
async def generate_questions(
    request: GenerateQuestionsRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    ai_service: AIService = Depends(get_ai_service)
):
    """Generate 1-5 questions; spends one prompt from the daily quota"""
    data = await PracticeService(db, ai_service).generate_questions(current_user["user_id"], request.model_dump())
    return success_response(data, message=f"Generated {len(data['questions'])} question(s)", status=201)


@questions_router.get("/{question_id}")
async def get_question(
    question_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    question = await QuestionRepository(db).get(question_id)
    if question is None:
        raise NotFoundError("Question")
    return success_response({"question": question_to_dict(question)})
