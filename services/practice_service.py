"""
Practice Service - persists the practice and mock interview state machines,
scores answers and records progress.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession

from crud.practice import QuestionRepository, PracticeSessionRepository, UserResponseRepository
from database_models import PracticeSession, Question
from backend.utils.errors import NotFoundError, BadRequestError
from services.ai_service import AIService
from services.practice_flow import (
    PracticeFlow, MockInterview, questions_for_duration,
    SESSION_PRACTICE, SESSION_MOCK_INTERVIEW, STEP_COMPLETED,
)
from services.progress_service import ProgressService, achievement_to_dict
from services.question_bank import template_questions, MOCK_INTERVIEW_TIME_LIMIT
from services.scoring_service import build_interview_report, fallback_interview_report
from services.usage_service import UsageService
from utils.shared_utils import utc_now, log_endpoint_event

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

MIN_GENERATED = 1
MAX_GENERATED = 5

DEFAULT_PARAMS = {
    "industry": "technology",
    "role": "Software Engineer",
    "experience_level": "mid",
    "difficulty": "medium",
    "question_type": None,
}


def normalize_generation_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Fill defaults and clamp count to 1..5."""
    normalized = dict(DEFAULT_PARAMS)
    normalized.update({k: v for k, v in params.items() if v is not None})
    try:
        count = int(params.get("count") or 1)
    except (TypeError, ValueError):
        count = 1
    normalized["count"] = max(MIN_GENERATED, min(MAX_GENERATED, count))
    normalized["previous_questions"] = list(params.get("previous_questions") or [])
    return normalized


def question_to_dict(question: Question) -> dict:
    return {
        "id": question.id,
        "question_text": question.question_text,
        "question_type": question.question_type,
        "difficulty": question.difficulty,
        "category": question.category,
        "industry": question.industry,
        "role": question.role,
        "tips": question.tips or [],
        "evaluation_criteria": question.evaluation_criteria or [],
        "follow_up_questions": question.follow_up_questions or [],
        "time_to_answer": question.time_to_answer,
        "is_ai_generated": question.is_ai_generated,
    }


def session_to_dict(session: PracticeSession, view: Optional[dict] = None) -> dict:
    return {
        "id": session.id,
        "session_type": session.session_type,
        "status": session.status,
        "step": session.step,
        "industry": session.industry,
        "role": session.role,
        "difficulty": session.difficulty,
        "duration_minutes": session.duration_minutes,
        "total_questions": session.total_questions,
        "questions_answered": session.questions_answered,
        "average_score": session.average_score,
        "report": session.report,
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "state": view if view is not None else session.state,
    }


class PracticeService:

    def __init__(self, db: AsyncSession, ai_service: Optional[AIService] = None):
        self.db = db
        self.ai = ai_service or AIService()
        self.question_repo = QuestionRepository(db)
        self.session_repo = PracticeSessionRepository(db)
        self.response_repo = UserResponseRepository(db)
        self.usage = UsageService(db)
        self.progress = ProgressService(db)

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def generate_questions(self, user_id: str, params: Dict[str, Any], now: Optional[datetime] = None) -> dict:
        """
        One generation request spends one prompt regardless of count or provider.

        Returns:
            {"questions": [...], "provider": str, "usage": AccessStatus dict}
        """
        now = now or utc_now()
        params = normalize_generation_params(params)
        access = await self.usage.consume(user_id, 1, now)

        generated, provider = await self.ai.generate_questions(params)
        rows = await self.question_repo.create_many(generated)
        log_endpoint_event("/questions/generate", None, "success", {
            "user_id": user_id, "count": len(rows), "provider": provider,
        })
        return {
            "questions": [question_to_dict(q) for q in rows],
            "provider": provider,
            "usage": access.to_dict(),
        }

    async def _question_for(self, user_id: str, question_id: Optional[str], params: Dict[str, Any], now: datetime) -> dict:
        if question_id:
            question = await self.question_repo.get(question_id)
            if question is None:
                raise NotFoundError("Question")
            await self.usage.check(user_id, 0, now)
            return question_to_dict(question)
        result = await self.generate_questions(user_id, dict(params, count=1), now)
        return result["questions"][0]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, user_id: str, session_id: str, session_type: Optional[str] = None) -> PracticeSession:
        session = await self.session_repo.get_for_user(session_id, user_id)
        if session is None or (session_type and session.session_type != session_type):
            raise NotFoundError("Session")
        return session

    async def _save_response(self, session: PracticeSession, question: dict, answer: str,
                             feedback: dict, provider: str, timed_out: bool, now: datetime) -> list:
        await self.response_repo.create({
            "session_id": session.id,
            "user_id": session.user_id,
            "question_id": question.get("id"),
            "question_text": question.get("question_text") or "",
            "question_type": question.get("question_type"),
            "response_text": answer or "",
            "score": feedback.get("score"),
            "feedback": feedback,
            "provider": provider,
            "timed_out": timed_out,
            "created_at": now,
        })
        return await self.progress.record_answer(session.user_id, feedback.get("score"), now)

    async def _score(self, session: PracticeSession, question: dict, answer: str) -> tuple[dict, str]:
        return await self.ai.analyze_answer({
            "question": question.get("question_text") or "",
            "question_type": question.get("question_type"),
            "industry": session.industry,
            "role": session.role,
            "answer": answer or "",
        })

    async def _store(self, session: PracticeSession, machine, extra: Optional[dict] = None) -> PracticeSession:
        updates = {"state": machine.to_dict(), "step": machine.step}
        updates.update(extra or {})
        return await self.session_repo.save(session, updates)

    async def _refresh_totals(self, session: PracticeSession) -> dict:
        responses = await self.response_repo.list_for_session(session.id)
        scores = [r.score for r in responses if r.score is not None]
        return {
            "questions_answered": len(responses),
            "average_score": round(sum(scores) / len(scores), 1) if scores else None,
        }

    # ------------------------------------------------------------------
    # Practice flow
    # ------------------------------------------------------------------

    async def _sync_practice(self, session: PracticeSession, flow: PracticeFlow, now: datetime) -> list:
        """Apply an expired deadline: the saved draft is submitted and scored."""
        earned = []
        if flow.advance_clock(now):
            logger.info(f"Practice session {session.id} timed out; submitting saved draft")
        if flow.awaiting_feedback:
            feedback, provider = await self._score(session, flow.question, flow.answer)
            flow.attach_feedback(dict(feedback, provider=provider))
            earned = await self._save_response(session, flow.question, flow.answer, feedback, provider,
                                               flow.timed_out, flow.answered_at or now)
            await self._store(session, flow, await self._refresh_totals(session))
        return earned

    async def create_practice(self, user_id: str, params: Dict[str, Any], now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        params = normalize_generation_params(params)
        question = await self._question_for(user_id, params.get("question_id"), params, now)

        flow = PracticeFlow()
        flow.start(question, now)
        session = await self.session_repo.create(user_id, {
            "session_type": SESSION_PRACTICE,
            "status": STATUS_IN_PROGRESS,
            "step": flow.step,
            "industry": params["industry"],
            "role": params["role"],
            "difficulty": params["difficulty"],
            "total_questions": 1,
            "state": flow.to_dict(),
            "started_at": now,
        })
        logger.info(f"Practice session {session.id} started for user {user_id}")
        return session_to_dict(session, flow.view(now))

    async def get_practice(self, user_id: str, session_id: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_PRACTICE)
        flow = PracticeFlow.from_dict(session.state)
        await self._sync_practice(session, flow, now)
        return session_to_dict(session, flow.view(now))

    async def save_practice_draft(self, user_id: str, session_id: str, text: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_PRACTICE)
        flow = PracticeFlow.from_dict(session.state)
        await self._sync_practice(session, flow, now)
        flow.save_draft(text)
        session = await self._store(session, flow)
        return session_to_dict(session, flow.view(now))

    async def submit_practice_answer(self, user_id: str, session_id: str, answer: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_PRACTICE)
        flow = PracticeFlow.from_dict(session.state)
        await self._sync_practice(session, flow, now)
        flow.ensure_can_submit(now)
        await self.usage.check(user_id, 0, now)

        feedback, provider = await self._score(session, flow.question, answer)
        flow.submit(answer, dict(feedback, provider=provider), now)
        earned = await self._save_response(session, flow.question, answer, feedback, provider, False, now)
        session = await self._store(session, flow, await self._refresh_totals(session))

        result = session_to_dict(session, flow.view(now))
        result["new_achievements"] = [achievement_to_dict(a) for a in earned]
        return result

    async def next_practice_question(self, user_id: str, session_id: str, params: Dict[str, Any],
                                     now: Optional[datetime] = None) -> dict:
        """Leave feedback for another question, or finish the session when params["finish"] is set."""
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_PRACTICE)
        if session.status == STATUS_COMPLETED:
            raise BadRequestError("Session is already completed")
        flow = PracticeFlow.from_dict(session.state)
        await self._sync_practice(session, flow, now)
        flow.reset()

        if params.get("finish"):
            session = await self._store(session, flow, {"status": STATUS_COMPLETED, "completed_at": now})
            return session_to_dict(session, flow.view(now))

        question_params = normalize_generation_params({
            "industry": session.industry,
            "role": session.role,
            "difficulty": session.difficulty,
            **{k: v for k, v in params.items() if k != "finish"},
            "previous_questions": [h["question_text"] for h in flow.history if h.get("question_text")],
        })
        question = await self._question_for(user_id, params.get("question_id"), question_params, now)
        flow.start(question, now)
        session = await self._store(session, flow, {"total_questions": session.total_questions + 1})
        return session_to_dict(session, flow.view(now))

    # ------------------------------------------------------------------
    # Mock interview
    # ------------------------------------------------------------------

    async def _score_mock_answers(self, session: PracticeSession, interview: MockInterview, now: datetime) -> list:
        earned = []
        for index, entry in enumerate(interview.answers):
            if "score" in entry:
                continue
            question = interview.questions[entry["question_index"]]
            feedback, provider = await self._score(session, question, entry["answer"])
            answered_at = datetime.fromisoformat(entry["answered_at"])
            earned += await self._save_response(session, question, entry["answer"], feedback, provider,
                                                entry["timed_out"], answered_at)
            interview.answers[index] = dict(
                entry,
                score=feedback["score"],
                strengths=feedback.get("strengths", []),
                improvements=feedback.get("improvements", []),
                tips=feedback.get("tips", []),
                provider=provider,
            )
        return earned

    async def _sync_interview(self, session: PracticeSession, interview: MockInterview, now: datetime) -> list:
        expired = interview.advance_clock(now)
        if expired:
            logger.info(f"Mock interview {session.id}: {len(expired)} question(s) timed out")
        earned = await self._score_mock_answers(session, interview, now)
        earned += await self._maybe_complete(session, interview, now)
        if expired or earned:
            await self._store(session, interview, await self._refresh_totals(session))
        return earned

    async def _maybe_complete(self, session: PracticeSession, interview: MockInterview, now: datetime) -> list:
        if interview.step == STEP_COMPLETED or not interview.all_answered:
            return []
        try:
            report = build_interview_report(interview.answers)
        except Exception as e:
            logger.warning(f"Mock interview {session.id}: report scoring failed ({e}); using fallback report")
            report = fallback_interview_report([a["answer"] for a in interview.answers], self.ai.rng)
        interview.complete(report, now)
        await self._store(session, interview, {
            "status": STATUS_COMPLETED,
            "completed_at": now,
            "report": report,
        })
        logger.info(f"Mock interview {session.id} completed with score {report['overall_score']}")
        return await self.progress.record_interview_completed(session.user_id, report, now)

    async def create_interview(self, user_id: str, params: Dict[str, Any], now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        await self.usage.check(user_id, 0, now)
        params = normalize_generation_params(params)
        duration = int(params.get("duration_minutes") or 30)
        count = questions_for_duration(duration)

        questions = template_questions(
            count=count,
            industry=params["industry"],
            role=params["role"],
            difficulty=params["difficulty"],
            experience_level=params["experience_level"],
            question_type=params.get("question_type"),
            rng=self.ai.rng,
        )
        for question in questions:
            question["time_to_answer"] = MOCK_INTERVIEW_TIME_LIMIT

        interview = MockInterview()
        interview.prepare(questions)
        session = await self.session_repo.create(user_id, {
            "session_type": SESSION_MOCK_INTERVIEW,
            "status": STATUS_IN_PROGRESS,
            "step": interview.step,
            "industry": params["industry"],
            "role": params["role"],
            "difficulty": params["difficulty"],
            "duration_minutes": duration,
            "total_questions": count,
            "state": interview.to_dict(),
            "started_at": now,
        })
        logger.info(f"Mock interview {session.id} prepared with {count} questions for user {user_id}")
        return session_to_dict(session, interview.view(now))

    async def get_interview(self, user_id: str, session_id: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_MOCK_INTERVIEW)
        interview = MockInterview.from_dict(session.state)
        await self._sync_interview(session, interview, now)
        return session_to_dict(session, interview.view(now))

    async def begin_interview(self, user_id: str, session_id: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_MOCK_INTERVIEW)
        await self.usage.check(user_id, 0, now)
        interview = MockInterview.from_dict(session.state)
        interview.begin(now)
        session = await self._store(session, interview)
        return session_to_dict(session, interview.view(now))

    async def save_interview_draft(self, user_id: str, session_id: str, text: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_MOCK_INTERVIEW)
        interview = MockInterview.from_dict(session.state)
        await self._sync_interview(session, interview, now)
        interview.save_draft(text)
        session = await self._store(session, interview)
        return session_to_dict(session, interview.view(now))

    async def answer_interview(self, user_id: str, session_id: str, text: str, now: Optional[datetime] = None) -> dict:
        now = now or utc_now()
        session = await self.get_session(user_id, session_id, SESSION_MOCK_INTERVIEW)
        interview = MockInterview.from_dict(session.state)
        earned = await self._sync_interview(session, interview, now)

        interview.answer(text, now)
        earned += await self._score_mock_answers(session, interview, now)
        earned += await self._maybe_complete(session, interview, now)
        session = await self._store(session, interview, await self._refresh_totals(session))

        result = session_to_dict(session, interview.view(now))
        result["new_achievements"] = [achievement_to_dict(a) for a in earned]
        return result

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_sessions(self, user_id: str, offset: int, limit: int,
                            status: Optional[str] = None, session_type: Optional[str] = None) -> tuple[List[dict], int]:
        rows, total = await self.session_repo.list_for_user(user_id, offset, limit, status, session_type)
        return [session_to_dict(s) for s in rows], total

    async def session_detail(self, user_id: str, session_id: str) -> dict:
        session = await self.get_session(user_id, session_id)
        data = session_to_dict(session)
        data["responses"] = [
            {
                "id": r.id,
                "question_id": r.question_id,
                "question_text": r.question_text,
                "question_type": r.question_type,
                "response_text": r.response_text,
                "score": r.score,
                "feedback": r.feedback,
                "provider": r.provider,
                "timed_out": r.timed_out,
                "created_at": r.created_at,
            }
            for r in await self.response_repo.list_for_session(session.id)
        ]
        return data

    async def delete_session(self, user_id: str, session_id: str) -> None:
        session = await self.get_session(user_id, session_id)
        await self.session_repo.delete(session)
        logger.info(f"Session {session_id} deleted by user {user_id}")
