"""
Step state machines for practice questions and mock interviews.

Both machines are plain objects with no I/O. The clock is passed in, and
expired deadlines are applied lazily by advance_clock(now) whenever a
session is loaded. Snapshots round-trip through to_dict()/from_dict() and
are stored on PracticeSession.state.
"""
from datetime import datetime, timedelta
from typing import Optional

from config import settings
from backend.utils.errors import ConflictError
from services.question_bank import MOCK_INTERVIEW_TIME_LIMIT

SESSION_PRACTICE = "practice"
SESSION_MOCK_INTERVIEW = "mock_interview"

# Practice steps
STEP_SETUP = "setup"
STEP_QUESTION = "question"
STEP_FEEDBACK = "feedback"

# Mock interview steps
STEP_READY = "ready"
STEP_IN_PROGRESS = "in_progress"
STEP_COMPLETED = "completed"


class InvalidTransitionError(ConflictError):
    def __init__(self, action: str, step: str):
        super().__init__(f"Cannot {action} while session is in '{step}' step", code="INVALID_TRANSITION")
        self.action = action
        self.step = step


def questions_for_duration(duration_minutes: int) -> int:
    if duration_minutes == 15:
        return 5
    if duration_minutes == 30:
        return 10
    return 15


def _dump(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _load(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _grace() -> timedelta:
    return timedelta(seconds=settings.answer_grace_seconds)


def _seconds_left(deadline: Optional[datetime], now: datetime) -> Optional[int]:
    if deadline is None:
        return None
    return max(0, int((deadline - now).total_seconds()))


class PracticeFlow:
    """setup -> question -> feedback, and feedback -> setup for another question."""

    def __init__(self):
        self.step = STEP_SETUP
        self.question: Optional[dict] = None
        self.started_at: Optional[datetime] = None
        self.deadline: Optional[datetime] = None
        self.draft = ""
        self.answer: Optional[str] = None
        self.answered_at: Optional[datetime] = None
        self.feedback: Optional[dict] = None
        self.timed_out = False
        self.history: list[dict] = []

    def _require(self, action: str, *steps: str):
        if self.step not in steps:
            raise InvalidTransitionError(action, self.step)

    def start(self, question: dict, now: datetime):
        """Show a question; its deadline is now + the question's time_to_answer."""
        self._require("start a question", STEP_SETUP)
        self.question = dict(question)
        self.started_at = now
        self.deadline = now + timedelta(seconds=int(question.get("time_to_answer") or 120))
        self.draft = ""
        self.answer = None
        self.answered_at = None
        self.feedback = None
        self.timed_out = False
        self.step = STEP_QUESTION

    def save_draft(self, text: str):
        self._require("save a draft", STEP_QUESTION)
        self.draft = text or ""

    def is_expired(self, now: datetime) -> bool:
        return self.step == STEP_QUESTION and self.deadline is not None and now > self.deadline + _grace()

    def ensure_can_submit(self, now: datetime):
        self._require("submit an answer", STEP_QUESTION)
        if self.is_expired(now):
            raise InvalidTransitionError("submit an answer after the time limit", self.step)

    def submit(self, answer: str, feedback: Optional[dict], now: datetime, timed_out: bool = False):
        """Record the answer and move to feedback. feedback may be attached later."""
        self._require("submit an answer", STEP_QUESTION)
        if not timed_out and self.is_expired(now):
            raise InvalidTransitionError("submit an answer after the time limit", self.step)
        self.answer = answer or ""
        self.answered_at = min(now, self.deadline) if timed_out and self.deadline else now
        self.feedback = feedback
        self.timed_out = timed_out
        self.step = STEP_FEEDBACK

    def attach_feedback(self, feedback: dict):
        self._require("attach feedback", STEP_FEEDBACK)
        self.feedback = feedback

    @property
    def awaiting_feedback(self) -> bool:
        return self.step == STEP_FEEDBACK and self.feedback is None

    def advance_clock(self, now: datetime) -> bool:
        """
        Auto-submit the saved draft once the deadline (plus grace) has passed.
        Returns True when a submission happened; its feedback is still pending.
        """
        if not self.is_expired(now):
            return False
        self.submit(self.draft, None, now, timed_out=True)
        return True

    def reset(self):
        """Back to setup so another question can be started."""
        self._require("move to the next question", STEP_FEEDBACK)
        if self.question is not None:
            self.history.append({
                "question_text": self.question.get("question_text"),
                "score": (self.feedback or {}).get("score"),
                "timed_out": self.timed_out,
            })
        self.step = STEP_SETUP
        self.question = None
        self.started_at = None
        self.deadline = None
        self.draft = ""
        self.answer = None
        self.answered_at = None
        self.feedback = None
        self.timed_out = False

    def view(self, now: datetime) -> dict:
        data = self.to_dict()
        data["time_remaining"] = _seconds_left(self.deadline, now) if self.step == STEP_QUESTION else None
        return data

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "question": self.question,
            "started_at": _dump(self.started_at),
            "deadline": _dump(self.deadline),
            "draft": self.draft,
            "answer": self.answer,
            "answered_at": _dump(self.answered_at),
            "feedback": self.feedback,
            "timed_out": self.timed_out,
            "history": list(self.history),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PracticeFlow":
        flow = cls()
        if not data:
            return flow
        flow.step = data.get("step", STEP_SETUP)
        flow.question = data.get("question")
        flow.started_at = _load(data.get("started_at"))
        flow.deadline = _load(data.get("deadline"))
        flow.draft = data.get("draft") or ""
        flow.answer = data.get("answer")
        flow.answered_at = _load(data.get("answered_at"))
        flow.feedback = data.get("feedback")
        flow.timed_out = bool(data.get("timed_out"))
        flow.history = list(data.get("history") or [])
        return flow


class MockInterview:
    """setup -> ready -> in_progress -> completed"""

    def __init__(self, time_limit: int = MOCK_INTERVIEW_TIME_LIMIT):
        self.step = STEP_SETUP
        self.time_limit = time_limit
        self.questions: list[dict] = []
        self.current_index = 0
        self.deadline: Optional[datetime] = None
        self.draft = ""
        self.answers: list[dict] = []
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.report: Optional[dict] = None

    def _require(self, action: str, *steps: str):
        if self.step not in steps:
            raise InvalidTransitionError(action, self.step)

    def prepare(self, questions: list[dict]):
        self._require("prepare questions", STEP_SETUP)
        if not questions:
            raise ValueError("A mock interview needs at least one question")
        self.questions = [dict(q) for q in questions]
        self.step = STEP_READY

    def begin(self, now: datetime):
        self._require("begin the interview", STEP_READY)
        self.started_at = now
        self.current_index = 0
        self.deadline = now + timedelta(seconds=self.time_limit)
        self.draft = ""
        self.step = STEP_IN_PROGRESS

    def save_draft(self, text: str):
        self._require("save a draft", STEP_IN_PROGRESS)
        if self.all_answered:
            raise InvalidTransitionError("save a draft after the last question", self.step)
        self.draft = text or ""

    @property
    def all_answered(self) -> bool:
        return bool(self.questions) and len(self.answers) >= len(self.questions)

    @property
    def current_question(self) -> Optional[dict]:
        if self.step != STEP_IN_PROGRESS or self.all_answered:
            return None
        return self.questions[self.current_index]

    def _record(self, text: str, at: datetime, timed_out: bool):
        question = self.questions[self.current_index]
        self.answers.append({
            "question_index": self.current_index,
            "question_text": question.get("question_text"),
            "question_type": question.get("question_type"),
            "answer": text or "",
            "answered_at": at.isoformat(),
            "timed_out": timed_out,
        })
        self.current_index += 1
        self.draft = ""

    def answer(self, text: str, now: datetime) -> dict:
        """
        Answer the current question. The next question's clock starts now.
        Call advance_clock(now) first so expired questions are recorded.
        """
        self._require("answer a question", STEP_IN_PROGRESS)
        if self.all_answered:
            raise InvalidTransitionError("answer after the last question", self.step)
        if self.deadline is not None and now > self.deadline + _grace():
            raise InvalidTransitionError("answer after the time limit", self.step)
        self._record(text, now, timed_out=False)
        self.deadline = None if self.all_answered else now + timedelta(seconds=self.time_limit)
        return self.answers[-1]

    def advance_clock(self, now: datetime) -> list[dict]:
        """
        Record the draft for every question whose deadline has passed. Each
        following deadline chains from the previous one, so a long absence
        can expire several questions at once.
        """
        if self.step != STEP_IN_PROGRESS:
            return []
        expired = []
        while not self.all_answered and self.deadline is not None and now > self.deadline + _grace():
            deadline = self.deadline
            self._record(self.draft, deadline, timed_out=True)
            expired.append(self.answers[-1])
            self.deadline = None if self.all_answered else deadline + timedelta(seconds=self.time_limit)
        return expired

    def complete(self, report: dict, now: datetime):
        self._require("complete the interview", STEP_IN_PROGRESS)
        if not self.all_answered:
            raise InvalidTransitionError("complete with unanswered questions", self.step)
        self.report = report
        self.completed_at = now
        self.deadline = None
        self.step = STEP_COMPLETED

    def view(self, now: datetime) -> dict:
        data = self.to_dict()
        data["current_question"] = self.current_question
        data["time_remaining"] = _seconds_left(self.deadline, now) if self.current_question else None
        data["progress"] = {"answered": len(self.answers), "total": len(self.questions)}
        return data

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "time_limit": self.time_limit,
            "questions": self.questions,
            "current_index": self.current_index,
            "deadline": _dump(self.deadline),
            "draft": self.draft,
            "answers": list(self.answers),
            "started_at": _dump(self.started_at),
            "completed_at": _dump(self.completed_at),
            "report": self.report,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "MockInterview":
        interview = cls()
        if not data:
            return interview
        interview.step = data.get("step", STEP_SETUP)
        interview.time_limit = int(data.get("time_limit") or MOCK_INTERVIEW_TIME_LIMIT)
        interview.questions = list(data.get("questions") or [])
        interview.current_index = int(data.get("current_index") or 0)
        interview.deadline = _load(data.get("deadline"))
        interview.draft = data.get("draft") or ""
        interview.answers = list(data.get("answers") or [])
        interview.started_at = _load(data.get("started_at"))
        interview.completed_at = _load(data.get("completed_at"))
        interview.report = data.get("report")
        return interview
