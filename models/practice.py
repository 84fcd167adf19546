from typing import Optional, List, Literal
from pydantic import BaseModel, Field

QuestionType = Literal["behavioral", "technical", "situational", "cultural"]
Difficulty = Literal["easy", "medium", "hard"]
ExperienceLevel = Literal["entry", "mid", "senior", "executive"]


class GenerateQuestionsRequest(BaseModel):
    industry: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = Field(default=None, max_length=100)
    experience_level: Optional[ExperienceLevel] = None
    question_type: Optional[QuestionType] = None
    difficulty: Optional[Difficulty] = None
    # Clamped to 1..5 by the service
    count: int = 1
    previous_questions: List[str] = Field(default_factory=list)


class PracticeSessionCreate(GenerateQuestionsRequest):
    question_id: Optional[str] = None


class NextQuestionRequest(BaseModel):
    question_id: Optional[str] = None
    question_type: Optional[QuestionType] = None
    finish: bool = False


class InterviewCreate(BaseModel):
    industry: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = Field(default=None, max_length=100)
    experience_level: Optional[ExperienceLevel] = None
    difficulty: Optional[Difficulty] = None
    question_type: Optional[QuestionType] = None
    duration_minutes: int = Field(default=30, ge=5, le=120)


class DraftRequest(BaseModel):
    text: str = Field(default="", max_length=10000)


class AnswerRequest(BaseModel):
    answer: str = Field(default="", max_length=10000)


class BuddyRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    context: str = Field(default="", max_length=4000)
