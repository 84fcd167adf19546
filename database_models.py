import uuid

from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, Integer, Float, Text, JSON, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from utils.shared_utils import utc_now


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Application user. Password users carry a hashed_password, Google users a google_id.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String, nullable=True)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String, nullable=True)
    auth_provider = Column(String(20), nullable=False, default="email")
    google_id = Column(String(255), unique=True, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    profile = relationship("UserProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    subscriptions = relationship("UserSubscription", back_populates="user", cascade="all, delete-orphan")


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    industry = Column(String(100), nullable=True)
    role = Column(String(100), nullable=True)
    experience_level = Column(String(20), nullable=True)
    target_companies = Column(JSON, nullable=False, default=list)
    preferred_difficulty = Column(String(10), nullable=False, default="medium")
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship("User", back_populates="profile")


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(String(36), primary_key=True, default=_uuid)
    plan_key = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    price_cents = Column(Integer, nullable=False, default=0)
    interval = Column(String(10), nullable=False)
    trial_days = Column(Integer, nullable=False, default=0)
    # NULL means unlimited
    daily_prompt_limit = Column(Integer, nullable=True)
    stripe_price_id = Column(String(255), nullable=True)
    features = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)


class UserSubscription(Base):
    """
    Subscription row. A user may keep historical rows but at most one of them
    is in trial, active or past_due (checked in SubscriptionRepository).
    """
    __tablename__ = "user_subscriptions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=True)
    plan_key = Column(String(20), nullable=False, default="trial")
    status = Column(String(20), nullable=False, index=True)
    trial_start_date = Column(DateTime, nullable=True)
    trial_end_date = Column(DateTime, nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    user = relationship("User", back_populates="subscriptions")


class PromptUsage(Base):
    __tablename__ = "prompt_usage"
    __table_args__ = (UniqueConstraint("user_id", "usage_date", name="uq_prompt_usage_user_date"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    usage_date = Column(Date, nullable=False)
    prompt_count = Column(Integer, nullable=False, default=0)
    # NULL means unlimited
    prompt_limit = Column(Integer, nullable=True, default=20)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_uuid)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, index=True)
    difficulty = Column(String(10), nullable=False, index=True)
    category = Column(String(100), nullable=True)
    industry = Column(String(100), nullable=True, index=True)
    role = Column(String(100), nullable=True)
    tips = Column(JSON, nullable=False, default=list)
    evaluation_criteria = Column(JSON, nullable=False, default=list)
    follow_up_questions = Column(JSON, nullable=False, default=list)
    time_to_answer = Column(Integer, nullable=False, default=120)
    is_ai_generated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)


class PracticeSession(Base):
    __tablename__ = "practice_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="in_progress", index=True)
    step = Column(String(20), nullable=False)
    industry = Column(String(100), nullable=True)
    role = Column(String(100), nullable=True)
    difficulty = Column(String(10), nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    total_questions = Column(Integer, nullable=False, default=0)
    questions_answered = Column(Integer, nullable=False, default=0)
    average_score = Column(Float, nullable=True)
    state = Column(JSON, nullable=False, default=dict)
    report = Column(JSON, nullable=True)
    started_at = Column(DateTime, default=utc_now, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    responses = relationship("UserResponse", back_populates="session", cascade="all, delete-orphan", passive_deletes=True)


class UserResponse(Base):
    __tablename__ = "user_responses"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(36), ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="SET NULL"), nullable=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=True)
    response_text = Column(Text, nullable=False, default="")
    score = Column(Integer, nullable=True)
    feedback = Column(JSON, nullable=False, default=dict)
    provider = Column(String(20), nullable=False, default="fallback")
    timed_out = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    session = relationship("PracticeSession", back_populates="responses")


class UserAchievement(Base):
    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_type", name="uq_achievement_user_type"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    achievement_type = Column(String(50), nullable=False)
    achievement_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    icon_name = Column(String(50), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)
    earned_at = Column(DateTime, default=utc_now, nullable=False)


class UserProgress(Base):
    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "metric_name", "date_recorded", name="uq_progress_user_metric_date"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    metric_name = Column(String(50), nullable=False)
    metric_value = Column(Float, nullable=False, default=0)
    date_recorded = Column(Date, nullable=False)
