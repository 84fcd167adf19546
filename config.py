"""
Centralized configuration using Pydantic BaseSettings.
All environment variables are optional to prevent application startup failure.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Normalized plan keys
PLAN_TRIAL = "trial"
PLAN_WEEKLY = "weekly"
PLAN_MONTHLY = "monthly"

# Subscription statuses
STATUS_TRIAL = "trial"
STATUS_ACTIVE = "active"
STATUS_CANCELED = "canceled"
STATUS_EXPIRED = "expired"
STATUS_PAST_DUE = "past_due"

SUBSCRIPTION_STATUSES = (STATUS_TRIAL, STATUS_ACTIVE, STATUS_CANCELED, STATUS_EXPIRED, STATUS_PAST_DUE)

# At most one subscription per user may sit in one of these at a time
LIVE_STATUSES = (STATUS_TRIAL, STATUS_ACTIVE, STATUS_PAST_DUE)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")
    access_token_days: int = Field(default=7, alias="ACCESS_TOKEN_DAYS")
    refresh_token_days: int = Field(default=30, alias="REFRESH_TOKEN_DAYS")
    session_secret_key: str = Field(default="dev-session-secret", alias="SESSION_SECRET_KEY")
    admin_secret_token: Optional[str] = Field(default=None, alias="ADMIN_SECRET_TOKEN")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_weekly_price_id: Optional[str] = Field(default=None, alias="STRIPE_WEEKLY_PRICE_ID")
    stripe_monthly_price_id: Optional[str] = Field(default=None, alias="STRIPE_MONTHLY_PRICE_ID")

    # Google OAuth
    google_client_id: Optional[str] = Field(default=None, alias="GOOGLE_CLIENT_ID")
    google_client_secret: Optional[str] = Field(default=None, alias="GOOGLE_CLIENT_SECRET")
    google_redirect_uri: Optional[str] = Field(default=None, alias="GOOGLE_REDIRECT_URI")

    # AI provider
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")

    # Infrastructure configuration
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./sql_app.db", alias="DATABASE_URL")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:3000", alias="FRONTEND_URL")

    # Trial and quota
    trial_days: int = Field(default=7, alias="TRIAL_DAYS")
    daily_prompt_limit: int = Field(default=20, alias="DAILY_PROMPT_LIMIT")
    answer_grace_seconds: int = Field(default=5, alias="ANSWER_GRACE_SECONDS")

    # Rate limiting (requests per minute per client IP)
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    rate_limit_auth_per_minute: int = Field(default=10, alias="RATE_LIMIT_AUTH_PER_MINUTE")
    rate_limit_api_per_minute: int = Field(default=60, alias="RATE_LIMIT_API_PER_MINUTE")
    rate_limit_default_per_minute: int = Field(default=100, alias="RATE_LIMIT_DEFAULT_PER_MINUTE")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")
    render_external_url: Optional[str] = Field(default=None, alias="RENDER_EXTERNAL_URL")
    render_service_name: Optional[str] = Field(default=None, alias="RENDER_SERVICE_NAME")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or bool(settings.env and settings.env.lower() == "production")


# Plan catalogue. daily_prompt_limit of None means unlimited.
PLANS = {
    PLAN_TRIAL: {
        "plan_key": PLAN_TRIAL,
        "name": "Free Trial",
        "description": f"{settings.trial_days}-day free trial with full access",
        "price_cents": 0,
        "interval": "trial",
        "trial_days": settings.trial_days,
        "daily_prompt_limit": settings.daily_prompt_limit,
        "stripe_price_id": None,
        "features": [
            f"{settings.daily_prompt_limit} AI prompts per day",
            "All industries included",
            "AI-powered feedback",
        ],
    },
    PLAN_WEEKLY: {
        "plan_key": PLAN_WEEKLY,
        "name": "Weekly Access",
        "description": "7-day free trial, then $5/week",
        "price_cents": 500,
        "interval": "week",
        "trial_days": 7,
        "daily_prompt_limit": 20,
        "stripe_price_id": settings.stripe_weekly_price_id,
        "features": [
            "7-day free trial",
            "20 AI prompts per day",
            "All industries included",
            "AI-powered feedback",
            "Progress tracking",
            "Achievement system",
            "Basic analytics",
        ],
    },
    PLAN_MONTHLY: {
        "plan_key": PLAN_MONTHLY,
        "name": "Monthly Unlimited",
        "description": "Best value - Unlimited everything!",
        "price_cents": 2900,
        "interval": "month",
        "trial_days": 7,
        "daily_prompt_limit": None,
        "stripe_price_id": settings.stripe_monthly_price_id,
        "popular": True,
        "features": [
            "7-day free trial",
            "UNLIMITED AI prompts",
            "All industries included",
            "Advanced AI feedback",
            "Priority support",
            "Practice Buddy feature",
            "Mock interviews",
            "Advanced analytics & insights",
        ],
    },
}

PAID_PLANS = (PLAN_WEEKLY, PLAN_MONTHLY)
