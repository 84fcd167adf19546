"""
Interview Prep Backend
Auth, subscriptions and billing, AI-backed practice and mock interviews
"""

from pathlib import Path
import logging
import traceback

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from auth import auth_router
from routers.google_auth_router import google_auth_router
from routers.users_router import users_router
from routers.subscriptions_router import subscriptions_router
from routers.billing_router import payments_router, webhook_router
from routers.prompts_router import prompts_router
from routers.questions_router import questions_router
from routers.practice_router import practice_router
from routers.interviews_router import interviews_router
from routers.sessions_router import sessions_router
from routers.progress_router import progress_router
from routers.admin_router import admin_router
from utils.rate_limit import RateLimiterMiddleware
from backend.utils.errors import register_exception_handlers
from backend.utils.responses import success_response, error_response
from database import init_db
from config import settings, IS_PRODUCTION

# Logging setup - write ALL events to /logs/app.log
LOGS_DIR = Path("./logs")
LOGS_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="Interview Prep API", version="1.0.0")


def _is_render_env() -> bool:
    """Check if running in Render.com environment"""
    return bool(settings.render or settings.render_external_url or settings.render_service_name)


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return error_response("Internal server error", status=500, code="INTERNAL_ERROR")


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: CSP, HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # JSON API only: nothing may be loaded or framed
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Only set in production (Render environment) where HTTPS is guaranteed
        if _is_render_env():
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


register_exception_handlers(app)

app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(RateLimiterMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# authlib keeps the OAuth state in the session between /login and /callback
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret_key,
    same_site="lax",
    https_only=IS_PRODUCTION,
)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# STARTUP CHECKS
# ============================================================================
@app.on_event("startup")
async def check_env_keys_on_startup():
    """Warn about missing optional integrations (non-fatal)"""
    optional = {
        "OPENAI_API_KEY": settings.openai_api_key,
        "STRIPE_SECRET_KEY": settings.stripe_secret_key,
        "STRIPE_WEBHOOK_SECRET": settings.stripe_webhook_secret,
        "GOOGLE_CLIENT_ID": settings.google_client_id,
        "ADMIN_SECRET_TOKEN": settings.admin_secret_token,
    }
    missing = [key for key, value in optional.items() if not value]
    if not settings.jwt_secret_key:
        logger.error("JWT_SECRET_KEY is not set. Sign-in will fail until it is configured.")
    if missing:
        logger.warning(f"Startup check: Missing environment variables: {', '.join(missing)}")
    else:
        logger.info("Startup check: All integration keys are set")
    if not settings.openai_api_key:
        logger.warning("AI provider not configured; questions and scoring use the local fallback")
    if IS_PRODUCTION and settings.session_secret_key == "dev-session-secret":
        logger.error("SESSION_SECRET_KEY is using the development default in production")


# Initialize database on startup
@app.on_event("startup")
async def initialize_database():
    """Create all tables and seed the plan catalogue."""
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
# Webhook first so it is matched before any other /api/subscriptions route
app.include_router(webhook_router)
app.include_router(auth_router)
app.include_router(google_auth_router)
app.include_router(users_router)
app.include_router(subscriptions_router)
app.include_router(payments_router)
app.include_router(prompts_router)
app.include_router(questions_router)
app.include_router(practice_router)
app.include_router(interviews_router)
app.include_router(sessions_router)
app.include_router(progress_router)
app.include_router(admin_router)


@app.get("/health")
async def health():
    return success_response({"status": "ok", "ai_provider": "openai" if settings.openai_api_key else "fallback"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
