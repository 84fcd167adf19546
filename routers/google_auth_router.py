"""
Google Single Sign-On (SSO) Router
Handles the Google OAuth authorization-code exchange and the redirect flow
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from authlib.integrations.starlette_client import OAuth, OAuthError

from auth import create_account, user_summary, token_payload, set_auth_cookies
from backend.utils.errors import AuthenticationError, BadRequestError, ExternalServiceError
from backend.utils.responses import success_response
from crud.user import UserRepository
from database import get_db
from database_models import User
from models.auth import GoogleCodeRequest
from utils.shared_utils import utc_now, log_endpoint_event
from config import settings

logger = logging.getLogger(__name__)

# Initialize OAuth
oauth = OAuth()

# Configure Google OAuth provider
if settings.google_client_id and settings.google_client_secret:
    oauth.register(
        name="google",
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={
            "scope": "openid email profile"
        }
    )
else:
    logger.warning("Google OAuth credentials not configured. Google SSO will be unavailable.")

# Create Google auth router
google_auth_router = APIRouter(prefix="/api/auth/google", tags=["google-auth"])


def _google_client():
    client = oauth.create_client("google")
    if client is None:
        raise ExternalServiceError("Google", "Google OAuth not configured")
    return client


async def fetch_google_profile(code: str, redirect_uri: Optional[str]) -> dict:
    """
    Exchange an authorization code for tokens and return the Google profile.

    Raises:
        AuthenticationError: Google rejected the code
    """
    client = _google_client()
    try:
        token = await client.fetch_access_token(
            code=code,
            redirect_uri=redirect_uri or settings.google_redirect_uri,
        )
        return dict(token.get("userinfo") or await client.userinfo(token=token))
    except OAuthError as e:
        logger.warning(f"Google code exchange failed: {e.error}")
        raise AuthenticationError("Google authentication failed", code="OAUTH_ERROR")


async def find_or_create_google_user(db: AsyncSession, profile: dict) -> User:
    """Match by Google id, then by email (linking the account), else create a new account with a trial."""
    email = (profile.get("email") or "").lower()
    google_id = profile.get("sub")
    if not email or not google_id:
        raise BadRequestError("Email not provided by Google")
    if profile.get("email_verified") is False:
        raise AuthenticationError("Google email is not verified", code="EMAIL_NOT_VERIFIED")

    user_repo = UserRepository(db)
    user = await user_repo.get_user_by_google_id(google_id)
    if user is None:
        user = await user_repo.get_user_by_email(email)
        if user is not None:
            user = await user_repo.update_user(user, {
                "google_id": google_id,
                "avatar_url": user.avatar_url or profile.get("picture"),
                "full_name": user.full_name or profile.get("name"),
            })
            logger.info(f"Linked Google account to existing user {user.id}")

    if user is None:
        user = await create_account(db, {
            "email": email,
            "full_name": profile.get("name"),
            "avatar_url": profile.get("picture"),
            "google_id": google_id,
            "auth_provider": "google",
        })

    if not user.is_active:
        raise AuthenticationError("User account is inactive", code="ACCOUNT_INACTIVE")
    return await user_repo.update_user(user, {"last_login_at": utc_now()})


@google_auth_router.post("")
async def google_code_exchange(request: GoogleCodeRequest, db: AsyncSession = Depends(get_db)):
    """Exchange a Google authorization code for a session"""
    profile = await fetch_google_profile(request.code, request.redirect_uri)
    is_new = await UserRepository(db).get_user_by_email((profile.get("email") or "").lower()) is None
    user = await find_or_create_google_user(db, profile)

    log_endpoint_event("/auth/google", None, "success", {"user_id": user.id, "new_user": is_new})
    tokens = token_payload(user)
    response = success_response({"user": user_summary(user), "is_new_user": is_new, **tokens}, message="Signed in with Google")
    return set_auth_cookies(response, tokens["token"], tokens["refresh_token"])


@google_auth_router.get("/login")
async def google_login(request: Request):
    """
    Initiate Google OAuth login flow.
    Redirects user to Google consent screen; authlib keeps the state in the session.
    """
    client = _google_client()
    redirect_uri = settings.google_redirect_uri or str(request.url_for("google_auth_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@google_auth_router.get("/callback")
async def google_auth_callback(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Google OAuth callback.
    Creates or signs in the user and redirects to the frontend with auth cookies set.
    """
    client = _google_client()
    frontend_url = settings.frontend_url or "http://localhost:3000"
    try:
        token = await client.authorize_access_token(request)
    except OAuthError as e:
        logger.warning(f"Google callback rejected: {e.error}")
        return RedirectResponse(url=f"{frontend_url}/auth/signin?error=oauth_failed")

    profile = dict(token.get("userinfo") or await client.userinfo(token=token))
    user = await find_or_create_google_user(db, profile)

    tokens = token_payload(user)
    response = RedirectResponse(url=f"{frontend_url}/dashboard")
    return set_auth_cookies(response, tokens["token"], tokens["refresh_token"])
