"""
Authentication utilities: Password hashing and JWT token management
"""

import jwt
from datetime import timedelta
from passlib.context import CryptContext
from typing import Optional
from config import settings
from utils.shared_utils import utc_now

# Password hashing context
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)

# JWT configuration
ALGORITHM = "HS256"
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def hash_password(password: str) -> str:
    """Hash a password using argon2"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify a password against its hash. Users without a password (Google sign-in) never match."""
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def _encode(user_id: str, token_type: str, lifetime: timedelta) -> str:
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot create JWT token.")

    payload = {
        "sub": user_id,
        "type": token_type,
        "exp": utc_now() + lifetime
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def create_jwt(user_id: str) -> str:
    """Create an access token for a user"""
    return _encode(user_id, ACCESS_TOKEN, timedelta(days=settings.access_token_days))


def create_refresh_jwt(user_id: str) -> str:
    """Create a long-lived refresh token for a user"""
    return _encode(user_id, REFRESH_TOKEN, timedelta(days=settings.refresh_token_days))


def decode_jwt(token: str, expected_type: str = ACCESS_TOKEN):
    """Decode a JWT token. Returns None if invalid, expired or of the wrong type."""
    if not settings.jwt_secret_key:
        raise ValueError("JWT_SECRET_KEY is not set. Cannot decode JWT token.")

    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None

    if payload.get("type", ACCESS_TOKEN) != expected_type:
        return None
    return payload


def create_expired_jwt(user_id: str, expired_seconds_ago: int = 1) -> str:
    """
    Create an expired JWT token for testing purposes.

    Args:
        user_id: User ID to include in token
        expired_seconds_ago: How many seconds ago the token should have expired (default: 1)

    Returns:
        Expired JWT token string

    Raises:
        ValueError: If JWT_SECRET_KEY is not set
    """
    return _encode(user_id, ACCESS_TOKEN, timedelta(seconds=-expired_seconds_ago))
