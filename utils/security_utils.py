"""
Security utilities for input validation and sanitization
"""
import re


# Control characters other than tab/newline/carriage return
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]')

MAX_ANSWER_LENGTH = 10000


def validate_password_strength(password: str) -> None:
    """
    Validate password strength according to security requirements.

    Enforces:
    - Minimum length: 12 characters
    - At least one uppercase letter (A-Z)
    - At least one lowercase letter (a-z)
    - At least one digit (0-9)
    - At least one special character

    Raises:
        ValueError: If password does not meet strength requirements
    """
    if not password:
        raise ValueError("Password cannot be empty")

    if len(password) < 12:
        raise ValueError("Password must be at least 12 characters long")

    if not re.search(r'[A-Z]', password):
        raise ValueError("Password must contain at least one uppercase letter (A-Z)")

    if not re.search(r'[a-z]', password):
        raise ValueError("Password must contain at least one lowercase letter (a-z)")

    if not re.search(r'[0-9]', password):
        raise ValueError("Password must contain at least one digit (0-9)")

    if not re.search(r'[!@#$%&*(),.?":{}|<>\[\]^_\-+=~;\'/\\]', password):
        raise ValueError("Password must contain at least one special character")


def sanitize_text(value: str, max_length: int = MAX_ANSWER_LENGTH) -> str:
    """
    Strip control characters and surrounding whitespace from free text,
    then cut it to max_length.
    """
    if not value:
        return ""
    cleaned = _CONTROL_CHARS.sub("", value).strip()
    return cleaned[:max_length]
