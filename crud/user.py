"""
Repositories for the User and UserProfile models
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database_models import User, UserProfile


PROFILE_FIELDS = ("industry", "role", "experience_level", "target_companies", "preferred_difficulty", "timezone")


class UserRepository:
    """
    Repository class for User database operations.
    Encapsulates all database logic for the User model.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve a user by email address.

        Args:
            email: User's email address (case-insensitive search)

        Returns:
            User object if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.google_id == google_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_stripe_customer(self, customer_id: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.stripe_customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def list_users(self) -> list[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def create_user(self, user_data: dict) -> User:
        """
        Create a new user in the database.

        Args:
            user_data: Dictionary containing user data. Must include:
                - email: str
                Optional:
                - hashed_password: str (absent for Google users)
                - full_name, avatar_url, google_id
                - auth_provider: "email" or "google" (defaults to "email")
                - is_active: bool (defaults to True)

        Returns:
            Created User object
        """
        user = User(
            email=user_data["email"].lower(),
            hashed_password=user_data.get("hashed_password"),
            full_name=user_data.get("full_name"),
            avatar_url=user_data.get("avatar_url"),
            google_id=user_data.get("google_id"),
            auth_provider=user_data.get("auth_provider", "email"),
            is_active=user_data.get("is_active", True),
        )
        self.db.add(user)
        await self.db.flush()  # Flush to get the ID without committing
        await self.db.refresh(user)
        return user

    async def update_user(self, user: User, updates: dict) -> User:
        """
        Update user fields.

        Args:
            user: User object to update
            updates: Dictionary of fields to update (e.g., {"full_name": "Ada"})

        Returns:
            Updated User object
        """
        for key, value in updates.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        return user


class UserProfileRepository:
    """Profile rows, one per user."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_user(self, user_id: str) -> Optional[UserProfile]:
        result = await self.db.execute(
            select(UserProfile).where(UserProfile.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: str, data: dict) -> UserProfile:
        profile = UserProfile(user_id=user_id, **{k: v for k, v in data.items() if k in PROFILE_FIELDS and v is not None})
        self.db.add(profile)
        await self.db.flush()
        await self.db.refresh(profile)
        return profile

    async def update(self, profile: UserProfile, updates: dict) -> UserProfile:
        for key, value in updates.items():
            if key in PROFILE_FIELDS:
                setattr(profile, key, value)
        await self.db.flush()
        await self.db.refresh(profile)
        return profile

    async def delete(self, profile: UserProfile) -> None:
        await self.db.delete(profile)
        await self.db.flush()
