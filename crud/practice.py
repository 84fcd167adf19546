"""
Repositories for questions, practice sessions and user responses
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete as sa_delete

from database_models import Question, PracticeSession, UserResponse


class QuestionRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, question_id: str) -> Optional[Question]:
        result = await self.db.execute(select(Question).where(Question.id == question_id))
        return result.scalar_one_or_none()

    async def create_many(self, questions: list[dict]) -> list[Question]:
        rows = [Question(**data) for data in questions]
        self.db.add_all(rows)
        await self.db.flush()
        for row in rows:
            await self.db.refresh(row)
        return rows

    async def search(
        self,
        offset: int,
        limit: int,
        question_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        industry: Optional[str] = None,
        category: Optional[str] = None,
    ) -> tuple[list[Question], int]:
        filters = []
        if question_type:
            filters.append(Question.question_type == question_type)
        if difficulty:
            filters.append(Question.difficulty == difficulty)
        if industry:
            filters.append(func.lower(Question.industry) == industry.lower())
        if category:
            filters.append(Question.category == category)

        total = await self.db.scalar(select(func.count(Question.id)).where(*filters))
        result = await self.db.execute(
            select(Question).where(*filters).order_by(Question.created_at.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total or 0


class PracticeSessionRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_user(self, session_id: str, user_id: str) -> Optional[PracticeSession]:
        result = await self.db.execute(
            select(PracticeSession).where(
                PracticeSession.id == session_id,
                PracticeSession.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: str, data: dict) -> PracticeSession:
        session = PracticeSession(user_id=user_id, **data)
        self.db.add(session)
        await self.db.flush()
        await self.db.refresh(session)
        return session

    async def save(self, session: PracticeSession, updates: dict) -> PracticeSession:
        for key, value in updates.items():
            setattr(session, key, value)
        await self.db.flush()
        await self.db.refresh(session)
        return session

    async def delete(self, session: PracticeSession) -> None:
        # SQLite does not enforce ON DELETE CASCADE without the foreign_keys pragma
        await self.db.execute(sa_delete(UserResponse).where(UserResponse.session_id == session.id))
        await self.db.delete(session)
        await self.db.flush()

    async def list_for_user(
        self,
        user_id: str,
        offset: int,
        limit: int,
        status: Optional[str] = None,
        session_type: Optional[str] = None,
    ) -> tuple[list[PracticeSession], int]:
        filters = [PracticeSession.user_id == user_id]
        if status:
            filters.append(PracticeSession.status == status)
        if session_type:
            filters.append(PracticeSession.session_type == session_type)

        total = await self.db.scalar(select(func.count(PracticeSession.id)).where(*filters))
        result = await self.db.execute(
            select(PracticeSession)
            .where(*filters)
            .order_by(PracticeSession.started_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def count_for_user(self, user_id: str, status: Optional[str] = None, since: Optional[datetime] = None) -> int:
        filters = [PracticeSession.user_id == user_id]
        if status:
            filters.append(PracticeSession.status == status)
        if since:
            filters.append(PracticeSession.started_at >= since)
        return await self.db.scalar(select(func.count(PracticeSession.id)).where(*filters)) or 0

    async def count_all_by_user(self) -> dict[str, int]:
        result = await self.db.execute(
            select(PracticeSession.user_id, func.count(PracticeSession.id)).group_by(PracticeSession.user_id)
        )
        return {user_id: count for user_id, count in result.all()}


class UserResponseRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: dict) -> UserResponse:
        response = UserResponse(**data)
        self.db.add(response)
        await self.db.flush()
        await self.db.refresh(response)
        return response

    async def list_for_session(self, session_id: str) -> list[UserResponse]:
        result = await self.db.execute(
            select(UserResponse)
            .where(UserResponse.session_id == session_id)
            .order_by(UserResponse.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: str, since: Optional[datetime] = None) -> list[UserResponse]:
        filters = [UserResponse.user_id == user_id]
        if since:
            filters.append(UserResponse.created_at >= since)
        result = await self.db.execute(
            select(UserResponse).where(*filters).order_by(UserResponse.created_at.asc())
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str) -> int:
        return await self.db.scalar(
            select(func.count(UserResponse.id)).where(UserResponse.user_id == user_id)
        ) or 0

    async def average_score(self, user_id: str) -> Optional[float]:
        return await self.db.scalar(
            select(func.avg(UserResponse.score)).where(
                UserResponse.user_id == user_id,
                UserResponse.score.is_not(None),
            )
        )
