"""
Pytest configuration and fixtures for testing
"""
import os

# Settings are read once at import time, so the test environment must be in place first
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-with-enough-length-0123456789"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ADMIN_SECRET_TOKEN"] = "test-admin-token"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_WEEKLY_PRICE_ID"] = "price_weekly_test"
os.environ["STRIPE_MONTHLY_PRICE_ID"] = "price_monthly_test"
for key in ("OPENAI_API_KEY", "STRIPE_SECRET_KEY", "REDIS_URL", "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "RENDER", "ENV"):
    os.environ.pop(key, None)

import random  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402

from database import Base, get_db  # noqa: E402

STRONG_PASSWORD = "StrongPass123!"


@pytest.fixture
async def test_engine(tmp_path):
    """
    File-backed SQLite engine for one test.

    The request sessions and the test's own session share the file,
    so rows written through the API are visible to assertions.
    """
    import database_models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory):
    """
    Fixture that provides an isolated SQLite database session for each test.

    This fixture:
    - Uses tables created by test_engine
    - Yields a clean AsyncSession for the test
    - Commits on success, rolls back on failure
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest.fixture
async def client(session_factory):
    """httpx client bound to the app with the test database and a keyless, seeded AI service"""
    from main import app
    from services.ai_service import AIService, get_ai_service

    async def override_get_db():
        """Override get_db to use test database"""
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: AIService(api_key="", rng=random.Random(7))

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


async def signup(client, email: str, password: str = STRONG_PASSWORD, full_name: str = "Test User") -> dict:
    """Create an account through the API and return Bearer headers plus the response data."""
    response = await client.post("/api/auth/signup", json={
        "email": email,
        "password": password,
        "full_name": full_name,
    })
    assert response.status_code == 201, response.text
    # Bearer auth only; cookies are secure and would shadow the header for later users
    client.cookies.clear()
    data = response.json()["data"]
    return {"headers": {"Authorization": f"Bearer {data['token']}"}, "data": data}


@pytest.fixture
async def auth_headers(client):
    account = await signup(client, "candidate@example.com")
    return account["headers"]
