"""
Tests for the error envelope and database error mapping
"""
import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError, NoResultFound, OperationalError

from backend.utils.errors import (
    map_database_error, ConflictError, BadRequestError, NotFoundError, DatabaseError,
    ExternalServiceError, AuthenticationError,
)
from backend.utils.responses import calculate_pagination


def _integrity(message: str) -> IntegrityError:
    return IntegrityError("INSERT INTO users ...", {}, sqlite3.IntegrityError(message))


def test_unique_violation_maps_to_conflict():
    error = map_database_error(_integrity("UNIQUE constraint failed: users.email"))
    assert isinstance(error, ConflictError)
    assert error.status_code == 409


def test_foreign_key_and_not_null_map_to_bad_request():
    assert isinstance(map_database_error(_integrity("FOREIGN KEY constraint failed")), BadRequestError)
    assert isinstance(map_database_error(_integrity("NOT NULL constraint failed: users.email")), BadRequestError)


def test_other_errors_map_to_database_error():
    assert isinstance(map_database_error(NoResultFound()), NotFoundError)
    error = map_database_error(OperationalError("SELECT 1", {}, sqlite3.OperationalError("disk I/O error")))
    assert isinstance(error, DatabaseError)
    assert error.status_code == 500


def test_error_defaults():
    assert NotFoundError("Session").message == "Session not found"
    assert ExternalServiceError("Stripe").message == "Stripe service unavailable"
    assert AuthenticationError().status_code == 401


def test_pagination():
    assert calculate_pagination(2, 10, 35) == {
        "page": 2, "limit": 10, "total": 35, "total_pages": 4, "has_next": True, "has_prev": True,
    }
    assert calculate_pagination(1, 10, 0)["total_pages"] == 0


@pytest.mark.asyncio
async def test_not_found_route_uses_envelope(client):
    response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_validation_error_lists_fields(client):
    response = await client.post("/api/auth/signin", json={"email": "a@example.com"})
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert any(detail["field"] == "password" for detail in body["details"])


@pytest.mark.asyncio
async def test_health_and_security_headers(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "ok"
    assert response.json()["data"]["ai_provider"] == "fallback"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
