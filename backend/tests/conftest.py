"""
Root conftest.py: Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy (all function-scoped):
  db_engine        : fresh SQLite database file under tmp_path, schema created
  session_factory  : async_sessionmaker bound to db_engine
  db_session       : one AsyncSession for direct assertions
  task_runner      : InProcessTaskRunner writing to the same database
  app / client     : FastAPI app with get_db + get_task_runner overridden,
                     httpx AsyncClient over ASGITransport
  make_user        : factory persisting User rows
  make_token       : factory issuing session tokens for a User
  auth_headers     : factory building {"Authorization": "Bearer ..."} headers

Environment strategy:
  - Settings are patched through env vars BEFORE any docextract import.
  - Each test gets its own SQLite file, so the request session and the
    background extraction task use separate connections, as in production.
  - Background work always runs in-process; tests call
    `await task_runner.drain()` before asserting on terminal status.

How to run:
  pytest                          # all tests
  pytest -m unit                  # unit tests only
  pytest -m integration           # full HTTP stack
"""

from __future__ import annotations

import os
import uuid
from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any app imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DATABASE_URL",          "sqlite+aiosqlite://")
os.environ.setdefault("SESSION_SECRET",        "test-session-secret")
os.environ.setdefault("TASK_BACKEND",          "inprocess")
os.environ.setdefault("PDF_BACKEND",           "pypdf")
os.environ.setdefault("CELERY_BROKER_URL",     "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("APP_ENV",               "development")
os.environ.setdefault("DEBUG",                 "false")


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    from docextract.db.session import build_engine, create_schema

    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'docextract_test.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    from docextract.db.session import build_sessionmaker
    return build_sessionmaker(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator:
    async with session_factory() as session:
        yield session


# ─────────────────────────────────────────────────────────────────────────────
# Background execution
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def extractor():
    from docextract.processing.extractor import TextExtractor
    return TextExtractor()


@pytest_asyncio.fixture
async def task_runner(session_factory, extractor):
    from docextract.workers.runner import InProcessTaskRunner

    runner = InProcessTaskRunner(session_factory, extractor, timeout=10.0)
    yield runner
    await runner.drain()


# ─────────────────────────────────────────────────────────────────────────────
# Application + HTTP client
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def app(session_factory, task_runner):
    from docextract.db.session import get_db
    from docextract.main import create_app
    from docextract.workers.runner import get_task_runner

    application = create_app()

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = _get_test_db
    application.dependency_overrides[get_task_runner] = lambda: task_runner
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ─────────────────────────────────────────────────────────────────────────────
# Users + session tokens
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_user(session_factory) -> Callable[..., Awaitable]:
    """
    Factory fixture: persists and returns a User.

    Usage:
        alice = await make_user()
        boss  = await make_user(role="admin", email="boss@example.com")
    """
    from docextract.models.extractions import User

    async def _build(
        role: str = "user",
        email: str | None = None,
        password: str = "correct-horse",
    ) -> User:
        user = User(email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com", role=role)
        user.set_password(password)
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _build


@pytest.fixture
def make_token() -> Callable[..., str]:
    """
    Factory fixture: session token for a User.

    Usage:
        token = make_token(user)
        token = make_token(user, ttl_seconds=-60)   # already expired
    """
    from docextract.auth.session import Principal, Role, issue_session_token

    def _build(user, ttl_seconds: int | None = None) -> str:
        principal = Principal(id=user.id, email=user.email, role=Role(user.role))
        return issue_session_token(principal, ttl_seconds=ttl_seconds)

    return _build


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict]:
    def _build(user) -> dict:
        return {"Authorization": f"Bearer {make_token(user)}"}
    return _build


@pytest.fixture
def upload(client, auth_headers) -> Callable[..., Awaitable]:
    """
    Factory fixture: POST /api/extractions/upload as `user`.

    Usage:
        resp = await upload(alice, "notes.txt", b"Hello.")
        resp = await upload(alice, "photo.jpg", b"...", "image/jpeg")
    """
    async def _post(user, file_name: str, data: bytes, content_type: str = "text/plain"):
        return await client.post(
            "/api/extractions/upload",
            files={"file": (file_name, data, content_type)},
            headers=auth_headers(user),
        )
    return _post


@pytest.fixture
def principal_for():
    """Principal for a User without going through a token."""
    from docextract.auth.session import Principal, Role

    def _build(user) -> Principal:
        return Principal(id=user.id, email=user.email, role=Role(user.role))

    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Sample file bytes
# ─────────────────────────────────────────────────────────────────────────────

SCENARIO_TEXT = "First sentence. Second sentence. Third sentence. Fourth sentence."


@pytest.fixture
def sample_txt_bytes() -> bytes:
    return SCENARIO_TEXT.encode("utf-8")


@pytest.fixture
def sample_docx_bytes() -> bytes:
    """Not a real OOXML package; the DOCX path only filters characters."""
    return "Résumé: <b>Quarterly</b> report. Totals & notes!".encode("utf-8")


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """Valid one-page PDF with no text layer."""
    return (
        b"%PDF-1.4\n"
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
        b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n"
        b"3 0 obj\n<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>\nendobj\n"
        b"xref\n0 4\n"
        b"0000000000 65535 f \n"
        b"0000000009 00000 n \n"
        b"0000000058 00000 n \n"
        b"0000000115 00000 n \n"
        b"trailer\n<< /Size 4 /Root 1 0 R >>\n"
        b"startxref\n178\n%%EOF"
    )
