import os
import uuid
from contextlib import contextmanager
from typing import AsyncGenerator, Optional

# Settings are read once and cached, so the test environment must be in place
# before anything under libs/ or services/ is imported.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./.pytest-commerce.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.auth.dependencies import get_current_user, get_optional_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.commerce_service import models as _commerce_models  # noqa: E402,F401


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_member_user(user_id: Optional[str] = None, **overrides) -> AuthUser:
    return AuthUser(
        user_id=user_id or f"member-{uuid.uuid4().hex[:8]}",
        email=overrides.pop("email", "member@example.com"),
        role=overrides.pop("role", "authenticated"),
    )


def make_admin_user(user_id: Optional[str] = None) -> AuthUser:
    return make_member_user(user_id=user_id or "admin-user", role="admin")


@contextmanager
def override_auth(app, user: Optional[AuthUser]):
    """
    Make every auth dependency resolve to ``user`` for the duration.
    Pass None to act as an anonymous guest.
    """

    async def _current_user():
        return user

    previous = {
        dep: app.dependency_overrides.get(dep)
        for dep in (get_current_user, get_optional_user)
    }
    if user is not None:
        app.dependency_overrides[get_current_user] = _current_user
    app.dependency_overrides[get_optional_user] = _current_user
    try:
        yield user
    finally:
        for dep, override in previous.items():
            if override is None:
                app.dependency_overrides.pop(dep, None)
            else:
                app.dependency_overrides[dep] = override


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A throwaway SQLite database per test. Service functions commit, so a
    fresh file is simpler and more faithful than wrapping in a rollback.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'commerce.db'}", future=True
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def commerce_app(session_factory):
    """The commerce app with its DB dependency pointed at the test database."""
    from services.commerce_service.app.main import app

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_test_db
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(commerce_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=commerce_app), base_url="http://test"
    ) as ac:
        yield ac
