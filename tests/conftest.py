import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_engine.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-system-test")

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock
from sqlalchemy.ext.asyncio import AsyncSession

from app.main import app
from app.core.database import DatabaseManager
from app.core.dependencies import get_current_admin, get_current_user, get_db
from app.models.base import Base
from app.models.plan_model import Plan
from app.models.user_model import Users
from app.repository.user_repository import user_repository
from app.schemas.plan_schema import PlanFeatures


@pytest.fixture
def mock_db_session():
    return AsyncMock(spec=AsyncSession)


@pytest.fixture(autouse=True)
def override_get_db(mock_db_session):
    async def _override():
        yield mock_db_session
    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def mock_user():
    return Users(
        id=1,
        name="Test User",
        email="test@example.com",
        password="hashed_password",
        role="user",
    )


@pytest.fixture
def authenticated_client(mock_user):
    """Provide an authenticated client for testing (as regular user)."""
    app.dependency_overrides[get_current_user] = lambda: mock_user
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def admin_client():
    """Provide an authenticated client as platform admin."""
    mock_admin = Users(
        id=2,
        name="Admin User",
        email="admin@example.com",
        password="hashed_password",
        role="admin",
    )
    app.dependency_overrides[get_current_user] = lambda: mock_admin
    app.dependency_overrides[get_current_admin] = lambda: mock_admin
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.pop(get_current_user, None)
    app.dependency_overrides.pop(get_current_admin, None)


# --- Real database (temporary SQLite file) ---

@pytest_asyncio.fixture
async def engine_db(tmp_path):
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def db_session(engine_db):
    async with engine_db.async_session_maker() as session:
        yield session


@pytest.fixture
def create_plan(db_session):
    async def _create(**features) -> Plan:
        plan = Plan(
            name=f"plan-{uuid.uuid4().hex[:8]}",
            price=Decimal("49.90"),
            duration_in_days=30,
            features=PlanFeatures(**features).model_dump(),
        )
        db_session.add(plan)
        await db_session.commit()
        await db_session.refresh(plan)
        return plan
    return _create


@pytest.fixture
def create_user(db_session, create_plan):
    """Persists a user, optionally bound to a fresh plan built from `features`."""
    async def _create(features=None, role="user", plan=True, expires_at=None, **fields) -> Users:
        plan_id = None
        if plan:
            plan_id = (await create_plan(**(features or {}))).id
            expires_at = expires_at or datetime.utcnow() + timedelta(days=30)
        user = Users(
            name="Maria Silva",
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            password="hashed_password",
            role=role,
            plan_id=plan_id,
            plan_expires_at=expires_at,
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return await user_repository.get_user(db_session, user.id)
    return _create


def build_user(features=None, role="user", plan_id=1, expires_at=None, **fields) -> Users:
    """Unsaved user with an attached plan, for pure decision tests."""
    if plan_id is not None and expires_at is None:
        expires_at = datetime.utcnow() + timedelta(days=30)
    user = Users(
        id=10,
        name="Maria Silva",
        email="maria@example.com",
        password="hashed_password",
        role=role,
        plan_id=plan_id,
        plan_expires_at=expires_at,
        **fields,
    )
    if plan_id is not None:
        user.current_plan = Plan(
            id=plan_id,
            name="Pro",
            price=Decimal("49.90"),
            duration_in_days=30,
            features=PlanFeatures(**(features or {})).model_dump(),
        )
    return user


@pytest.fixture
def user_builder():
    return build_user
