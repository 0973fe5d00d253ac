import os
import tempfile
from contextlib import contextmanager
from typing import AsyncGenerator, Optional

# Settings are read once at import time; point them at throwaway storage first.
_TEST_DIR = tempfile.mkdtemp(prefix="commerce-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/bootstrap.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["INVOICE_STORAGE_DIR"] = os.path.join(_TEST_DIR, "invoices")
os.environ["CHECKOUT_RETRY_BACKOFF_SECONDS"] = "0"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db, get_session_factory
from services.commerce_service import models as _commerce_models  # noqa: F401
from services.commerce_service.app.main import app

settings = get_settings()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Create a fresh SQLite database per test.

    A file (not ``:memory:``) so that several connections, e.g. two
    concurrent checkouts, see the same data.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'commerce.db'}",
        future=True,
        connect_args={"timeout": 15},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session for arranging data and asserting on it.

    Requests made through ``client`` use their own sessions, so reload
    (``refresh`` / ``populate_existing``) before asserting on rows they touched.
    """
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_customer_user(customer_id, email: Optional[str] = None) -> AuthUser:
    return AuthUser(
        sub=str(customer_id),
        email=email or "customer@test.com",
        role="customer",
    )


def make_admin_user(user_id: str = "admin-user") -> AuthUser:
    return AuthUser(sub=user_id, email="admin@test.com", role="admin")


@contextmanager
def override_auth(target_app, user: AuthUser):
    """Temporarily authenticate every request to ``target_app`` as ``user``."""
    previous = target_app.dependency_overrides.get(get_current_user)
    target_app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            target_app.dependency_overrides.pop(get_current_user, None)
        else:
            target_app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to the commerce app and the per-test database.

    Authenticate with ``override_auth(app, make_customer_user(...))``.
    """

    async def _get_test_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.rollback()

    app.dependency_overrides[get_async_db] = _get_test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth():
    with override_auth(app, make_admin_user()) as user:
        yield user


@pytest_asyncio.fixture
async def customer(db_session):
    """An approved customer, authenticated for requests made through ``client``."""
    from tests.factories import add_customer

    record = await add_customer(db_session)
    with override_auth(app, make_customer_user(record.id, record.email)):
        yield record
