"""
Pytest configuration for codeleveling tests

Every test gets a fresh in-memory SQLite database with the catalog seeded.
"""
import pytest
from datetime import datetime, timedelta
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from codeleveling.core.config import Settings, get_settings
from codeleveling.core.db import build_engine, build_session_factory, get_db, init_db
from codeleveling.seed_data import seed_catalog
from codeleveling.services.user_service import UserService


class FakeClock:
    """Callable clock that tests can move forward"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Sesión con el catálogo cargado"""
    session = session_factory()
    seed_catalog(session)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        SEED_ON_STARTUP=False,
        XP_PER_LEVEL=200,
        RECENCY_BONUS_MAX=200,
        RECENCY_DECAY_PER_DAY=20,
        LEADERBOARD_LIMIT=20,
        DAILY_TIMEZONE="UTC",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 11, 19, 12, 0, 0))


@pytest.fixture
def store_error():
    """Callable que simula un fallo de la base de datos al consultar"""
    def _raise(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))
    return _raise


@pytest.fixture
def user_service(db, settings, clock) -> UserService:
    return UserService(db, settings, clock)


@pytest.fixture
def user(user_service):
    """Usuario de prueba con stats y progreso inicializados"""
    return user_service.ensure_user("alice")


@pytest.fixture
def client(db, session_factory, settings) -> Generator[TestClient, None, None]:
    """
    TestClient with get_db bound to the test database.

    The lifespan is not run, so nothing touches the configured DATABASE_URL.
    """
    from codeleveling.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()
