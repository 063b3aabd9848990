"""
Database engine, session factory and FastAPI session dependency.

The engine is never a module-level global: it is built from settings in the
application lifespan and kept on ``app.state``. Services receive the
``Session`` they work with explicitly.
"""
from typing import Generator
import logging

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base para modelos SQLAlchemy
Base = declarative_base()

_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless enabled on every connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build a SQLAlchemy engine for the given URL.

    SQLite connections get foreign key enforcement. An in-memory SQLite URL
    shares a single connection so every session sees the same database.
    """
    engine_kwargs = {"echo": echo}

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in _IN_MEMORY_URLS:
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_kwargs)

    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    logger.info(f"Database engine created: dialect={engine.dialect.name}, echo={echo}")
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session maker bound to ``engine``"""
    return sessionmaker(
        bind=engine,
        class_=Session,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet"""
    # Import all models to register them with Base.metadata
    from codeleveling import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency para obtener sesión de base de datos.
    Uso en FastAPI: db: Session = Depends(get_db)

    Services commit their own units of work; this only guarantees the
    session is rolled back on error and closed afterwards.
    """
    session_factory = request.app.state.session_factory
    session = session_factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
