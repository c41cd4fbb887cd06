"""
TaskOps Database Session Management.

Single entry point for DB initialisation (``init_db``) plus the
``session_scope()`` context manager used by the function executor.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import sqlalchemy
from sqlalchemy import text as sa_text
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from taskops.db.base import DEFAULT_ENGINE, Base, engine_registry

_session_factory: Optional[scoped_session] = None


def init_db(
    db_url: str,
    schema: Optional[str] = None,
    create_tables: bool = False,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    pool_pre_ping: bool = True,
    echo: bool = False,
) -> sessionmaker:
    """
    Initialise the TaskOps database.

    1. Registers the "taskops" engine in the EngineRegistry.
    2. On PostgreSQL with a schema configured, creates the schema and pins
       ``search_path`` on every new connection.
    3. Optionally runs ``Base.metadata.create_all()`` (``taskops init`` and
       tests only).
    4. Stores a thread-safe ``scoped_session`` factory for ``get_session()``.

    Returns:
        A plain ``sessionmaker`` bound to the engine.
    """
    global _session_factory

    # Models must be imported before create_all
    import taskops.db.models  # noqa: F401

    engine = engine_registry.register(
        DEFAULT_ENGINE, db_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
    )

    if schema and engine.dialect.name == "postgresql":
        with engine.connect() as conn:
            conn.execute(sa_text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
            conn.commit()

        @sqlalchemy.event.listens_for(engine, "connect")
        def set_search_path(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute(f'SET search_path TO "{schema}", public')
            cursor.close()

    if create_tables:
        Base.metadata.create_all(engine)

    factory = sessionmaker(bind=engine)
    if _session_factory is not None:
        _session_factory.remove()
    _session_factory = scoped_session(factory)
    return factory


def init_db_from_config(create_tables: bool = False) -> sessionmaker:
    """Initialise the database from the ``database`` section of taskops.yaml."""
    from taskops.engine.config import get_config

    db = get_config().database
    return init_db(
        db.url,
        schema=db.schema_name,
        create_tables=create_tables,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        pool_pre_ping=db.pool_pre_ping,
        echo=db.echo,
    )


def is_initialized() -> bool:
    return _session_factory is not None


def get_session() -> Session:
    """Get a thread-scoped session for the TaskOps database."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for DB sessions with auto-commit/rollback.

    Usage:
        with session_scope() as session:
            store = TaskStore(session)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def close_all_sessions() -> None:
    """Close all sessions and dispose all engines. Used during shutdown."""
    global _session_factory
    if _session_factory:
        _session_factory.remove()
        _session_factory = None
    engine_registry.dispose()
