"""
TaskOps Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

# Wednesday, 12:00 UTC
NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


def days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


# ---------------------------------------------------------------------------
# Environment setup — avoid touching real Redis / Postgres in unit tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset global singletons between tests."""
    import taskops.engine.cache as cache_mod
    import taskops.engine.config as cfg_mod
    import taskops.engine.executor as exec_mod
    import taskops.engine.health as health_mod
    import taskops.process.scheduler as sched_mod
    from taskops.engine.context import clear_execution_context
    from taskops.engine.logging import shutdown_logging
    from taskops.engine.registry import function_registry

    cfg_mod.reset_config()
    cache_mod.reset_cache()
    exec_mod.set_executor(None)
    health_mod.reset_health_service()
    sched_mod.reset_scheduler()
    function_registry.discover()
    yield
    clear_execution_context()
    shutdown_logging()


@pytest.fixture
def db_session():
    """In-memory SQLite database with all tables; yields a session."""
    from taskops.db.session import close_all_sessions, get_session, init_db

    init_db("sqlite://", create_tables=True)
    session = get_session()
    yield session
    session.close()
    close_all_sessions()


@pytest.fixture
def store(db_session):
    from taskops.tasks.store import TaskStore

    return TaskStore(db_session, execution_id="exec_test")


@pytest.fixture
def config():
    from taskops.engine.config import TaskOpsConfig, set_config

    cfg = TaskOpsConfig()
    set_config(cfg)
    return cfg


@pytest.fixture
def executor(config):
    """FunctionExecutor with a frozen clock and no cache."""
    from taskops.engine.executor import FunctionExecutor

    return FunctionExecutor(config=config, clock=lambda: NOW)


@pytest.fixture
def mock_redis():
    """Return a mock Redis client."""
    client = MagicMock()
    client.ping.return_value = True
    client.get.return_value = None
    client.set.return_value = True
    client.delete.return_value = 1
    return client


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_profile(db_session):
    from taskops.db.models import Profile

    def _make(full_name: str = "Alex Doe", **kwargs: Any) -> Profile:
        profile = Profile(full_name=full_name, **kwargs)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture
def make_task(db_session):
    from taskops.db.models import Task

    def _make(name: str = "Task", **kwargs: Any) -> Task:
        kwargs.setdefault("created_at", NOW - timedelta(days=10))
        kwargs.setdefault("updated_at", NOW - timedelta(days=10))
        task = Task(name=name, **kwargs)
        db_session.add(task)
        db_session.commit()
        return task

    return _make


@pytest.fixture
def make_reminder(db_session):
    from taskops.db.models import Reminder

    def _make(assigned_to: str, **kwargs: Any) -> Reminder:
        kwargs.setdefault("title", "Reminder")
        kwargs.setdefault("message", "Don't forget")
        kwargs.setdefault("reminder_date", NOW - timedelta(minutes=5))
        reminder = Reminder(assigned_to=assigned_to, **kwargs)
        db_session.add(reminder)
        db_session.commit()
        return reminder

    return _make
