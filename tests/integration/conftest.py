"""
Integration test fixtures — a file-backed project with a real runtime.

The database is SQLite on disk and the analytics cache is disabled, so these
run without PostgreSQL or Redis while still exercising the full stack
(config → runtime → executor → store → JSONL logs).

Run: pytest tests/integration/ -v -m integration
"""

from __future__ import annotations

import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end runs through the runtime")


@pytest.fixture
def integration_project(tmp_path, monkeypatch):
    """Project directory with taskops.yaml; initialised tables; runtime torn down after."""
    from taskops.engine.runtime import reset_runtime

    root = tmp_path / "project"
    root.mkdir()
    (root / "taskops.yaml").write_text(
        "platform:\n"
        "  name: IntegrationOps\n"
        "  environment: dev\n"
        "database:\n"
        f"  url: 'sqlite:///{root / 'taskops.db'}'\n"
        "logging:\n"
        f"  directory: '{root / 'logs'}'\n"
        "analytics:\n"
        "  cache_enabled: false\n"
        "escalation:\n"
        "  manager_after_days: 2\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(root)
    yield root
    reset_runtime()
