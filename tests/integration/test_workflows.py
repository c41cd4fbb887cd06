"""
Integration tests — cross-module workflows.

Each test boots the real runtime from taskops.yaml and drives functions
through the CLI or the HTTP app, then checks rows and JSONL logs.
"""

import json
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

import taskops.cli as cli_mod


def _seed(*rows):
    from taskops.db.session import session_scope

    with session_scope() as session:
        session.add_all(rows)


@pytest.mark.integration
class TestCliWorkflow:
    def test_init_then_overdue_sweep(self, integration_project, capsys):
        from taskops.db.models import Notification, Profile, Task
        from taskops.db.session import get_session

        assert cli_mod.main(["--config", "taskops.yaml", "init"]) == 0
        capsys.readouterr()

        _seed(
            Profile(id="mgr", full_name="Boss"),
            Profile(id="emp", full_name="Jane Roe", manager_id="mgr"),
            Task(id="late", name="Late", assigned_to_id="emp", due_date=date.today() - timedelta(days=3)),
        )

        assert cli_mod.main(["--config", "taskops.yaml", "invoke", "process-overdue-tasks"]) == 0
        body = json.loads(capsys.readouterr().out)
        assert body["overdue_tasks_found"] == 1
        assert body["notifications_created"] == 2

        session = get_session()
        assert {n.user_id for n in session.query(Notification)} == {"emp", "mgr"}
        session.close()

    def test_logs_written_on_shutdown(self, integration_project, capsys):
        from taskops.engine.logging import FileLogger
        from taskops.engine.runtime import reset_runtime

        cli_mod.main(["--config", "taskops.yaml", "init"])
        cli_mod.main(["--config", "taskops.yaml", "invoke", "calculate-task-analytics"])
        reset_runtime()

        entries = FileLogger(log_dir=str(integration_project / "logs")).query(
            "functions", "execution", filters={"object_ref": "calculate-task-analytics"},
        )
        assert len(entries) == 1
        assert entries[0]["triggered_by"] == "cli"
        assert entries[0]["status_code"] == 200


@pytest.mark.integration
class TestHttpWorkflow:
    def test_rollup_then_bulk_then_analytics(self, integration_project):
        from taskops.db.models import Profile, Task
        from taskops.engine.runtime import init_runtime
        from taskops.server import create_app

        init_runtime("taskops.yaml", create_tables=True)
        _seed(
            Profile(id="root", full_name="Admin", role="superadmin"),
            Task(id="A", name="Parent", status="in-progress"),
            Task(id="B", name="Child 1", parent_id="A", status="completed"),
            Task(id="C", name="Child 2", parent_id="A", status="in-progress"),
        )
        client = TestClient(create_app())

        response = client.post(
            "/functions/v1/bulk-task-operations",
            json={"operation": "update_status", "task_ids": ["C"], "status": "completed", "user_id": "root"},
        )
        assert response.json()["updated"] == 1

        response = client.post(
            "/functions/v1/sync-task-status",
            json={"task_id": "C", "old_status": "in-progress", "new_status": "completed"},
        )
        assert response.json()["new_status"] == "completed"
        assert response.json()["updated"] is True

        analytics = client.post("/functions/v1/calculate-task-analytics", json={}).json()
        assert analytics["total"] == 3
        assert analytics["completion_rate"] == 100

    def test_health(self, integration_project):
        from taskops.engine.runtime import init_runtime
        from taskops.server import create_app

        init_runtime("taskops.yaml", create_tables=True)
        response = TestClient(create_app()).get("/health")
        assert response.status_code == 200
        assert response.json()["checks"]["database"]["status"] == "healthy"
