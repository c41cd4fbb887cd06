"""Tests for analytics — build_snapshot and calculate-task-analytics."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from taskops.engine.cache import ANALYTICS_SNAPSHOT_KEY
from taskops.engine.errors import TaskOpsStoreError
from taskops.tasks.rules.analytics import build_snapshot, completion_days
from tests.conftest import NOW, TODAY, days_ago


def _task(status="not-started", priority="medium", assigned_to_id=None, due_date=None,
          created_days_ago=10, completed_days_ago=None, updated_days_ago=None):
    return SimpleNamespace(
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        due_date=due_date,
        created_at=NOW - timedelta(days=created_days_ago),
        completed_at=NOW - timedelta(days=completed_days_ago) if completed_days_ago is not None else None,
        updated_at=NOW - timedelta(days=updated_days_ago if updated_days_ago is not None else created_days_ago),
    )


class TestCompletionDays:
    def test_uses_completed_at(self):
        assert completion_days(_task(created_days_ago=10, completed_days_ago=4)) == 6

    def test_falls_back_to_updated_at(self):
        assert completion_days(_task(created_days_ago=10, updated_days_ago=7)) == 3

    def test_naive_datetimes(self):
        task = SimpleNamespace(
            created_at=datetime(2026, 3, 1),
            completed_at=datetime(2026, 3, 2, 12),
            updated_at=None,
        )
        assert completion_days(task) == 1.5


class TestBuildSnapshot:
    def test_empty_fleet(self):
        snap = build_snapshot([], {}, TODAY, NOW)
        assert snap["total"] == 0
        assert snap["completion_rate"] == 0
        assert snap["average_completion_time_days"] == 0
        assert snap["team_performance"] == []
        assert snap["calculated_at"] == NOW.isoformat()

    def test_histograms_and_rates(self):
        tasks = [
            _task("completed", "high", completed_days_ago=5),
            _task("completed", "low", completed_days_ago=8),
            _task("in-progress", "high", due_date=days_ago(1)),
            _task("blocked", "urgent", due_date=TODAY),
        ]
        snap = build_snapshot(tasks, {}, TODAY, NOW)
        assert snap["total"] == 4
        assert snap["by_status"] == {"completed": 2, "in-progress": 1, "blocked": 1}
        assert snap["by_priority"] == {"high": 2, "low": 1, "urgent": 1}
        assert snap["completion_rate"] == 50
        assert snap["overdue_count"] == 1
        # (5 + 2) / 2
        assert snap["average_completion_time_days"] == 3.5

    def test_completed_past_due_not_overdue(self):
        snap = build_snapshot([_task("completed", due_date=days_ago(3))], {}, TODAY, NOW)
        assert snap["overdue_count"] == 0

    def test_team_performance_sorted(self):
        tasks = [
            _task("completed", assigned_to_id="a"),
            _task("in-progress", assigned_to_id="a"),
            _task("completed", assigned_to_id="b"),
            _task("in-progress", assigned_to_id="c"),
            _task("completed"),
        ]
        snap = build_snapshot(tasks, {"a": "Ann", "b": "Bob"}, TODAY, NOW)
        rows = snap["team_performance"]
        assert [r["user_id"] for r in rows] == ["b", "a", "c"]
        assert rows[0] == {
            "user_id": "b",
            "user_name": "Bob",
            "total_tasks": 1,
            "completed_tasks": 1,
            "completion_rate": 100,
        }
        assert rows[1]["completion_rate"] == 50
        assert rows[2]["user_name"] == "Unknown"


class TestCalculateTaskAnalyticsFunction:
    def test_counts_active_tasks_only(self, executor, store, make_profile, make_task):
        ann = make_profile("Ann")
        make_task("a", assigned_to_id=ann.id, status="completed", completed_at=NOW - timedelta(days=4))
        make_task("b", assigned_to_id=ann.id, due_date=days_ago(2))
        make_task("gone", status="completed", deleted_at=NOW)

        response = executor.invoke("calculate-task-analytics", store=store)

        assert response.status_code == 200
        body = response.body
        assert body["success"] is True
        assert body["total"] == 2
        assert body["completion_rate"] == 50
        assert body["overdue_count"] == 1
        assert body["average_completion_time_days"] == 6
        assert body["team_performance"][0]["user_name"] == "Ann"

    def test_empty(self, executor, store):
        body = executor.invoke("calculate-task-analytics", store=store).body
        assert body["success"] is True
        assert body["total"] == 0

    def test_profile_lookup_failure_degrades_names(self, executor, store, make_task):
        make_task("a", assigned_to_id="someone")
        with patch.object(store, "get_profiles", side_effect=TaskOpsStoreError("boom", details="x")):
            body = executor.invoke("calculate-task-analytics", store=store).body
        assert body["team_performance"][0]["user_name"] == "Unknown"

    def test_task_read_failure_is_500(self, executor, store):
        with patch.object(store, "list_active_tasks", side_effect=TaskOpsStoreError("Store operation failed")):
            response = executor.invoke("calculate-task-analytics", store=store)
        assert response.status_code == 500


class TestAnalyticsCache:
    @pytest.fixture
    def cached_executor(self, config):
        from taskops.engine.executor import FunctionExecutor

        cache = MagicMock()
        cache.get_json.return_value = None
        return FunctionExecutor(config=config, cache=cache, clock=lambda: NOW), cache

    def test_miss_stores_snapshot(self, cached_executor, store, make_task):
        executor, cache = cached_executor
        make_task("a")
        executor.invoke("calculate-task-analytics", store=store)
        key, snapshot = cache.set_json.call_args.args
        assert key == ANALYTICS_SNAPSHOT_KEY
        assert snapshot["total"] == 1
        assert cache.set_json.call_args.kwargs["ttl"] == 300

    def test_hit_skips_store(self, cached_executor, store):
        executor, cache = cached_executor
        cache.get_json.return_value = {"total": 42}
        with patch.object(store, "list_active_tasks") as list_tasks:
            body = executor.invoke("calculate-task-analytics", store=store).body
        assert body == {"success": True, "total": 42}
        list_tasks.assert_not_called()

    def test_refresh_bypasses_cache(self, cached_executor, store):
        executor, cache = cached_executor
        cache.get_json.return_value = {"total": 42}
        body = executor.invoke("calculate-task-analytics", {"refresh": True}, store=store).body
        assert body["total"] == 0
        cache.set_json.assert_called_once()

    def test_cache_disabled(self, cached_executor, config, store):
        executor, cache = cached_executor
        config.analytics.cache_enabled = False
        executor.invoke("calculate-task-analytics", store=store)
        cache.get_json.assert_not_called()
        cache.set_json.assert_not_called()
