"""Unit tests for taskops.tasks.store — TaskStore reads and writes."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from taskops.db.base import ensure_aware
from taskops.db.models import Notification, Task
from taskops.engine.errors import TaskOpsStoreError
from tests.conftest import NOW, TODAY, days_ago


class TestTaskReads:
    def test_get_task_excludes_deleted(self, store, make_task):
        live = make_task("live")
        gone = make_task("gone", deleted_at=NOW)
        assert store.get_task(live.id).name == "live"
        assert store.get_task(gone.id) is None
        assert store.get_task("missing") is None

    def test_list_children_excludes_deleted(self, store, make_task):
        parent = make_task("parent")
        make_task("a", parent_id=parent.id)
        make_task("b", parent_id=parent.id, deleted_at=NOW)
        assert [t.name for t in store.list_children(parent.id)] == ["a"]

    def test_list_overdue_tasks(self, store, make_task):
        make_task("yesterday", due_date=days_ago(1), status="in-progress")
        make_task("today", due_date=TODAY)
        make_task("done", due_date=days_ago(5), status="completed")
        make_task("deleted", due_date=days_ago(5), deleted_at=NOW)
        make_task("undated")
        assert [t.name for t in store.list_overdue_tasks(TODAY)] == ["yesterday"]

    def test_rows_read_counter(self, store, make_task):
        make_task("a")
        make_task("b")
        store.list_active_tasks()
        assert store.rows_read == 2


class TestCompareAndSet:
    def test_swaps_when_expected_matches(self, store, make_task):
        task = make_task(status="in-progress")
        assert store.compare_and_set_status(task.id, "in-progress", "blocked", NOW) is True
        assert store.get_task(task.id).status == "blocked"
        assert store.rows_written == 1

    def test_refuses_when_status_moved(self, store, make_task):
        task = make_task(status="blocked")
        assert store.compare_and_set_status(task.id, "in-progress", "completed", NOW) is False
        assert store.get_task(task.id).status == "blocked"

    def test_completed_at_set_once(self, store, make_task):
        first = NOW - timedelta(days=2)
        task = make_task(status="completed", completed_at=first)
        store.compare_and_set_status(task.id, "completed", "in-progress", NOW)
        store.compare_and_set_status(task.id, "in-progress", "completed", NOW)
        assert ensure_aware(store.get_task(task.id).completed_at) == first

    def test_completed_at_written_on_first_completion(self, store, make_task):
        task = make_task(status="in-progress")
        store.compare_and_set_status(task.id, "in-progress", "completed", NOW)
        assert ensure_aware(store.get_task(task.id).completed_at) == NOW


class TestBulkWrites:
    def test_bulk_update_skips_deleted(self, store, make_task):
        a = make_task("a")
        b = make_task("b", deleted_at=NOW)
        affected = store.bulk_update([a.id, b.id, "missing"], {"priority": "high"}, "Failed")
        store.commit()
        assert affected == 1
        assert store.get_task(a.id).priority == "high"

    def test_bulk_update_status_sets_completed_at(self, store, make_task):
        a = make_task("a")
        store.bulk_update([a.id], {"status": "completed", "updated_at": NOW}, "Failed")
        store.commit()
        assert ensure_aware(store.get_task(a.id).completed_at) == NOW

    def test_bulk_soft_delete(self, store, db_session, make_task):
        a = make_task("a")
        assert store.bulk_soft_delete([a.id], "admin", NOW, "Failed to delete tasks") == 1
        store.commit()
        assert store.get_task(a.id) is None
        row = db_session.get(Task, a.id, populate_existing=True)
        assert row.updated_by == "admin"

    def test_update_priority_missing_row(self, store):
        assert store.update_priority("missing", "urgent", NOW) is False


class TestNotifications:
    def test_insert_batch(self, store, db_session, make_profile):
        user = make_profile()
        rows = [
            {"user_id": user.id, "type": "reminder", "title": "t", "message": "m", "data": {"k": 1}},
            {"user_id": user.id, "type": "reminder", "title": "t2", "message": "m2", "data": None},
        ]
        assert store.insert_notifications(rows) == 2
        store.commit()
        assert db_session.query(Notification).count() == 2

    def test_insert_empty(self, store):
        assert store.insert_notifications([]) == 0


class TestErrorMapping:
    def test_sqlalchemy_error_becomes_store_error(self, store):
        boom = OperationalError("UPDATE tasks", {}, Exception("database is locked"))
        with patch.object(store.session, "execute", side_effect=boom):
            with pytest.raises(TaskOpsStoreError) as exc:
                store.bulk_update(["a"], {"priority": "low"}, "Failed to change priority")
        assert exc.value.message == "Failed to change priority"
        assert exc.value.details == "database is locked"
        assert exc.value.to_dict()["context"]["operation"] == "bulk_update"
