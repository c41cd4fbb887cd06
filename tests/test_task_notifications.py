"""Tests for task event notifications — build_event_notifications and send-task-notifications."""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from taskops.db.models import Notification
from taskops.tasks.constants import TaskEvent
from taskops.tasks.rules.task_events import build_event_notifications, days_until_due
from tests.conftest import NOW, TODAY


def _task(**kw):
    kw.setdefault("id", "t1")
    kw.setdefault("name", "Report")
    kw.setdefault("assigned_to_id", "emp")
    kw.setdefault("created_by", "creator")
    kw.setdefault("due_date", TODAY + timedelta(days=2))
    return SimpleNamespace(**kw)


ASSIGNEE = SimpleNamespace(full_name="Jane Roe", manager_id="mgr")


class TestDaysUntilDue:
    def test_rounds_up(self):
        # NOW is noon; midnight of TODAY + 2 is 1.5 days away
        assert days_until_due(_task(), NOW) == 2

    def test_undated(self):
        assert days_until_due(_task(due_date=None), NOW) is None


class TestBuildEventNotifications:
    def test_assigned(self):
        rows = build_event_notifications(TaskEvent.ASSIGNED, _task(), ASSIGNEE, NOW)
        assert [(r["user_id"], r["type"]) for r in rows] == [("emp", "task_assigned")]
        assert rows[0]["message"] == "You have been assigned to task: Report"

    def test_assigned_without_assignee(self):
        assert build_event_notifications(TaskEvent.ASSIGNED, _task(assigned_to_id=None), None, NOW) == []

    @pytest.mark.parametrize("offset, phrase", [(1, "tomorrow"), (3, "in 3 days")])
    def test_due_soon(self, offset, phrase):
        task = _task(due_date=TODAY + timedelta(days=offset))
        rows = build_event_notifications(TaskEvent.DUE_SOON, task, ASSIGNEE, NOW)
        assert rows[0]["message"] == f'Task "Report" is due {phrase}'
        assert rows[0]["data"]["days_until_due"] == offset

    def test_due_soon_requires_due_date(self):
        assert build_event_notifications(TaskEvent.DUE_SOON, _task(due_date=None), ASSIGNEE, NOW) == []

    def test_overdue_includes_manager(self):
        rows = build_event_notifications(TaskEvent.OVERDUE, _task(), ASSIGNEE, NOW)
        assert [r["user_id"] for r in rows] == ["emp", "mgr"]
        assert rows[1]["title"] == "Team Member Task Overdue"

    def test_completed_notifies_creator_and_manager(self):
        rows = build_event_notifications(TaskEvent.COMPLETED, _task(), ASSIGNEE, NOW)
        assert [r["user_id"] for r in rows] == ["creator", "mgr"]
        assert rows[1]["message"] == 'Task "Report" has been completed by Jane Roe'

    def test_completed_by_creator_not_self_notified(self):
        rows = build_event_notifications(TaskEvent.COMPLETED, _task(created_by="emp"), ASSIGNEE, NOW)
        assert [r["user_id"] for r in rows] == ["mgr"]

    def test_completed_manager_is_creator(self):
        rows = build_event_notifications(TaskEvent.COMPLETED, _task(created_by="mgr"), ASSIGNEE, NOW)
        assert [r["user_id"] for r in rows] == ["mgr"]

    def test_blocked_goes_to_manager(self):
        rows = build_event_notifications(TaskEvent.BLOCKED, _task(), ASSIGNEE, NOW)
        assert [(r["user_id"], r["type"]) for r in rows] == [("mgr", "task_blocked")]

    def test_blocked_without_manager(self):
        assignee = SimpleNamespace(full_name="Jane Roe", manager_id=None)
        assert build_event_notifications(TaskEvent.BLOCKED, _task(), assignee, NOW) == []

    @pytest.mark.parametrize("event", [TaskEvent.COMMENT_ADDED, TaskEvent.ATTACHMENT_ADDED])
    def test_activity_skips_own_actions(self, event):
        assert build_event_notifications(event, _task(), ASSIGNEE, NOW, actor_id="emp") == []
        rows = build_event_notifications(event, _task(), ASSIGNEE, NOW, actor_id="other")
        assert [r["user_id"] for r in rows] == ["emp"]


class TestSendTaskNotificationsFunction:
    def test_invalid_event_type(self, executor, store):
        response = executor.invoke(
            "send-task-notifications", {"event_type": "archived", "task_id": "t"}, store=store,
        )
        assert response.status_code == 400
        assert response.body["error"] == "Invalid event_type"

    def test_missing_fields(self, executor, store):
        response = executor.invoke("send-task-notifications", {"event_type": "assigned"}, store=store)
        assert response.status_code == 400

    def test_task_not_found(self, executor, store):
        response = executor.invoke(
            "send-task-notifications", {"event_type": "assigned", "task_id": "missing"}, store=store,
        )
        assert response.status_code == 404

    def test_overdue_event(self, executor, store, db_session, make_profile, make_task):
        manager = make_profile("Boss")
        employee = make_profile("Jane Roe", manager_id=manager.id)
        task = make_task("Report", assigned_to_id=employee.id, due_date=TODAY)

        response = executor.invoke(
            "send-task-notifications", {"event_type": "overdue", "task_id": task.id}, store=store,
        )

        assert response.body == {"success": True, "notifications_created": 2}
        rows = db_session.query(Notification).order_by(Notification.user_id).all()
        assert {r.user_id for r in rows} == {manager.id, employee.id}
        assert all(r.data["task_id"] == task.id for r in rows)

    def test_no_recipients(self, executor, store, make_task):
        task = make_task("Report")
        response = executor.invoke(
            "send-task-notifications", {"event_type": "blocked", "task_id": task.id}, store=store,
        )
        assert response.body == {"success": True, "notifications_created": 0}
