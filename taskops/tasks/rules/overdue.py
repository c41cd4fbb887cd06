"""Overdue escalation policy — notifications and priority bumps for late tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from taskops.db.models import Profile, Task
from taskops.tasks.constants import NotificationType, TaskPriority


def days_overdue(due_date: date, today: date) -> int:
    """Whole days between the due date and today (1 for a task due yesterday)."""
    return (today - due_date).days


def _day_word(days: int) -> str:
    return "day" if days == 1 else "days"


def assignee_notification(task: Task, days: int) -> Dict[str, Any]:
    return {
        "user_id": task.assigned_to_id,
        "type": NotificationType.TASK_OVERDUE.value,
        "title": "Task Overdue",
        "message": f'Task "{task.name}" is {days} {_day_word(days)} overdue',
        "data": {
            "task_id": task.id,
            "task_name": task.name,
            "due_date": task.due_date.isoformat(),
            "days_overdue": days,
        },
    }


def manager_notification(task: Task, assignee: Profile, days: int) -> Dict[str, Any]:
    return {
        "user_id": assignee.manager_id,
        "type": NotificationType.TASK_OVERDUE.value,
        "title": "Team Member Task Overdue",
        "message": (
            f'Task "{task.name}" assigned to {assignee.full_name} '
            f"is {days} {_day_word(days)} overdue"
        ),
        "data": {
            "task_id": task.id,
            "task_name": task.name,
            "assigned_to_id": task.assigned_to_id,
            "assigned_to_name": assignee.full_name,
            "due_date": task.due_date.isoformat(),
            "days_overdue": days,
        },
    }


@dataclass
class EscalationPlan:
    """Writes to apply for one sweep: notifications first, then priorities."""
    notifications: List[Dict[str, Any]] = field(default_factory=list)
    priority_updates: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def plan_escalations(
    tasks: List[Task],
    today: date,
    manager_after_days: int = 3,
    urgent_after_days: int = 7,
) -> EscalationPlan:
    """
    Build the escalation plan for a batch of overdue tasks.

    Tasks without a due date or an assignee have nobody to notify and are
    listed in ``skipped``. Thresholds are strict: a manager is told once
    ``days > manager_after_days``; priority goes to urgent once
    ``days > urgent_after_days`` unless it already is.
    """
    plan = EscalationPlan()
    for task in tasks:
        if task.due_date is None or not task.assigned_to_id:
            plan.skipped.append(task.id)
            continue

        days = days_overdue(task.due_date, today)
        if days <= 0:
            continue

        plan.notifications.append(assignee_notification(task, days))

        assignee: Optional[Profile] = task.assignee
        if days > manager_after_days and assignee is not None and assignee.manager_id:
            plan.notifications.append(manager_notification(task, assignee, days))

        if days > urgent_after_days and task.priority != TaskPriority.URGENT.value:
            plan.priority_updates.append(task.id)

    return plan
