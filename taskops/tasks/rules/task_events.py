"""Task event notifications — who hears about assignment, completion, blocking, ..."""

from __future__ import annotations

import math
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional

from taskops.db.models import Profile, Task
from taskops.tasks.constants import NotificationType, TaskEvent

TEAM_MEMBER = "team member"


def days_until_due(task: Task, now: datetime) -> Optional[int]:
    """Days left until midnight UTC of the due date, rounded up."""
    if task.due_date is None:
        return None
    due = datetime.combine(task.due_date, time.min, tzinfo=timezone.utc)
    return math.ceil((due - now).total_seconds() / 86400)


def _notification(user_id: str, kind: NotificationType, title: str, message: str, **data: Any) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "type": kind.value,
        "title": title,
        "message": message,
        "data": data,
    }


def build_event_notifications(
    event: TaskEvent,
    task: Task,
    assignee: Optional[Profile],
    now: datetime,
    actor_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Notification rows for one task event. May be empty."""
    rows: List[Dict[str, Any]] = []
    assignee_id = task.assigned_to_id
    manager_id = assignee.manager_id if assignee is not None else None
    assignee_name = assignee.full_name if assignee is not None else TEAM_MEMBER
    due = task.due_date.isoformat() if task.due_date else None

    if event is TaskEvent.ASSIGNED:
        if assignee_id:
            rows.append(_notification(
                assignee_id, NotificationType.TASK_ASSIGNED, "New Task Assigned",
                f"You have been assigned to task: {task.name}",
                task_id=task.id, task_name=task.name,
            ))

    elif event is TaskEvent.DUE_SOON:
        days = days_until_due(task, now)
        if assignee_id and days is not None:
            when = "tomorrow" if days == 1 else f"in {days} days"
            rows.append(_notification(
                assignee_id, NotificationType.TASK_DUE_SOON, "Task Due Soon",
                f'Task "{task.name}" is due {when}',
                task_id=task.id, task_name=task.name, due_date=due, days_until_due=days,
            ))

    elif event is TaskEvent.OVERDUE:
        if assignee_id:
            rows.append(_notification(
                assignee_id, NotificationType.TASK_OVERDUE, "Task Overdue",
                f'Task "{task.name}" is overdue',
                task_id=task.id, task_name=task.name, due_date=due,
            ))
            if manager_id:
                rows.append(_notification(
                    manager_id, NotificationType.TASK_OVERDUE, "Team Member Task Overdue",
                    f'Task "{task.name}" assigned to {assignee_name} is overdue',
                    task_id=task.id, task_name=task.name, assigned_to_id=assignee_id,
                    assigned_to_name=assignee_name, due_date=due,
                ))

    elif event is TaskEvent.COMPLETED:
        if task.created_by and task.created_by != assignee_id:
            rows.append(_notification(
                task.created_by, NotificationType.TASK_COMPLETED, "Task Completed",
                f'Task "{task.name}" has been completed',
                task_id=task.id, task_name=task.name, completed_by=assignee_id,
            ))
        if assignee_id and manager_id and manager_id != task.created_by:
            rows.append(_notification(
                manager_id, NotificationType.TASK_COMPLETED, "Team Member Task Completed",
                f'Task "{task.name}" has been completed by {assignee_name}',
                task_id=task.id, task_name=task.name, completed_by=assignee_id,
            ))

    elif event is TaskEvent.BLOCKED:
        if assignee_id and manager_id:
            rows.append(_notification(
                manager_id, NotificationType.TASK_BLOCKED, "Task Blocked",
                f'Task "{task.name}" assigned to {assignee_name} is blocked',
                task_id=task.id, task_name=task.name, assigned_to_id=assignee_id,
            ))

    elif event is TaskEvent.COMMENT_ADDED:
        if assignee_id and actor_id and assignee_id != actor_id:
            rows.append(_notification(
                assignee_id, NotificationType.TASK_COMMENT_ADDED, "New Comment on Task",
                f'A new comment was added to task "{task.name}"',
                task_id=task.id, task_name=task.name, comment_by=actor_id,
            ))

    elif event is TaskEvent.ATTACHMENT_ADDED:
        if assignee_id and actor_id and assignee_id != actor_id:
            rows.append(_notification(
                assignee_id, NotificationType.TASK_ATTACHMENT_ADDED, "New Attachment on Task",
                f'A new attachment was added to task "{task.name}"',
                task_id=task.id, task_name=task.name, attachment_by=actor_id,
            ))

    return rows
