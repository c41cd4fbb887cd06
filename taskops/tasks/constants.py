"""
Task constants — status/priority vocabularies, roles, notification types.

Values are the exact strings stored in the ``tasks`` / ``profiles`` /
``notifications`` tables.
"""

from __future__ import annotations

from enum import Enum


class TaskStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReminderStatus(str, Enum):
    SCHEDULED = "scheduled"
    TRIGGERED = "triggered"
    CANCELLED = "cancelled"


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class NotificationType(str, Enum):
    TASK_ASSIGNED = "task_assigned"
    TASK_DUE_SOON = "task_due_soon"
    TASK_OVERDUE = "task_overdue"
    TASK_COMPLETED = "task_completed"
    TASK_BLOCKED = "task_blocked"
    TASK_COMMENT_ADDED = "task_comment_added"
    TASK_ATTACHMENT_ADDED = "task_attachment_added"
    REMINDER = "reminder"


class TaskEvent(str, Enum):
    ASSIGNED = "assigned"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    COMMENT_ADDED = "comment_added"
    ATTACHMENT_ADDED = "attachment_added"


SUPERADMIN_ROLE = "superadmin"
UNKNOWN_USER_NAME = "Unknown"

TASK_STATUSES = tuple(s.value for s in TaskStatus)
TASK_PRIORITIES = tuple(p.value for p in TaskPriority)


def sql_in_list(values) -> str:
    """Render values for a CHECK constraint: 'a', 'b', 'c'."""
    return ", ".join(f"'{v}'" for v in values)
