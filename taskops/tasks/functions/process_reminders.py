"""
process-reminders — deliver due reminders and schedule their next occurrence.

Write order: all notifications in one batch, then each reminder marked
triggered on its own, then the recurring follow-ups in one batch. Only the
notification batch is fatal; later failures are logged and counted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from taskops.db.base import ensure_aware
from taskops.db.models import Reminder
from taskops.decorators import function, schedule
from taskops.engine.errors import TaskOpsStoreError
from taskops.engine.logging import log, log_notifications_created
from taskops.tasks.constants import NotificationType, ReminderStatus
from taskops.tasks.rules.recurrence import next_occurrence

logger = logging.getLogger("taskops.tasks.functions.process_reminders")

NOTIFICATIONS_FAILED = "Failed to create notifications"


def reminder_notification(reminder: Reminder) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "reminder_id": reminder.id,
        "priority": reminder.priority,
        "action_required": reminder.action_required,
        "action_url": reminder.action_url,
    }
    data.update(reminder.data or {})
    return {
        "user_id": reminder.assigned_to,
        "type": NotificationType.REMINDER.value,
        "title": reminder.title,
        "message": reminder.message,
        "data": data,
    }


def next_reminder(reminder: Reminder) -> Optional[Dict[str, Any]]:
    """Row for the follow-up of a recurring reminder, or None when the series ended."""
    if not reminder.is_recurring or not reminder.recurrence_pattern:
        return None
    when = next_occurrence(ensure_aware(reminder.reminder_date), reminder.recurrence_pattern)
    if when is None:
        return None
    return {
        "created_by": reminder.created_by,
        "assigned_to": reminder.assigned_to,
        "title": reminder.title,
        "message": reminder.message,
        "reminder_date": when,
        "status": ReminderStatus.SCHEDULED.value,
        "priority": reminder.priority,
        "action_required": reminder.action_required,
        "action_url": reminder.action_url,
        "data": reminder.data,
        "is_recurring": True,
        "recurrence_pattern": reminder.recurrence_pattern,
    }


@function(triggers=[schedule("*/15 * * * *", config_key="reminders_cron")])
def process_reminders(ctx):
    """Turn due reminders into notifications."""
    store = ctx.store
    reminders = store.list_due_reminders(ctx.now)

    ctx.output("success", True)
    if not reminders:
        ctx.output("reminders_processed", 0)
        ctx.output("notifications_created", 0)
        return ctx.outputs()

    reminder_ids = [r.id for r in reminders]
    notifications = [reminder_notification(r) for r in reminders]
    follow_ups = [row for row in (next_reminder(r) for r in reminders) if row is not None]

    created = store.insert_notifications(notifications, message=NOTIFICATIONS_FAILED)
    store.commit(message=NOTIFICATIONS_FAILED)
    log(log_notifications_created(
        function_name="process-reminders",
        execution_id=ctx.execution_id,
        count=created,
        types={NotificationType.REMINDER.value: created},
    ))

    failed: List[str] = []
    for reminder_id in reminder_ids:
        try:
            store.mark_reminder_triggered(reminder_id, ctx.now)
        except TaskOpsStoreError as e:
            logger.error(f"Failed to mark reminder {reminder_id} as triggered: {e.details}")
            failed.append(reminder_id)

    recurring = 0
    try:
        recurring = store.insert_reminders(follow_ups)
    except TaskOpsStoreError as e:
        logger.error(f"Failed to create {len(follow_ups)} recurring reminder(s): {e.details}")

    logger.info(
        f"Processed {len(reminder_ids)} reminder(s): {created} notification(s), "
        f"{recurring} follow-up(s), {len(failed)} failed"
    )
    ctx.output("reminders_processed", len(reminder_ids))
    ctx.output("notifications_created", created)
    ctx.output("recurring_reminders_created", recurring)
    ctx.output("reminders_failed", len(failed))
    return ctx.outputs()
