"""send-task-notifications — notification rows for a single task event."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from pydantic import BaseModel, Field

from taskops.decorators import event, function
from taskops.engine.errors import TaskOpsNotFoundError, TaskOpsValidationError
from taskops.engine.logging import log, log_notifications_created
from taskops.tasks.constants import TaskEvent
from taskops.tasks.rules.task_events import build_event_notifications

logger = logging.getLogger("taskops.tasks.functions.send_task_notifications")

NOTIFICATIONS_FAILED = "Failed to create notifications"


class SendTaskNotificationsRequest(BaseModel):
    event_type: str = Field(min_length=1)
    task_id: str = Field(min_length=1)
    user_id: Optional[str] = None


@function(
    request_model=SendTaskNotificationsRequest,
    triggers=[event("task.event")],
    log_payload=True,
)
def send_task_notifications(ctx):
    """Notify assignees, creators and managers about a task event."""
    try:
        task_event = TaskEvent(ctx.input("event_type"))
    except ValueError:
        raise TaskOpsValidationError(
            "Invalid event_type",
            details=f"Expected one of: {', '.join(e.value for e in TaskEvent)}",
        )

    task_id = ctx.input("task_id")
    task = ctx.store.get_task(task_id)
    if task is None:
        raise TaskOpsNotFoundError("Task not found", record_type="task", record_id=task_id)

    rows = build_event_notifications(
        task_event, task, task.assignee, ctx.now, actor_id=ctx.input("user_id"),
    )
    created = ctx.store.insert_notifications(rows, message=NOTIFICATIONS_FAILED)
    ctx.store.commit(message=NOTIFICATIONS_FAILED)

    if created:
        log(log_notifications_created(
            function_name="send-task-notifications",
            execution_id=ctx.execution_id,
            count=created,
            types=dict(Counter(r["type"] for r in rows)),
        ))
    logger.info(f"Task {task_id} {task_event.value}: {created} notification(s)")

    ctx.output("success", True)
    ctx.output("notifications_created", created)
    return ctx.outputs()
