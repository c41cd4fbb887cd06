"""
process-overdue-tasks — daily overdue sweep.

Notifies assignees of late tasks, escalates to their managers past
``escalation.manager_after_days`` and raises priority to urgent past
``escalation.urgent_after_days``. Notifications are committed as one batch
before any priority is touched; each priority update then stands alone.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List

from taskops.decorators import function, schedule
from taskops.engine.cache import invalidate_analytics
from taskops.engine.errors import TaskOpsStoreError
from taskops.engine.logging import log, log_notifications_created
from taskops.tasks.constants import TaskPriority
from taskops.tasks.rules.overdue import plan_escalations

logger = logging.getLogger("taskops.tasks.functions.process_overdue_tasks")

NOTIFICATIONS_FAILED = "Failed to create notifications"


@function(triggers=[schedule("0 9 * * *", config_key="overdue_cron")])
def process_overdue_tasks(ctx):
    """Notify and escalate tasks past their due date."""
    store = ctx.store
    tasks = store.list_overdue_tasks(ctx.today)

    ctx.output("success", True)
    if not tasks:
        ctx.output("message", "No overdue tasks found")
        ctx.output("processed", 0)
        return ctx.outputs()

    escalation = ctx.config.escalation
    plan = plan_escalations(
        tasks,
        ctx.today,
        manager_after_days=escalation.manager_after_days,
        urgent_after_days=escalation.urgent_after_days,
    )
    if plan.skipped:
        logger.info(f"{len(plan.skipped)} overdue task(s) have no assignee; no one to notify")

    created = store.insert_notifications(plan.notifications, message=NOTIFICATIONS_FAILED)
    store.commit(message=NOTIFICATIONS_FAILED)
    if created:
        log(log_notifications_created(
            function_name="process-overdue-tasks",
            execution_id=ctx.execution_id,
            count=created,
            types=dict(Counter(n["type"] for n in plan.notifications)),
        ))

    results: List[Dict[str, Any]] = []
    for task_id in plan.priority_updates:
        try:
            found = store.update_priority(task_id, TaskPriority.URGENT.value, ctx.now)
        except TaskOpsStoreError as e:
            logger.error(f"Failed to update priority for task {task_id}: {e.details or e.message}")
            results.append({"id": task_id, "success": False, "error": e.details or e.message})
            continue
        if found:
            results.append({"id": task_id, "success": True})
        else:
            results.append({"id": task_id, "success": False, "error": "Task not found"})

    updated = sum(1 for r in results if r["success"])
    if updated:
        invalidate_analytics(ctx.cache)

    logger.info(
        f"Overdue sweep: {len(tasks)} task(s), {created} notification(s), "
        f"{updated}/{len(results)} priority update(s)"
    )
    ctx.output("overdue_tasks_found", len(tasks))
    ctx.output("notifications_created", created)
    ctx.output("priorities_updated", updated)
    ctx.output("priority_updates", results)
    return ctx.outputs()
