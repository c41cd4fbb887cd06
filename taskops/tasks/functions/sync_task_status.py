"""
sync-task-status — roll a task's status change up the parent chain.

Invoked by the ``task.status_changed`` event bridge after a task update, or
directly over HTTP.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, Field

from taskops.decorators import event, function
from taskops.engine.cache import invalidate_analytics
from taskops.engine.logging import log, log_store_operation
from taskops.tasks.rules.rollup import StatusRollupEngine

logger = logging.getLogger("taskops.tasks.functions.sync_task_status")


class SyncTaskStatusRequest(BaseModel):
    task_id: str = Field(min_length=1)
    old_status: Optional[str] = None
    new_status: str = Field(min_length=1)


@function(
    request_model=SyncTaskStatusRequest,
    triggers=[event("task.status_changed")],
    log_payload=True,
)
def sync_task_status(ctx):
    """Recompute parent statuses from their children, walking up to the root."""
    task_id = ctx.input("task_id")
    logger.info(
        f"Syncing status of task {task_id}: "
        f"{ctx.input('old_status') or '(new)'} -> {ctx.input('new_status')}"
    )

    engine = StatusRollupEngine(
        ctx.store,
        max_depth=ctx.config.rollup.max_depth,
        max_retries=ctx.config.rollup.max_retries,
        clock=lambda: ctx.now,
    )
    outcome = engine.propagate(task_id)

    ctx.output("success", True)
    if outcome.message:
        ctx.output("message", outcome.message)
        return ctx.outputs()

    parent, ancestors = outcome.levels[0], outcome.levels[1:]
    ctx.output("parent_id", parent.task_id)
    ctx.output("old_status", parent.old_status)
    ctx.output("new_status", parent.new_status)
    ctx.output("updated", parent.updated)
    ctx.output("ancestors", [level.to_dict() for level in ancestors])

    written = [level.task_id for level in outcome.levels if level.updated]
    if written:
        log(log_store_operation(
            operation="rollup_status",
            table="tasks",
            execution_id=ctx.execution_id,
            record_ids=written,
            affected=len(written),
        ))
        invalidate_analytics(ctx.cache)

    return ctx.outputs()
