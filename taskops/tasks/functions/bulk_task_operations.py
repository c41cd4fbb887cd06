"""
bulk-task-operations — superadmin-only batch mutations over a set of tasks.

Operations: update_status, assign, change_priority, delete (soft). Input is
fully validated, then the caller's role is checked, then exactly one UPDATE
statement runs over the non-deleted rows in ``task_ids``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from taskops.decorators import function
from taskops.engine.cache import invalidate_analytics
from taskops.engine.errors import TaskOpsSecurityError, TaskOpsValidationError
from taskops.engine.logging import log, log_security_event, log_store_operation
from taskops.tasks.constants import SUPERADMIN_ROLE, TASK_PRIORITIES, TASK_STATUSES

logger = logging.getLogger("taskops.tasks.functions.bulk_task_operations")

UNAUTHORIZED_MESSAGE = "Unauthorized: SuperAdmin role required"


@dataclass(frozen=True)
class BulkOperation:
    result_key: str
    failure_message: str
    field: Optional[str] = None
    required_message: Optional[str] = None
    allowed: Tuple[str, ...] = ()


OPERATIONS: Dict[str, BulkOperation] = {
    "update_status": BulkOperation(
        result_key="updated",
        failure_message="Failed to update status",
        field="status",
        required_message="Status is required for update_status operation",
        allowed=TASK_STATUSES,
    ),
    "assign": BulkOperation(
        result_key="assigned",
        failure_message="Failed to assign tasks",
        field="assigned_to_id",
        required_message="assigned_to_id is required for assign operation",
    ),
    "change_priority": BulkOperation(
        result_key="updated",
        failure_message="Failed to change priority",
        field="priority",
        required_message="Priority is required for change_priority operation",
        allowed=TASK_PRIORITIES,
    ),
    "delete": BulkOperation(
        result_key="deleted",
        failure_message="Failed to delete tasks",
    ),
}


class BulkTaskOperationsRequest(BaseModel):
    operation: str = Field(min_length=1)
    task_ids: List[str] = Field(min_length=1)
    status: Optional[str] = None
    assigned_to_id: Optional[str] = None
    priority: Optional[str] = None
    user_id: Optional[str] = None


def _resolve_operation(ctx) -> Tuple[str, BulkOperation, Optional[str]]:
    name = ctx.input("operation")
    op = OPERATIONS.get(name)
    if op is None:
        raise TaskOpsValidationError("Invalid operation", details=f"Unknown operation: {name}")

    value = None
    if op.field:
        value = ctx.input(op.field)
        if not value:
            raise TaskOpsValidationError(op.required_message)
        if op.allowed and value not in op.allowed:
            raise TaskOpsValidationError(
                f"Invalid {op.field}: {value}",
                details=f"Expected one of: {', '.join(op.allowed)}",
            )
    return name, op, value


def _require_superadmin(ctx, name: str) -> str:
    user_id = ctx.input("user_id")
    profile = ctx.store.get_profile(user_id) if user_id else None
    role = profile.role if profile is not None else None
    if role != SUPERADMIN_ROLE:
        logger.warning(f"Bulk {name} denied for user {user_id} (role={role})")
        log(log_security_event(
            event="bulk_operation_denied",
            function_name="bulk-task-operations",
            user_id=user_id,
            required_role=SUPERADMIN_ROLE,
            user_role=role,
            execution_id=ctx.execution_id,
        ))
        raise TaskOpsSecurityError(
            UNAUTHORIZED_MESSAGE,
            user_id=user_id,
            user_role=role,
            required_role=SUPERADMIN_ROLE,
        )
    return user_id


@function(request_model=BulkTaskOperationsRequest, log_payload=True)
def bulk_task_operations(ctx):
    """Apply one mutation to many tasks in a single statement."""
    name, op, value = _resolve_operation(ctx)
    user_id = _require_superadmin(ctx, name)
    task_ids = ctx.input("task_ids")
    store = ctx.store

    if op.field is None:
        affected = store.bulk_soft_delete(task_ids, user_id, ctx.now, op.failure_message)
    else:
        affected = store.bulk_update(
            task_ids,
            {op.field: value, "updated_by": user_id, "updated_at": ctx.now},
            op.failure_message,
        )
    store.commit(message=op.failure_message)

    log(log_store_operation(
        operation=f"bulk_{name}",
        table="tasks",
        execution_id=ctx.execution_id,
        user_id=user_id,
        record_ids=task_ids,
        affected=affected,
    ))
    if affected:
        invalidate_analytics(ctx.cache)
    logger.info(f"Bulk {name} by {user_id}: {affected}/{len(task_ids)} task(s)")

    ctx.output("success", True)
    ctx.output("operation", name)
    ctx.output("task_ids_count", len(task_ids))
    ctx.output(op.result_key, affected)
    return ctx.outputs()
