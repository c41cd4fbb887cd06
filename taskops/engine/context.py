"""
TaskOps Execution & Function Context.

- ExecutionContext: per-invocation identity (execution id, trigger, actor),
  carried in a ContextVar so logs anywhere in the call can pick it up.
- FunctionContext: what a registered function receives: validated inputs,
  the task store, config, a frozen clock and the analytics cache.

Usage:
    @function(name="sync-task-status", request_model=SyncTaskStatusRequest)
    def sync_task_status(ctx):
        task_id = ctx.input("task_id")
        ctx.output("success", True)
        return ctx.outputs()
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from taskops.engine.cache import RedisCache
    from taskops.engine.config import TaskOpsConfig
    from taskops.tasks.store import TaskStore

current_execution_context: ContextVar[Optional["ExecutionContext"]] = ContextVar(
    "execution_context", default=None
)


@dataclass
class ExecutionContext:
    """Identity of one function invocation."""

    function_name: str
    triggered_by: str = "http"  # "http" | "schedule" | "event" | "cli"
    user_id: Optional[str] = None
    execution_id: str = field(default_factory=lambda: f"exec_{uuid.uuid4().hex[:12]}")
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function_name": self.function_name,
            "triggered_by": self.triggered_by,
            "user_id": self.user_id,
            "execution_id": self.execution_id,
            "started_at": self.started_at.isoformat(),
        }


def set_execution_context(ctx: ExecutionContext) -> None:
    current_execution_context.set(ctx)


def get_execution_context() -> Optional[ExecutionContext]:
    return current_execution_context.get()


def clear_execution_context() -> None:
    current_execution_context.set(None)


class FunctionContext:
    """
    Context passed to registered functions.
    Provides input(), output(), and the collaborators of one invocation.
    """

    def __init__(
        self,
        inputs: Optional[Dict[str, Any]],
        store: "TaskStore",
        config: "TaskOpsConfig",
        now: datetime,
        execution: ExecutionContext,
        cache: Optional["RedisCache"] = None,
    ):
        self._inputs = inputs or {}
        self._outputs: Dict[str, Any] = {}
        self.store = store
        self.config = config
        self.now = now
        self.execution = execution
        self.cache = cache

    def input(self, name: str, default: Any = None) -> Any:
        value = self._inputs.get(name)
        return default if value is None else value

    def output(self, name: str, value: Any) -> None:
        self._outputs[name] = value

    def outputs(self) -> Dict[str, Any]:
        return dict(self._outputs)

    @property
    def today(self) -> date:
        """Calendar date of ``now`` in the configured scheduling timezone."""
        return self.now.astimezone(ZoneInfo(self.config.scheduling.timezone)).date()

    @property
    def execution_id(self) -> str:
        return self.execution.execution_id

    def __repr__(self) -> str:
        return f"<FunctionContext(inputs={list(self._inputs.keys())}, outputs={list(self._outputs.keys())})>"
