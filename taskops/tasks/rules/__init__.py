"""Task rules — pure status, escalation, analytics and recurrence logic."""

from .rollup import StatusRollupEngine, compute_parent_status
from .overdue import days_overdue, plan_escalations
from .analytics import build_snapshot
from .recurrence import next_occurrence
from .task_events import build_event_notifications

__all__ = [
    "StatusRollupEngine",
    "compute_parent_status",
    "days_overdue",
    "plan_escalations",
    "build_snapshot",
    "next_occurrence",
    "build_event_notifications",
]
