"""Analytics aggregation — one pass over the active task fleet."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from taskops.db.base import ensure_aware
from taskops.db.models import Task
from taskops.tasks.constants import UNKNOWN_USER_NAME, TaskStatus

SECONDS_PER_DAY = 86400.0


def _rate(completed: int, total: int) -> float:
    return completed / total * 100 if total > 0 else 0


def completion_days(task: Task) -> Optional[float]:
    """
    Fractional days from creation to completion.

    Uses ``completed_at``; rows completed before that column existed fall
    back to ``updated_at``.
    """
    finished = ensure_aware(task.completed_at or task.updated_at)
    created = ensure_aware(task.created_at)
    if finished is None or created is None:
        return None
    return (finished - created).total_seconds() / SECONDS_PER_DAY


def empty_snapshot(calculated_at: datetime) -> Dict[str, Any]:
    return {
        "total": 0,
        "by_status": {},
        "by_priority": {},
        "completion_rate": 0,
        "overdue_count": 0,
        "average_completion_time_days": 0,
        "team_performance": [],
        "calculated_at": calculated_at.isoformat(),
    }


def build_snapshot(
    tasks: List[Task],
    user_names: Dict[str, str],
    today: date,
    calculated_at: datetime,
) -> Dict[str, Any]:
    """
    Aggregate histograms, completion/overdue figures and per-assignee ranking.

    ``user_names`` maps assignee id -> display name; missing ids render as
    "Unknown". Team rows are sorted by completion rate, highest first.
    """
    total = len(tasks)
    if total == 0:
        return empty_snapshot(calculated_at)

    completed_value = TaskStatus.COMPLETED.value
    by_status = Counter(t.status for t in tasks)
    by_priority = Counter(t.priority for t in tasks)
    completed = by_status.get(completed_value, 0)

    overdue_count = sum(
        1 for t in tasks
        if t.due_date is not None and t.due_date < today and t.status != completed_value
    )

    durations = [
        d for d in (completion_days(t) for t in tasks if t.status == completed_value)
        if d is not None
    ]
    average_days = round(sum(durations) / len(durations), 2) if durations else 0

    per_user: Dict[str, Dict[str, int]] = {}
    for t in tasks:
        if not t.assigned_to_id:
            continue
        stats = per_user.setdefault(t.assigned_to_id, {"total": 0, "completed": 0})
        stats["total"] += 1
        if t.status == completed_value:
            stats["completed"] += 1

    team_performance = [
        {
            "user_id": user_id,
            "user_name": user_names.get(user_id, UNKNOWN_USER_NAME),
            "total_tasks": stats["total"],
            "completed_tasks": stats["completed"],
            "completion_rate": _rate(stats["completed"], stats["total"]),
        }
        for user_id, stats in per_user.items()
    ]
    team_performance.sort(key=lambda row: row["completion_rate"], reverse=True)

    return {
        "total": total,
        "by_status": dict(by_status),
        "by_priority": dict(by_priority),
        "completion_rate": _rate(completed, total),
        "overdue_count": overdue_count,
        "average_completion_time_days": average_days,
        "team_performance": team_performance,
        "calculated_at": calculated_at.isoformat(),
    }
