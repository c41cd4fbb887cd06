"""
Status rollup — derive a container task's status from its children and walk
the derivation up the parent chain.

Precedence, evaluated top to bottom over the full child multiset:

    all completed       -> completed
    any blocked         -> blocked
    any in-progress     -> in-progress
    all not-started     -> not-started
    anything else       -> in-progress

Each parent write is a compare-and-swap against the status read in the same
attempt; a lost race re-reads the children and parent and recomputes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from taskops.db.base import utcnow
from taskops.db.models import Task
from taskops.engine.errors import TaskOpsHierarchyError, TaskOpsNotFoundError
from taskops.tasks.constants import TaskStatus
from taskops.tasks.store import TaskStore

logger = logging.getLogger("taskops.tasks.rollup")

NO_PARENT_MESSAGE = "No parent to sync"
NO_SIBLINGS_MESSAGE = "No siblings found"


def compute_parent_status(statuses: Iterable[str]) -> str:
    """Aggregate sibling statuses into the parent's status."""
    statuses = [str(getattr(s, "value", s)) for s in statuses]
    if not statuses:
        raise ValueError("cannot derive a parent status from zero children")

    if all(s == TaskStatus.COMPLETED.value for s in statuses):
        return TaskStatus.COMPLETED.value
    if any(s == TaskStatus.BLOCKED.value for s in statuses):
        return TaskStatus.BLOCKED.value
    if any(s == TaskStatus.IN_PROGRESS.value for s in statuses):
        return TaskStatus.IN_PROGRESS.value
    if all(s == TaskStatus.NOT_STARTED.value for s in statuses):
        return TaskStatus.NOT_STARTED.value
    return TaskStatus.IN_PROGRESS.value


@dataclass
class RollupLevel:
    """Outcome of recomputing one ancestor."""
    task_id: str
    old_status: str
    new_status: str
    updated: bool
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "updated": self.updated,
        }


@dataclass
class RollupOutcome:
    message: Optional[str] = None
    levels: List[RollupLevel] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return sum(1 for level in self.levels if level.updated)


class StatusRollupEngine:
    """
    Propagates a status change from a task to its ancestors.

    Stops when a recomputed status equals the stored one, or at the root.
    A cyclic parent chain or a chain deeper than ``max_depth`` raises
    ``TaskOpsHierarchyError``. Each level is committed before moving up, so
    a failure higher in the chain keeps the levels already written.
    """

    def __init__(
        self,
        store: TaskStore,
        max_depth: int = 32,
        max_retries: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.max_depth = max_depth
        self.max_retries = max_retries
        self._clock = clock

    def propagate(self, task_id: str) -> RollupOutcome:
        task = self.store.get_task(task_id)
        if task is None:
            raise TaskOpsNotFoundError("Task not found", record_type="task", record_id=task_id)

        if not task.parent_id:
            return RollupOutcome(message=NO_PARENT_MESSAGE)

        outcome = RollupOutcome()
        chain: List[str] = [task.id]
        parent_id: Optional[str] = task.parent_id

        while parent_id:
            if parent_id in chain:
                raise TaskOpsHierarchyError(
                    f"Cycle detected in task hierarchy at {parent_id}",
                    task_chain=chain + [parent_id],
                )
            if len(outcome.levels) >= self.max_depth:
                raise TaskOpsHierarchyError(
                    f"Task hierarchy deeper than {self.max_depth} levels",
                    task_chain=chain,
                )

            level, parent = self._recompute(parent_id)
            if level is None:
                if not outcome.levels:
                    outcome.message = NO_SIBLINGS_MESSAGE
                break

            self.store.commit()
            outcome.levels.append(level)
            if not level.updated:
                break

            chain.append(parent_id)
            parent_id = parent.parent_id

        return outcome

    def _recompute(self, parent_id: str) -> Tuple[Optional[RollupLevel], Optional[Task]]:
        """Recompute one ancestor, retrying the compare-and-swap on a lost race."""
        for attempt in range(1, self.max_retries + 1):
            siblings = self.store.list_children(parent_id)
            if not siblings:
                return None, None

            parent = self.store.get_task(parent_id)
            if parent is None:
                raise TaskOpsNotFoundError(
                    "Parent task not found", record_type="task", record_id=parent_id,
                )

            new_status = compute_parent_status(s.status for s in siblings)
            if new_status == parent.status:
                return RollupLevel(parent_id, parent.status, new_status, False, attempt), parent

            if self.store.compare_and_set_status(parent_id, parent.status, new_status, self._clock()):
                logger.info(
                    f"Rolled up task {parent_id}: {parent.status} -> {new_status} "
                    f"({len(siblings)} children)"
                )
                return RollupLevel(parent_id, parent.status, new_status, True, attempt), parent

            logger.warning(
                f"Task {parent_id} changed during rollup, retrying ({attempt}/{self.max_retries})"
            )

        raise TaskOpsHierarchyError(
            f"Task {parent_id} kept changing during rollup; gave up after {self.max_retries} attempts",
            task_chain=[parent_id],
        )
