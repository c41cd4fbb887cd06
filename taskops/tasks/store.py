"""
Task Store Accessor — filtered reads and targeted writes over the task store.

Every read excludes soft-deleted rows. Every SQLAlchemy failure is re-raised
as ``TaskOpsStoreError`` carrying the driver message in ``details``; nothing
here retries. Commits are explicit (``commit()``) so callers decide where a
unit of work ends.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import case, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from taskops.db.models import Notification, Profile, Reminder, Task
from taskops.engine.errors import TaskOpsStoreError
from taskops.tasks.constants import ReminderStatus, TaskStatus

logger = logging.getLogger("taskops.tasks.store")


def _completed_at_on(new_status: str, now: datetime) -> Dict[str, Any]:
    """completed_at is written once, on the first transition into completed."""
    if new_status != TaskStatus.COMPLETED.value:
        return {}
    return {
        "completed_at": case(
            (Task.completed_at.is_(None), now),
            else_=Task.completed_at,
        )
    }


class TaskStore:
    """Query/mutation layer shared by all task functions."""

    def __init__(self, session: Session, execution_id: Optional[str] = None):
        self._session = session
        self.execution_id = execution_id
        self.rows_read = 0
        self.rows_written = 0

    @property
    def session(self) -> Session:
        return self._session

    @contextmanager
    def _guard(self, operation: str, message: str = "Store operation failed") -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self._session.rollback()
            details = str(getattr(e, "orig", None) or e)
            logger.error(f"Store operation '{operation}' failed: {details}")
            raise TaskOpsStoreError(
                message,
                operation=operation,
                details=details,
                execution_id=self.execution_id,
            ) from e

    # -----------------------------------------------------------------------
    # Tasks
    # -----------------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        """Fetch one non-deleted task, always re-reading the row."""
        with self._guard("get_task"):
            stmt = (
                select(Task)
                .where(Task.id == task_id, Task.deleted_at.is_(None))
                .execution_options(populate_existing=True)
            )
            task = self._session.execute(stmt).scalar_one_or_none()
        if task is not None:
            self.rows_read += 1
        return task

    def list_children(self, parent_id: str) -> List[Task]:
        """Non-deleted tasks whose parent_id is ``parent_id``."""
        with self._guard("list_children"):
            stmt = (
                select(Task)
                .where(Task.parent_id == parent_id, Task.deleted_at.is_(None))
                .order_by(Task.created_at)
                .execution_options(populate_existing=True)
            )
            children = list(self._session.execute(stmt).scalars())
        self.rows_read += len(children)
        return children

    def compare_and_set_status(
        self,
        task_id: str,
        expected_status: str,
        new_status: str,
        now: datetime,
    ) -> bool:
        """
        Write ``new_status`` only if the row still holds ``expected_status``.

        Returns False when another writer changed the status first.
        """
        values: Dict[str, Any] = {"status": new_status, "updated_at": now}
        values.update(_completed_at_on(new_status, now))
        stmt = (
            update(Task)
            .where(
                Task.id == task_id,
                Task.status == expected_status,
                Task.deleted_at.is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard("compare_and_set_status"):
            result = self._session.execute(stmt)
        swapped = result.rowcount == 1
        if swapped:
            self.rows_written += 1
        return swapped

    def list_overdue_tasks(self, today: date) -> List[Task]:
        """Open tasks due strictly before ``today``, assignee profile loaded."""
        with self._guard("list_overdue_tasks"):
            stmt = (
                select(Task)
                .options(joinedload(Task.assignee))
                .where(
                    Task.due_date < today,
                    Task.status != TaskStatus.COMPLETED.value,
                    Task.deleted_at.is_(None),
                )
                .order_by(Task.due_date, Task.id)
            )
            tasks = list(self._session.execute(stmt).scalars().unique())
        self.rows_read += len(tasks)
        return tasks

    def list_active_tasks(self) -> List[Task]:
        """Every non-deleted task (analytics snapshot)."""
        with self._guard("list_active_tasks"):
            stmt = select(Task).where(Task.deleted_at.is_(None))
            tasks = list(self._session.execute(stmt).scalars())
        self.rows_read += len(tasks)
        return tasks

    def update_priority(self, task_id: str, priority: str, now: datetime) -> bool:
        """Set one task's priority in its own unit of work."""
        stmt = (
            update(Task)
            .where(Task.id == task_id, Task.deleted_at.is_(None))
            .values(priority=priority, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._guard("update_priority", "Failed to update priority"):
            result = self._session.execute(stmt)
            self._session.commit()
        if result.rowcount:
            self.rows_written += 1
        return bool(result.rowcount)

    def bulk_update(self, task_ids: List[str], values: Dict[str, Any], message: str) -> int:
        """
        One UPDATE over ``id IN task_ids AND deleted_at IS NULL``.

        Returns the number of rows actually affected.
        """
        values = dict(values)
        if "status" in values and "updated_at" in values:
            values.update(_completed_at_on(values["status"], values["updated_at"]))
        stmt = (
            update(Task)
            .where(Task.id.in_(task_ids), Task.deleted_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._guard("bulk_update", message):
            result = self._session.execute(stmt)
        self.rows_written += result.rowcount
        return result.rowcount

    def bulk_soft_delete(self, task_ids: List[str], user_id: str, now: datetime, message: str) -> int:
        return self.bulk_update(
            task_ids,
            {"deleted_at": now, "updated_by": user_id, "updated_at": now},
            message,
        )

    # -----------------------------------------------------------------------
    # Profiles
    # -----------------------------------------------------------------------

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._guard("get_profile"):
            profile = self._session.get(Profile, profile_id)
        if profile is not None:
            self.rows_read += 1
        return profile

    def get_profiles(self, profile_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = list(set(profile_ids))
        if not ids:
            return {}
        with self._guard("get_profiles"):
            stmt = select(Profile).where(Profile.id.in_(ids))
            profiles = list(self._session.execute(stmt).scalars())
        self.rows_read += len(profiles)
        return {p.id: p for p in profiles}

    # -----------------------------------------------------------------------
    # Notifications
    # -----------------------------------------------------------------------

    def insert_notifications(self, rows: List[Dict[str, Any]], message: str = "Failed to create notifications") -> int:
        """Insert all rows in one batch statement."""
        if not rows:
            return 0
        with self._guard("insert_notifications", message):
            self._session.execute(insert(Notification), rows)
            self._session.flush()
        self.rows_written += len(rows)
        return len(rows)

    # -----------------------------------------------------------------------
    # Reminders
    # -----------------------------------------------------------------------

    def list_due_reminders(self, now: datetime) -> List[Reminder]:
        with self._guard("list_due_reminders"):
            stmt = (
                select(Reminder)
                .where(
                    Reminder.reminder_date <= now,
                    Reminder.status == ReminderStatus.SCHEDULED.value,
                    Reminder.deleted_at.is_(None),
                )
                .order_by(Reminder.reminder_date)
            )
            reminders = list(self._session.execute(stmt).scalars())
        self.rows_read += len(reminders)
        return reminders

    def mark_reminder_triggered(self, reminder_id: str, now: datetime) -> bool:
        stmt = (
            update(Reminder)
            .where(Reminder.id == reminder_id)
            .values(status=ReminderStatus.TRIGGERED.value, triggered_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with self._guard("mark_reminder_triggered", "Failed to update reminder"):
            result = self._session.execute(stmt)
            self._session.commit()
        self.rows_written += result.rowcount
        return bool(result.rowcount)

    def insert_reminders(self, rows: List[Dict[str, Any]]) -> int:
        """Insert recurring follow-ups in one batch statement."""
        if not rows:
            return 0
        with self._guard("insert_reminders", "Failed to create recurring reminders"):
            self._session.execute(insert(Reminder), rows)
            self._session.commit()
        self.rows_written += len(rows)
        return len(rows)

    # -----------------------------------------------------------------------
    # Unit of work
    # -----------------------------------------------------------------------

    def commit(self, message: str = "Store operation failed") -> None:
        with self._guard("commit", message):
            self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()
