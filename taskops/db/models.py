"""
TaskOps Models — SQLAlchemy models for the task store.

Tables:
1. profiles       — Users with role and reporting line (manager_id)
2. tasks          — Task tree (parent_id), soft-deleted via deleted_at
3. notifications  — Insert-only notification rows
4. reminders      — Scheduled / recurring reminders
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from taskops.db.base import AuditMixin, Base, SoftDeleteMixin, new_id, utcnow
from taskops.tasks.constants import (
    TASK_PRIORITIES,
    TASK_STATUSES,
    ReminderStatus,
    TaskPriority,
    TaskStatus,
    sql_in_list,
)


# ---------------------------------------------------------------------------
# 1. Profiles
# ---------------------------------------------------------------------------

class Profile(Base, AuditMixin):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    role = Column(String(50), default="employee", nullable=False, index=True)
    manager_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)

    manager = relationship("Profile", remote_side=[id], lazy="select")

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, full_name='{self.full_name}', role='{self.role}')>"


# ---------------------------------------------------------------------------
# 2. Tasks
# ---------------------------------------------------------------------------

class Task(Base, AuditMixin, SoftDeleteMixin):
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=TaskStatus.NOT_STARTED.value, nullable=False, index=True)
    priority = Column(String(20), default=TaskPriority.MEDIUM.value, nullable=False, index=True)
    parent_id = Column(String(36), ForeignKey("tasks.id"), nullable=True, index=True)
    assigned_to_id = Column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    due_date = Column(Date, nullable=True, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    assignee = relationship("Profile", foreign_keys=[assigned_to_id], lazy="select")

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in_list(TASK_STATUSES)})", name="ck_tasks_status"),
        CheckConstraint(f"priority IN ({sql_in_list(TASK_PRIORITIES)})", name="ck_tasks_priority"),
        Index("idx_tasks_parent_active", "parent_id", "deleted_at"),
        Index("idx_tasks_due_status", "due_date", "status"),
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, name='{self.name}', status='{self.status}')>"


# ---------------------------------------------------------------------------
# 3. Notifications
# ---------------------------------------------------------------------------

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(user_id={self.user_id}, type='{self.type}')>"


# ---------------------------------------------------------------------------
# 4. Reminders
# ---------------------------------------------------------------------------

class Reminder(Base, SoftDeleteMixin):
    __tablename__ = "reminders"

    id = Column(String(36), primary_key=True, default=new_id)
    created_by = Column(String(36), nullable=True)
    assigned_to = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    reminder_date = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), default=ReminderStatus.SCHEDULED.value, nullable=False, index=True)
    priority = Column(String(20), default=TaskPriority.MEDIUM.value, nullable=False)
    action_required = Column(Boolean, default=False, nullable=False)
    action_url = Column(String(500), nullable=True)
    data = Column(JSON, nullable=True)
    # {"type": daily|weekly|monthly|yearly, "interval", "days_of_week", "day_of_month", "end_date"}
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(JSON, nullable=True)
    triggered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            f"status IN ({sql_in_list(s.value for s in ReminderStatus)})",
            name="ck_reminders_status",
        ),
        Index("idx_reminders_due", "status", "reminder_date"),
    )

    def __repr__(self) -> str:
        return f"<Reminder(id={self.id}, title='{self.title}', status='{self.status}')>"
