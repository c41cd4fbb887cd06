"""
Built-in TaskOps functions.

Importing this package registers every function with the global registry.
"""

from taskops.tasks.functions.bulk_task_operations import bulk_task_operations
from taskops.tasks.functions.calculate_task_analytics import calculate_task_analytics
from taskops.tasks.functions.process_overdue_tasks import process_overdue_tasks
from taskops.tasks.functions.process_reminders import process_reminders
from taskops.tasks.functions.send_task_notifications import send_task_notifications
from taskops.tasks.functions.sync_task_status import sync_task_status

FUNCTIONS = [
    sync_task_status,
    process_overdue_tasks,
    calculate_task_analytics,
    bulk_task_operations,
    send_task_notifications,
    process_reminders,
]

__all__ = [fn.__name__ for fn in FUNCTIONS] + ["FUNCTIONS"]
