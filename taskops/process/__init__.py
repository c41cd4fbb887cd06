"""TaskOps Process Engine — Celery tasks, Beat schedules, and event dispatch."""

from taskops.process.executor import (  # noqa: F401
    enqueue_function,
    get_celery_app,
)
from taskops.process.scheduler import (  # noqa: F401
    FunctionScheduler,
    fire_event,
    get_scheduler,
)

__all__ = [
    "enqueue_function",
    "get_celery_app",
    "FunctionScheduler",
    "fire_event",
    "get_scheduler",
]
