"""
TaskOps Celery Executor — runs registered functions as Celery tasks.

Celery Tasks:
    - taskops.run_function: invoke one function by name with a JSON payload
    - taskops.cleanup_logs: apply log retention (compress / delete JSONL files)

Workers boot the runtime lazily on the first task, so ``celery -A
taskops.process.executor worker`` needs nothing beyond taskops.yaml.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from celery import Celery

from taskops.engine.config import get_config

logger = logging.getLogger("taskops.process.executor")


# ---------------------------------------------------------------------------
# Celery app (configured at startup from taskops.yaml)
# ---------------------------------------------------------------------------

_celery_app: Optional[Celery] = None


def get_celery_app() -> Celery:
    """Get or create the Celery app singleton."""
    global _celery_app
    if _celery_app is None:
        _celery_app = _create_celery_app()
    return _celery_app


def _create_celery_app() -> Celery:
    """Create and configure the Celery application."""
    config = get_config()
    app = Celery("taskops", broker=config.celery.broker, backend=config.celery.result_backend)

    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone=config.scheduling.timezone,
        enable_utc=True,
        task_default_queue="celery",
        task_routes={
            "taskops.cleanup_logs": {"queue": "scheduled"},
        },
        task_time_limit=config.celery.task_time_limit,
        worker_concurrency=config.celery.concurrency,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
    )

    return app


def _ensure_runtime() -> None:
    from taskops.engine.runtime import get_runtime, init_runtime

    runtime = get_runtime()
    if runtime is None or not runtime.started:
        init_runtime()


# ---------------------------------------------------------------------------
# Task bodies (plain functions so they can be called without a broker)
# ---------------------------------------------------------------------------

def run_function(name: str, payload: Optional[Dict[str, Any]] = None, triggered_by: str = "schedule") -> Dict[str, Any]:
    """Invoke a function and return ``{"status_code", "body"}``."""
    from taskops.engine.executor import get_executor

    _ensure_runtime()
    response = get_executor().invoke(name, payload or {}, triggered_by=triggered_by)
    if not response.ok:
        logger.warning(f"Function {name} ({triggered_by}) returned {response.status_code}: {response.body}")
    return response.model_dump()


def cleanup_logs() -> Dict[str, int]:
    from taskops.engine.runtime import get_runtime

    _ensure_runtime()
    runtime = get_runtime()
    stats = runtime.retention_manager.cleanup()
    logger.info(f"Log cleanup: {stats}")
    return stats


# ---------------------------------------------------------------------------
# Celery tasks
# ---------------------------------------------------------------------------

celery_app = get_celery_app()

run_function_task = celery_app.task(name="taskops.run_function")(run_function)
cleanup_logs_task = celery_app.task(name="taskops.cleanup_logs")(cleanup_logs)


def enqueue_function(
    name: str,
    payload: Optional[Dict[str, Any]] = None,
    triggered_by: str = "event",
    queue: str = "events",
):
    """Send a function invocation to the worker pool."""
    return run_function_task.apply_async(args=(name, payload or {}, triggered_by), queue=queue)
