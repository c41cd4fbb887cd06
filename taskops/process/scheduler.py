"""
TaskOps Scheduler — Celery Beat entries and event dispatch from function triggers.

Trigger types (set with the @function decorator):
    schedule("0 9 * * *", config_key="overdue_cron")  → Celery Beat crontab
    event("task.status_changed")                      → fire_event() dispatch

A ``config_key`` on a schedule trigger names a ``scheduling`` setting in
taskops.yaml that replaces the decorator's default expression.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from celery.schedules import crontab

from taskops.engine.config import TaskOpsConfig, get_config
from taskops.engine.logging import log, log_scheduler_event
from taskops.engine.registry import FunctionRegistry, function_registry

logger = logging.getLogger("taskops.process.scheduler")


def parse_cron(cron_expr: str) -> Optional[crontab]:
    """Five-field cron → crontab. Returns None for malformed expressions."""
    parts = cron_expr.strip().split()
    if len(parts) != 5:
        return None
    return crontab(
        minute=parts[0],
        hour=parts[1],
        day_of_month=parts[2],
        month_of_year=parts[3],
        day_of_week=parts[4],
    )


class FunctionScheduler:
    """
    Turns registry triggers into Beat schedules and event dispatches.

    Usage:
        scheduler = FunctionScheduler()
        scheduler.apply_celery_beat_config()
        scheduler.fire_event("task.status_changed", {"task_id": ...})
    """

    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        config: Optional[TaskOpsConfig] = None,
    ) -> None:
        self.registry = registry or function_registry
        self._config = config

    @property
    def config(self) -> TaskOpsConfig:
        return self._config or get_config()

    def resolve_cron(self, trigger: Dict[str, str]) -> str:
        key = trigger.get("config_key")
        if key:
            return getattr(self.config.scheduling, key, None) or trigger["cron"]
        return trigger["cron"]

    def configure_celery_beat(self) -> Dict[str, Any]:
        """
        Generate the Celery Beat schedule from registered schedule triggers,
        plus the log retention job.

        Returns:
            Dict suitable for celery_app.conf.beat_schedule.
        """
        beat_schedule: Dict[str, Any] = {}

        for fn in self.registry.get_scheduled():
            for index, trigger in enumerate(fn.schedules):
                cron_expr = self.resolve_cron(trigger)
                schedule = parse_cron(cron_expr)
                if schedule is None:
                    logger.warning(f"Invalid cron expression for {fn.name}: {cron_expr}")
                    continue

                schedule_name = fn.name if index == 0 else f"{fn.name}-{index}"
                beat_schedule[schedule_name] = {
                    "task": "taskops.run_function",
                    "schedule": schedule,
                    "args": (fn.name, {}, "schedule"),
                    "options": {"queue": "scheduled"},
                }
                logger.debug(f"Celery Beat schedule: {schedule_name} = {cron_expr}")

        cleanup = parse_cron(self.config.logging.cleanup_schedule)
        if cleanup is not None:
            beat_schedule["log-cleanup"] = {
                "task": "taskops.cleanup_logs",
                "schedule": cleanup,
                "options": {"queue": "scheduled"},
            }

        return beat_schedule

    def apply_celery_beat_config(self) -> int:
        """
        Apply schedule triggers to the Celery app's Beat config.

        Returns:
            Number of schedules configured.
        """
        from taskops.process.executor import get_celery_app

        beat_schedule = self.configure_celery_beat()
        celery_app = get_celery_app()
        celery_app.conf.beat_schedule = beat_schedule
        celery_app.conf.timezone = self.config.scheduling.timezone
        logger.info(f"Applied {len(beat_schedule)} Celery Beat schedules")
        return len(beat_schedule)

    def fire_event(
        self,
        event_name: str,
        payload: Optional[Dict[str, Any]] = None,
        async_execution: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Fire a named event: invoke every function registered for it.

        Args:
            event_name: e.g. "task.status_changed".
            payload: JSON body passed to each function.
            async_execution: If True, enqueue via Celery; otherwise run inline.

        Returns:
            One entry per dispatched function: ``{"function", "task_id"}`` when
            queued, ``{"function", "status_code", "body"}`` when run inline.
        """
        functions = self.registry.get_by_event(event_name)
        if not functions:
            logger.debug(f"No functions registered for event: {event_name}")
            return []

        results: List[Dict[str, Any]] = []
        for fn in functions:
            log(log_scheduler_event("event_dispatched", fn.name, trigger=event_name))
            if async_execution:
                from taskops.process.executor import enqueue_function

                result = enqueue_function(fn.name, payload, triggered_by="event")
                results.append({"function": fn.name, "task_id": result.id})
            else:
                from taskops.engine.executor import get_executor

                response = get_executor().invoke(fn.name, payload, triggered_by="event")
                results.append({"function": fn.name, **response.model_dump()})
            logger.info(f"Event '{event_name}' dispatched to {fn.name}")

        return results


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_scheduler: Optional[FunctionScheduler] = None


def get_scheduler() -> FunctionScheduler:
    """Get or create the global FunctionScheduler singleton."""
    global _scheduler
    if _scheduler is None:
        _scheduler = FunctionScheduler()
    return _scheduler


def reset_scheduler() -> None:
    global _scheduler
    _scheduler = None


def fire_event(
    event_name: str,
    payload: Optional[Dict[str, Any]] = None,
    async_execution: bool = True,
) -> List[Dict[str, Any]]:
    return get_scheduler().fire_event(event_name, payload, async_execution=async_execution)
