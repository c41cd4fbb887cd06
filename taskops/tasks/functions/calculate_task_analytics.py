"""calculate-task-analytics — read-only fleet snapshot, cached in Redis."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from taskops.decorators import function, schedule
from taskops.engine.cache import ANALYTICS_SNAPSHOT_KEY
from taskops.engine.errors import TaskOpsStoreError
from taskops.tasks.constants import UNKNOWN_USER_NAME
from taskops.tasks.rules.analytics import build_snapshot

logger = logging.getLogger("taskops.tasks.functions.calculate_task_analytics")


class CalculateTaskAnalyticsRequest(BaseModel):
    refresh: Optional[bool] = False


@function(
    request_model=CalculateTaskAnalyticsRequest,
    triggers=[schedule("0 * * * *", config_key="analytics_cron")],
)
def calculate_task_analytics(ctx):
    """
    Aggregate status, priority, completion and per-assignee figures.

    With ``analytics.cache_enabled`` the snapshot is served from Redis for up
    to ``analytics.cache_ttl`` seconds (300 by default). Only the TaskOps
    functions invalidate it, so writes made by other services to the task
    tables can stay invisible for that window. Pass ``refresh: true`` to
    recompute.
    """
    settings = ctx.config.analytics
    cache = ctx.cache if settings.cache_enabled else None

    if cache is not None and not ctx.input("refresh", False):
        cached = cache.get_json(ANALYTICS_SNAPSHOT_KEY)
        if cached is not None:
            logger.debug("Analytics served from cache")
            return {"success": True, **cached}

    tasks = ctx.store.list_active_tasks()
    assignee_ids = {t.assigned_to_id for t in tasks if t.assigned_to_id}

    # A failed profile lookup only costs the display names
    try:
        profiles = ctx.store.get_profiles(assignee_ids)
    except TaskOpsStoreError as e:
        logger.warning(f"Profile lookup failed, team names default to {UNKNOWN_USER_NAME}: {e.details}")
        profiles = {}
    names = {pid: p.full_name or UNKNOWN_USER_NAME for pid, p in profiles.items()}

    snapshot = build_snapshot(tasks, names, ctx.today, ctx.now)
    if cache is not None:
        cache.set_json(ANALYTICS_SNAPSHOT_KEY, snapshot, ttl=settings.cache_ttl)

    return {"success": True, **snapshot}
