"""
TaskOps Runtime — boots and tears down the shared subsystems.

Ties together:
- Configuration (taskops.yaml)
- AsyncLogQueue + LogRetentionManager (JSONL execution logs)
- Database engine + scoped sessions
- RedisCache (analytics snapshots)
- FunctionRegistry discovery

The HTTP server, the Celery worker and the CLI all call ``startup()`` before
invoking functions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from taskops.db.session import close_all_sessions, init_db_from_config, is_initialized
from taskops.engine.cache import RedisCache, init_cache
from taskops.engine.config import TaskOpsConfig, get_config, load_config
from taskops.engine.logging import (
    AsyncLogQueue,
    LogRetentionManager,
    init_logging,
    log,
    log_system_event,
    shutdown_logging,
)
from taskops.engine.registry import FunctionRegistry, function_registry

logger = logging.getLogger("taskops.engine.runtime")


class TaskOpsRuntime:
    """
    Lifecycle:
        runtime = TaskOpsRuntime(config)
        runtime.startup()
        ...
        runtime.shutdown()
    """

    def __init__(
        self,
        config: Optional[TaskOpsConfig] = None,
        registry: Optional[FunctionRegistry] = None,
    ):
        self.config = config or get_config()
        self.registry = registry or function_registry
        self.log_queue: Optional[AsyncLogQueue] = None
        self.cache: Optional[RedisCache] = None
        self.retention_manager: Optional[LogRetentionManager] = None
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def startup(self, create_tables: bool = False, connect_cache: bool = True) -> None:
        """Initialize all subsystems."""
        if self._started:
            logger.warning("Runtime already started")
            return

        logger.info(f"Starting {self.config.name} runtime ({self.config.environment})...")

        # 1. Logging
        log_cfg = self.config.logging
        self.log_queue = init_logging(
            log_dir=log_cfg.directory,
            flush_interval_ms=log_cfg.async_queue.flush_interval_ms,
            flush_batch_size=log_cfg.async_queue.flush_batch_size,
            max_queue_size=log_cfg.async_queue.max_queue_size,
            level=log_cfg.level,
        )
        self.retention_manager = LogRetentionManager(
            log_dir=log_cfg.directory,
            retention_days={
                "execution": log_cfg.retention.execution_days,
                "performance": log_cfg.retention.performance_days,
                "security": log_cfg.retention.security_days,
            },
            compress_after_days=log_cfg.compress_after_days,
        )

        # 2. Database
        if not is_initialized():
            init_db_from_config(create_tables=create_tables)

        # 3. Redis cache
        if self.config.analytics.cache_enabled:
            self.cache = init_cache(
                self.config.redis.url,
                default_ttl=self.config.analytics.cache_ttl,
                connect=connect_cache,
            )

        # 4. Functions
        self.registry.discover()

        self._started = True
        log(log_system_event("runtime_started", details=self.status()))
        logger.info("TaskOps runtime started")

    def shutdown(self) -> None:
        """Flush the log queue and close connections."""
        if not self._started:
            return
        log(log_system_event("runtime_shutdown"))
        shutdown_logging()
        close_all_sessions()
        self._started = False
        logger.info("TaskOps runtime shut down")

    def status(self) -> Dict[str, Any]:
        return {
            "database": is_initialized(),
            "cache": self.cache.is_available if self.cache else False,
            "functions": self.registry.count,
            "log_queue": self.log_queue is not None,
        }


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_runtime: Optional[TaskOpsRuntime] = None


def get_runtime() -> Optional[TaskOpsRuntime]:
    return _runtime


def init_runtime(
    config_path: Optional[str] = None,
    create_tables: bool = False,
    connect_cache: bool = True,
) -> TaskOpsRuntime:
    """Load config (when a path is given) and start the global runtime once."""
    global _runtime
    if _runtime is not None and _runtime.started:
        return _runtime
    if config_path:
        load_config(config_path)
    _runtime = TaskOpsRuntime(get_config())
    _runtime.startup(create_tables=create_tables, connect_cache=connect_cache)
    return _runtime


def reset_runtime() -> None:
    global _runtime
    if _runtime is not None:
        _runtime.shutdown()
    _runtime = None
