"""
TaskOps Health Check — connectivity checks behind the /health endpoint.

Provides:
    - HealthCheckService: named sync/async checks run concurrently
    - Database check (SELECT 1 through the engine registry)
    - Redis check (ping through the analytics cache)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from taskops.db.base import DEFAULT_ENGINE, engine_registry

logger = logging.getLogger("taskops.engine.health")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a single health check."""
    name: str
    status: HealthStatus
    latency_ms: float = 0.0
    message: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message,
            "checked_at": self.checked_at.isoformat(),
        }


class HealthCheckService:
    """
    Usage:
        service = HealthCheckService(timeout=5)
        service.register_database_check()
        summary = await service.get_platform_health()
    """

    def __init__(self, timeout: float = 5.0):
        self._checks: Dict[str, Callable] = {}
        self._critical: Dict[str, bool] = {}
        self._timeout = timeout

    def register_check(self, name: str, check_fn: Callable, critical: bool = True) -> None:
        """
        Register a check returning True when healthy. ``check_fn`` may be sync
        or async. A failing non-critical check degrades, never fails, the
        overall status.
        """
        self._checks[name] = check_fn
        self._critical[name] = critical
        logger.debug(f"Registered health check: {name}")

    def register_database_check(self, name: str = "database", engine_name: str = DEFAULT_ENGINE) -> None:
        self.register_check(name, lambda: engine_registry.health_check(engine_name))

    def register_cache_check(self, cache: Any, name: str = "redis") -> None:
        """The analytics cache is optional, so its check is non-critical."""
        self.register_check(name, cache.ping, critical=False)

    @property
    def registered_checks(self) -> List[str]:
        return list(self._checks.keys())

    async def check(self, name: str) -> HealthCheckResult:
        if name not in self._checks:
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"No health check registered for '{name}'",
            )

        check_fn = self._checks[name]
        start = time.monotonic()
        try:
            if asyncio.iscoroutinefunction(check_fn):
                healthy = await asyncio.wait_for(check_fn(), timeout=self._timeout)
            else:
                healthy = check_fn()
        except asyncio.TimeoutError:
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                message=f"Timeout after {self._timeout}s",
            )
        except Exception as e:
            logger.warning(f"Health check '{name}' raised: {e}")
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.monotonic() - start) * 1000,
                message=str(e),
            )

        return HealthCheckResult(
            name=name,
            status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            latency_ms=(time.monotonic() - start) * 1000,
            message="OK" if healthy else "Check returned unhealthy",
        )

    async def check_all(self) -> Dict[str, HealthCheckResult]:
        """Run all registered checks concurrently."""
        results = await asyncio.gather(*(self.check(name) for name in self._checks))
        return {r.name: r for r in results}

    async def get_platform_health(self) -> Dict[str, Any]:
        """Overall status plus each check's result."""
        results = await self.check_all()

        overall = HealthStatus.HEALTHY
        for name, result in results.items():
            if result.status == HealthStatus.HEALTHY:
                continue
            if self._critical.get(name, True):
                overall = HealthStatus.UNHEALTHY
                break
            overall = HealthStatus.DEGRADED

        return {
            "status": overall.value,
            "checks": {name: r.to_dict() for name, r in results.items()},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_health_service: Optional[HealthCheckService] = None


def get_health_service() -> HealthCheckService:
    """Get or create the global HealthCheckService with the default checks."""
    global _health_service
    if _health_service is None:
        from taskops.engine.cache import get_cache

        _health_service = HealthCheckService()
        _health_service.register_database_check()
        cache = get_cache()
        if cache is not None:
            _health_service.register_cache_check(cache)
    return _health_service


def reset_health_service() -> None:
    global _health_service
    _health_service = None
