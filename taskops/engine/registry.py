"""
TaskOps Function Registry — register, discover, and resolve functions by name.

Functions register themselves through the ``@function`` decorator when their
module is imported; ``discover()`` imports the built-in function package so
the HTTP server, the Celery worker and the CLI all see the same set.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from taskops.engine.errors import TaskOpsNotFoundError

logger = logging.getLogger("taskops.engine.registry")

DEFAULT_FUNCTION_PACKAGES = ("taskops.tasks.functions",)


@dataclass
class RegisteredFunction:
    """Metadata for a registered function."""

    name: str                                    # e.g. "sync-task-status"
    handler: Callable
    module_path: str
    request_model: Optional[Type[BaseModel]] = None
    triggers: List[Dict[str, str]] = field(default_factory=list)
    description: str = ""
    log_payload: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def schedules(self) -> List[Dict[str, str]]:
        return [t for t in self.triggers if t.get("type") == "schedule"]

    @property
    def events(self) -> List[str]:
        return [t["event"] for t in self.triggers if t.get("type") == "event"]


class FunctionRegistry:
    """
    In-memory function registry.

    Usage:
        registry = FunctionRegistry()
        registry.register(fn)
        fn = registry.resolve_or_raise("process-overdue-tasks")
    """

    def __init__(self):
        self._functions: Dict[str, RegisteredFunction] = {}

    def register(self, fn: RegisteredFunction) -> None:
        if fn.name in self._functions and self._functions[fn.name].module_path != fn.module_path:
            logger.warning(
                f"Function '{fn.name}' re-registered from {fn.module_path} "
                f"(was {self._functions[fn.name].module_path})"
            )
        self._functions[fn.name] = fn
        logger.debug(f"Registered function: {fn.name}")

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def resolve(self, name: str) -> Optional[RegisteredFunction]:
        return self._functions.get(name)

    def resolve_or_raise(self, name: str) -> RegisteredFunction:
        """Resolve or raise TaskOpsNotFoundError."""
        fn = self.resolve(name)
        if fn is None:
            raise TaskOpsNotFoundError(
                f"Function not found: {name}",
                record_type="function",
                record_id=name,
                function_name=name,
            )
        return fn

    def get_all(self) -> List[RegisteredFunction]:
        return sorted(self._functions.values(), key=lambda f: f.name)

    def get_scheduled(self) -> List[RegisteredFunction]:
        """Functions with at least one schedule trigger."""
        return [f for f in self.get_all() if f.schedules]

    def get_by_event(self, event_name: str) -> List[RegisteredFunction]:
        return [f for f in self.get_all() if event_name in f.events]

    def contains(self, name: str) -> bool:
        return name in self._functions

    @property
    def count(self) -> int:
        return len(self._functions)

    def clear(self) -> None:
        self._functions.clear()

    def discover(self, packages: Optional[List[str]] = None) -> int:
        """
        Import function packages so their decorators run.

        Returns:
            Number of registered functions afterwards.
        """
        for package in packages or DEFAULT_FUNCTION_PACKAGES:
            module = importlib.import_module(package)
            # Re-registration covers registries cleared after first import
            for fn in getattr(module, "FUNCTIONS", []):
                registered = getattr(fn, "_taskops_function", None)
                if registered is not None and not self.contains(registered.name):
                    self.register(registered)
        logger.info(f"Function registry holds {self.count} functions")
        return self.count


# Global registry singleton
function_registry = FunctionRegistry()
