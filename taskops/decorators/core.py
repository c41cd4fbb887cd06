"""
TaskOps Decorators — @function plus the schedule()/event() trigger builders.

The decorator:
1. Registers the handler in the FunctionRegistry under its public name
2. Attaches metadata (request model, triggers) for the executor/scheduler
3. Does NOT intercept execution; the executor runs the handler
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from taskops.engine.registry import RegisteredFunction, function_registry

logger = logging.getLogger("taskops.decorators")


def event(event_name: str) -> Dict[str, str]:
    """Build an event trigger (e.g. fired by a database trigger bridge)."""
    return {"type": "event", "event": event_name}


def schedule(
    cron_expression: str,
    timezone: Optional[str] = None,
    config_key: Optional[str] = None,
) -> Dict[str, str]:
    """
    Build a cron schedule trigger.

    ``config_key`` names a ``scheduling`` setting that overrides the cron
    expression at Beat build time. A None timezone means scheduling.timezone.
    """
    trigger = {"type": "schedule", "cron": cron_expression}
    if timezone:
        trigger["timezone"] = timezone
    if config_key:
        trigger["config_key"] = config_key
    return trigger


def function(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    request_model: Optional[Type[BaseModel]] = None,
    triggers: Optional[List[Dict[str, str]]] = None,
    log_payload: bool = False,
) -> Any:
    """
    Decorator for TaskOps functions — invocable over HTTP, Celery and the CLI.

    The public name defaults to the handler name with underscores replaced
    by dashes (``sync_task_status`` -> ``sync-task-status``).
    """

    def decorator(fn: Callable) -> Callable:
        registered = RegisteredFunction(
            name=name or fn.__name__.replace("_", "-"),
            handler=fn,
            module_path=fn.__module__,
            request_model=request_model,
            triggers=list(triggers or []),
            description=(fn.__doc__ or "").strip().split("\n")[0],
            log_payload=log_payload,
        )
        fn._taskops_function = registered
        function_registry.register(registered)
        return fn

    if func is not None:
        return decorator(func)
    return decorator
