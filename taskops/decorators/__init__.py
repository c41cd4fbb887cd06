"""TaskOps Decorators — function registration and trigger builders."""

from taskops.decorators.core import event, function, schedule

__all__ = ["function", "schedule", "event"]
