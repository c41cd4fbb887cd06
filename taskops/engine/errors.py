"""
TaskOps Error Hierarchy — Structured exceptions mapped to HTTP-style statuses.

Every error carries a ``status_code`` and serializes to the JSON error body
returned by a function (``{"error": ..., "details": ...}``) as well as to a
richer dict for the JSONL execution logs.

Hierarchy:
    TaskOpsError                    500
    ├── TaskOpsValidationError      400  Missing/malformed input
    ├── TaskOpsAuthError            401  Bad or missing API key
    ├── TaskOpsSecurityError        403  Caller lacks the required role
    ├── TaskOpsNotFoundError        404  Task / parent / function not found
    ├── TaskOpsHierarchyError       409  Cyclic parent chain, depth or retry limit
    ├── TaskOpsStoreError           500  Underlying query/update failed
    └── TaskOpsConfigError          500  Invalid taskops.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TaskOpsError(Exception):
    """Base error for all TaskOps failures."""

    status_code: int = 500

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.execution_id: Optional[str] = context.get("execution_id")
        self.function_name: Optional[str] = context.get("function_name")
        self.details: Optional[str] = context.get("details")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            "execution_id": self.execution_id,
            "function_name": self.function_name,
            "details": self.details,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("execution_id", "function_name", "details")
            },
        }

    def to_response(self) -> Dict[str, Any]:
        """Body returned to the caller."""
        body: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}({self.status_code}): {self.message}"]
        if self.function_name:
            parts.append(f"function={self.function_name}")
        if self.execution_id:
            parts.append(f"execution_id={self.execution_id}")
        return " | ".join(parts)


class TaskOpsValidationError(TaskOpsError):
    """
    Input validation failed. Raised before any store access.
    Includes the pydantic field-level errors when available.
    """

    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.validation_errors: Optional[List[Any]] = context.get("validation_errors")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class TaskOpsAuthError(TaskOpsError):
    """Missing or invalid API key on the HTTP surface."""

    status_code = 401


class TaskOpsSecurityError(TaskOpsError):
    """
    Access denied. Logged to security/ log files.
    Includes the acting user and the role that was required.
    """

    status_code = 403

    def __init__(self, message: str, **context: Any):
        self.user_id: Optional[str] = context.get("user_id")
        self.user_role: Optional[str] = context.get("user_role")
        self.required_role: Optional[str] = context.get("required_role")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["user_id"] = self.user_id
        d["user_role"] = self.user_role
        d["required_role"] = self.required_role
        return d


class TaskOpsNotFoundError(TaskOpsError):
    """Referenced row (or registered function) does not exist or is soft-deleted."""

    status_code = 404

    def __init__(self, message: str, **context: Any):
        self.record_type: Optional[str] = context.get("record_type")
        self.record_id: Optional[str] = context.get("record_id")
        super().__init__(message, **context)


class TaskOpsHierarchyError(TaskOpsError):
    """Task tree cannot be walked safely (cycle, depth guard, lost CAS race)."""

    status_code = 409

    def __init__(self, message: str, **context: Any):
        self.task_chain: List[str] = context.get("task_chain", [])
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["task_chain"] = self.task_chain
        return d


class TaskOpsStoreError(TaskOpsError):
    """Store query or update failed. ``details`` holds the driver message."""

    status_code = 500

    def __init__(self, message: str, **context: Any):
        self.operation: Optional[str] = context.get("operation")
        super().__init__(message, **context)


class TaskOpsConfigError(TaskOpsError):
    """Configuration error — invalid taskops.yaml."""
    pass
