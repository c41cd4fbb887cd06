"""
TaskOps Function Executor — the single invocation pipeline for every function.

Pipeline (per invocation):
    1. Create ExecutionContext → inject into contextvars
    2. Resolve the registered function by name
    3. Validate the JSON body against the function's request model
    4. Open a store session (or use the one supplied by the caller)
    5. Run the handler with a FunctionContext
    6. Map TaskOpsError subclasses to their status codes / error bodies
    7. Log the call to functions/execution (+ performance)

The HTTP server, Celery tasks and the CLI all go through ``invoke()``, so a
function behaves the same no matter how it was triggered.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from taskops.db.base import utcnow
from taskops.db.session import session_scope
from taskops.engine.cache import RedisCache, get_cache
from taskops.engine.config import TaskOpsConfig, get_config
from taskops.engine.context import (
    ExecutionContext,
    FunctionContext,
    clear_execution_context,
    set_execution_context,
)
from taskops.engine.errors import TaskOpsError, TaskOpsValidationError
from taskops.engine.logging import log, log_function_execution, log_function_performance
from taskops.engine.registry import FunctionRegistry, RegisteredFunction, function_registry
from taskops.tasks.store import TaskStore

logger = logging.getLogger("taskops.engine.executor")

MISSING_FIELDS_MESSAGE = "Missing required fields"


# ---------------------------------------------------------------------------
# Response Model
# ---------------------------------------------------------------------------

class FunctionResponse(BaseModel):
    """Normalized function response (status code + JSON body)."""

    status_code: int = 200
    body: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class FunctionExecutor:
    """Runs registered functions and turns their outcome into a FunctionResponse."""

    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        config: Optional[TaskOpsConfig] = None,
        cache: Optional[RedisCache] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._registry = registry or function_registry
        self._config = config
        self._cache = cache
        self._clock = clock

    @property
    def config(self) -> TaskOpsConfig:
        return self._config or get_config()

    @property
    def registry(self) -> FunctionRegistry:
        return self._registry

    def invoke(
        self,
        name: str,
        body: Optional[Dict[str, Any]] = None,
        *,
        triggered_by: str = "http",
        store: Optional[TaskStore] = None,
    ) -> FunctionResponse:
        """
        Invoke a function by name.

        Args:
            name: Registered function name (e.g. "bulk-task-operations").
            body: JSON body. None is treated as an empty object.
            triggered_by: "http" | "schedule" | "event" | "cli".
            store: Existing TaskStore to run against. When omitted a session
                   is opened with ``session_scope()``.
        """
        body = body if body is not None else {}
        execution = ExecutionContext(
            function_name=name,
            triggered_by=triggered_by,
            user_id=body.get("user_id") if isinstance(body, dict) else None,
        )
        set_execution_context(execution)
        start_time = time.monotonic()
        fn: Optional[RegisteredFunction] = None
        error: Optional[Dict[str, Any]] = None
        used_store: Optional[TaskStore] = store

        try:
            fn = self._registry.resolve_or_raise(name)
            inputs = self._validate(fn, body)

            if store is not None:
                result = self._run(fn, inputs, store, execution)
            else:
                with session_scope() as session:
                    used_store = TaskStore(session, execution_id=execution.execution_id)
                    result = self._run(fn, inputs, used_store, execution)

            response = FunctionResponse(status_code=200, body=result)

        except TaskOpsError as e:
            if store is not None:
                store.rollback()
            e.execution_id = e.execution_id or execution.execution_id
            e.function_name = e.function_name or name
            error = e.to_dict()
            if e.status_code >= 500:
                logger.error(f"Function {name} failed: {e!r}")
            else:
                logger.info(f"Function {name} rejected: {e!r}")
            response = FunctionResponse(status_code=e.status_code, body=e.to_response())

        except Exception as e:
            if store is not None:
                store.rollback()
            logger.exception(f"Unhandled error in function {name}: {e}")
            error = {"error_type": type(e).__name__, "message": str(e)}
            response = FunctionResponse(status_code=500, body={"error": str(e)})

        finally:
            clear_execution_context()

        duration_ms = (time.monotonic() - start_time) * 1000
        self._log_execution(fn, execution, body, response, duration_ms, used_store, error)
        return response

    # -----------------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------------

    @staticmethod
    def _validate(fn: RegisteredFunction, body: Any) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise TaskOpsValidationError("Request body must be a JSON object")
        if fn.request_model is None:
            return dict(body)
        try:
            model = fn.request_model.model_validate(body)
        except ValidationError as e:
            raise TaskOpsValidationError(
                MISSING_FIELDS_MESSAGE,
                validation_errors=e.errors(include_url=False, include_context=False),
            ) from e
        return model.model_dump()

    def _run(
        self,
        fn: RegisteredFunction,
        inputs: Dict[str, Any],
        store: TaskStore,
        execution: ExecutionContext,
    ) -> Dict[str, Any]:
        store.execution_id = execution.execution_id
        ctx = FunctionContext(
            inputs=inputs,
            store=store,
            config=self.config,
            now=self._clock(),
            execution=execution,
            cache=self._cache or get_cache(),
        )
        return fn.handler(ctx)

    def _log_execution(
        self,
        fn: Optional[RegisteredFunction],
        execution: ExecutionContext,
        body: Any,
        response: FunctionResponse,
        duration_ms: float,
        store: Optional[TaskStore],
        error: Optional[Dict[str, Any]],
    ) -> None:
        """Body is only logged when the function opted in with log_payload=True."""
        log(log_function_execution(
            function_name=execution.function_name,
            execution_id=execution.execution_id,
            triggered_by=execution.triggered_by,
            status_code=response.status_code,
            duration_ms=duration_ms,
            user_id=execution.user_id,
            inputs=body if fn is not None and fn.log_payload else None,
            error=error,
        ))
        if store is not None:
            log(log_function_performance(
                function_name=execution.function_name,
                execution_id=execution.execution_id,
                duration_ms=duration_ms,
                rows_read=store.rows_read,
                rows_written=store.rows_written,
            ))


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_executor: Optional[FunctionExecutor] = None


def get_executor() -> FunctionExecutor:
    """Get or create the global FunctionExecutor."""
    global _executor
    if _executor is None:
        _executor = FunctionExecutor()
    return _executor


def set_executor(executor: Optional[FunctionExecutor]) -> None:
    global _executor
    _executor = executor
