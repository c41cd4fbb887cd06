"""
TaskOps HTTP Server — FastAPI surface over the function executor.

Endpoints:
    POST /functions/v1/{name}   invoke a registered function with a JSON body
    GET  /functions/v1          list registered functions and their triggers
    GET  /health                database + redis checks (no auth)

When ``server.api_keys`` is configured every /functions call must carry a
matching X-API-Key header.

Run:
    taskops serve
    uvicorn taskops.server:create_app --factory --port 8000
"""

from __future__ import annotations

import hmac
import json
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from taskops.engine.config import TaskOpsConfig, get_config
from taskops.engine.errors import TaskOpsAuthError, TaskOpsError, TaskOpsValidationError
from taskops.engine.executor import FunctionExecutor, get_executor
from taskops.engine.health import HealthCheckService, HealthStatus, get_health_service
from taskops.engine.logging import log, log_security_event

logger = logging.getLogger("taskops.server")


def _api_key_dependency(config: TaskOpsConfig):
    async def verify_api_key(x_api_key: Optional[str] = Header(None)) -> Optional[str]:
        keys = config.server.api_keys
        if not keys:
            return None
        if x_api_key is None:
            raise TaskOpsAuthError("X-API-Key header is required")
        # Constant-time comparison against every configured key
        if not any(hmac.compare_digest(x_api_key, key) for key in keys):
            log(log_security_event(
                event="invalid_api_key",
                function_name="http",
                user_id=None,
                required_role="api_key",
            ))
            raise TaskOpsAuthError("Invalid API key")
        return x_api_key

    return verify_api_key


async def _read_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TaskOpsValidationError("Invalid JSON body", details=str(e)) from e
    if not isinstance(body, dict):
        raise TaskOpsValidationError("Request body must be a JSON object")
    return body


def create_app(
    executor: Optional[FunctionExecutor] = None,
    config: Optional[TaskOpsConfig] = None,
    health_service: Optional[HealthCheckService] = None,
) -> FastAPI:
    """Build the FastAPI app. Collaborators default to the global singletons."""
    config = config or get_config()
    app = FastAPI(
        title=config.name,
        description="Task status rollup, overdue escalation, analytics and bulk operations",
        version=config.version,
    )
    verify_api_key = _api_key_dependency(config)

    @app.exception_handler(TaskOpsError)
    async def taskops_error_handler(request: Request, exc: TaskOpsError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.get("/health")
    async def health() -> JSONResponse:
        service = health_service or get_health_service()
        summary = await service.get_platform_health()
        status_code = 503 if summary["status"] == HealthStatus.UNHEALTHY.value else 200
        return JSONResponse(status_code=status_code, content=summary)

    @app.get("/functions/v1")
    async def list_functions(_: Optional[str] = Depends(verify_api_key)) -> Dict[str, Any]:
        registry = (executor or get_executor()).registry
        return {
            "functions": [
                {
                    "name": fn.name,
                    "description": fn.description,
                    "events": fn.events,
                    "schedules": [s["cron"] for s in fn.schedules],
                }
                for fn in registry.get_all()
            ]
        }

    @app.post("/functions/v1/{name}")
    async def invoke_function(
        name: str,
        request: Request,
        _: Optional[str] = Depends(verify_api_key),
    ) -> JSONResponse:
        body = await _read_body(request)
        response = await run_in_threadpool(
            (executor or get_executor()).invoke, name, body, triggered_by="http",
        )
        return JSONResponse(status_code=response.status_code, content=response.body)

    return app


def run(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> None:
    """Serve the app with uvicorn."""
    import uvicorn

    config = get_config()
    host = host or config.server.host
    port = port or config.server.port
    logger.info(f"Serving TaskOps functions on http://{host}:{port}")
    if reload:
        uvicorn.run("taskops.server:create_app", factory=True, host=host, port=port, reload=True)
    else:
        uvicorn.run(create_app(), host=host, port=port)
