"""FastAPI application factory for the kubeinfo status API.

Usage::

    from kubeinfo.api.app import create_app

    app = create_app(environment=environment, config=config)

The factory is used by both the production bootstrap (``kubeinfo.app``) and
unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kubeinfo.api.routes import probe_router, router
from kubeinfo.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"


def create_app(environment: Any, config: Any = None) -> FastAPI:
    """Create and configure the kubeinfo FastAPI application.

    Args:
        environment: KubeEnvironment (or anything exposing ``snapshot`` and
                     ``is_ready``).
        config:      KubeInfoConfig, kept on ``app.state`` for handlers.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kubeinfo import __version__

    app = FastAPI(
        title="kubeinfo",
        summary="Kubernetes workload topology for the current process",
        version=__version__,
        docs_url=f"{_API_PREFIX}/docs",
        redoc_url=None,
        openapi_url=f"{_API_PREFIX}/openapi.json",
    )

    app.state.environment = environment
    app.state.config = config

    app.include_router(probe_router)
    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app
