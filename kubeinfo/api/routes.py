"""Status API routes: liveness, readiness, and the current topology."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubeinfo.api.schemas import ErrorResponse, HealthResponse, ReadinessResponse, TopologyResponse

router = APIRouter()
probe_router = APIRouter()


@probe_router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    return HealthResponse()


@probe_router.get("/readyz", response_model=ReadinessResponse)
async def readyz(request: Request) -> JSONResponse:
    """200 once the first snapshot has been published, 503 before."""
    ready = bool(request.app.state.environment.is_ready)
    return JSONResponse(
        status_code=200 if ready else 503,
        content=ReadinessResponse(ready=ready).model_dump(),
    )


@probe_router.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/topology", response_model=TopologyResponse)
async def topology(request: Request) -> JSONResponse:
    snapshot = request.app.state.environment.snapshot
    if snapshot is None:
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="NOT_READY",
                detail="Topology has not been resolved yet.",
            ).model_dump(),
        )
    return JSONResponse(
        status_code=200,
        content=TopologyResponse(
            attributes=snapshot.as_attributes(),
            resolved_at=snapshot.resolved_at.isoformat(),
        ).model_dump(),
    )
