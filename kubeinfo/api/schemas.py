"""Response envelopes for the status API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Uniform error envelope."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    ready: bool


class TopologyResponse(BaseModel):
    """The latest topology snapshot as telemetry attributes."""

    attributes: dict[str, str] = Field(default_factory=dict)
    resolved_at: str
