"""Telemetry record shapes accepted by the telemetry sink."""

from typing import Any

from pydantic import BaseModel, Field

from designcoach.models.enums import JobEventState


class RequestTelemetryRecord(BaseModel):
    request_id: str
    method: str
    path: str
    status_code: int
    duration_ms: int = Field(..., ge=0)
    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditRecord(BaseModel):
    user_id: str | None = None
    action: str
    resource_type: str
    resource_id: str | None = None
    status_code: int
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class JobEventRecord(BaseModel):
    queue_name: str
    job_type: str
    job_id: str
    state: JobEventState
    attempt: int = 0
    duration_ms: int | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
