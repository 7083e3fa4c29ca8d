"""Repositories for telemetry writes and reads."""

from designcoach.db.models.telemetry import AuditLogRow, JobTelemetryRow, RequestTelemetryRow
from designcoach.repositories.base import BaseRepository


class RequestTelemetryRepository(BaseRepository):
    model_class = RequestTelemetryRow
    pk_field = "telemetry_id"


class AuditLogRepository(BaseRepository):
    model_class = AuditLogRow
    pk_field = "audit_id"


class JobTelemetryRepository(BaseRepository):
    model_class = JobTelemetryRow
    pk_field = "telemetry_id"

    async def list_for_job(self, job_id: str) -> list[JobTelemetryRow]:
        return await self.list_by_field("job_id", job_id, order_by="created_at")
