"""Best-effort telemetry sink.

Request traces, audit entries and job state events are written on background
tasks. Callers never wait on them and never see their failures: a failed
write is logged once and kept in a bounded in-memory error channel.
"""

import asyncio
import logging
import random
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from designcoach.models.telemetry import AuditRecord, JobEventRecord, RequestTelemetryRecord
from designcoach.repositories.telemetry_repo import (
    AuditLogRepository,
    JobTelemetryRepository,
    RequestTelemetryRepository,
)
from designcoach.services.id_generator import AUDIT_LOG, JOB_TELEMETRY, REQUEST_TELEMETRY, generate_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryFailure:
    kind: str
    message: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TelemetrySink:
    """Fire-and-forget writer for request, audit and job telemetry."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sample_rate: float = 1.0,
        error_buffer_size: int = 100,
        random_fn: Callable[[], float] = random.random,
    ):
        self._session_factory = session_factory
        self.sample_rate = max(0.0, min(1.0, sample_rate))
        self._random = random_fn
        self._pending: set[asyncio.Task] = set()
        self.errors: deque[TelemetryFailure] = deque(maxlen=error_buffer_size)

    # --- public API (never raises) ---

    def record_request(self, record: RequestTelemetryRecord) -> None:
        if not self.should_sample_request():
            return
        self._dispatch("request", lambda: self._write_request(record))

    def record_audit(self, record: AuditRecord) -> None:
        self._dispatch("audit", lambda: self._write_audit(record))

    def record_job_event(self, record: JobEventRecord) -> None:
        self._dispatch("job", lambda: self._write_job_event(record))

    def should_sample_request(self) -> bool:
        if self.sample_rate >= 1:
            return True
        if self.sample_rate <= 0:
            return False
        return self._random() < self.sample_rate

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every write dispatched so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Drain in-flight writes on shutdown, abandoning them after ``timeout``."""
        if not self._pending:
            return
        try:
            await asyncio.wait_for(self.flush(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Abandoning %d telemetry writes at shutdown", len(self._pending))
            for task in list(self._pending):
                task.cancel()

    # --- dispatch ---

    def _dispatch(self, kind: str, write: Callable[[], Awaitable[None]]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._guarded(kind, write))
        except Exception as exc:
            self._fail(kind, exc)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guarded(self, kind: str, write: Callable[[], Awaitable[None]]) -> None:
        try:
            await write()
        except Exception as exc:
            self._fail(kind, exc)

    def _fail(self, kind: str, exc: BaseException) -> None:
        message = str(exc) or exc.__class__.__name__
        self.errors.append(TelemetryFailure(kind=kind, message=message))
        logger.warning("Failed to persist %s telemetry: %s", kind, message)

    # --- writers ---

    async def _write_request(self, record: RequestTelemetryRecord) -> None:
        async with self._session_factory() as session:
            await RequestTelemetryRepository(session).create(
                telemetry_id=generate_id(REQUEST_TELEMETRY),
                request_id=record.request_id,
                method=record.method,
                path=record.path,
                status_code=record.status_code,
                duration_ms=record.duration_ms,
                user_id=record.user_id,
                ip_address=record.ip_address,
                user_agent=record.user_agent,
                metadata_=record.metadata,
            )
            await session.commit()

    async def _write_audit(self, record: AuditRecord) -> None:
        async with self._session_factory() as session:
            await AuditLogRepository(session).create(
                audit_id=generate_id(AUDIT_LOG),
                user_id=record.user_id,
                action=record.action,
                resource_type=record.resource_type,
                resource_id=record.resource_id,
                status_code=record.status_code,
                ip_address=record.ip_address,
                user_agent=record.user_agent,
                metadata_=record.metadata,
            )
            await session.commit()

    async def _write_job_event(self, record: JobEventRecord) -> None:
        async with self._session_factory() as session:
            await JobTelemetryRepository(session).create(
                telemetry_id=generate_id(JOB_TELEMETRY),
                queue_name=record.queue_name,
                job_type=record.job_type,
                job_id=record.job_id,
                state=record.state.value,
                attempt=record.attempt,
                duration_ms=record.duration_ms,
                error_message=record.error_message,
                metadata_=record.metadata,
            )
            await session.commit()
