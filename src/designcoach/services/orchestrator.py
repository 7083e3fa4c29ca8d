"""Evaluation job lifecycle: submission, enqueue, worker ingestion.

Status only moves forward::

    pending -> running -> completed
    pending -> running -> failed
    pending -> failed            (enqueue failure, or worker gave up before starting)

Every change is a compare-and-set on the current status, so two writers
racing on one job cannot move it backwards, and a worker repeating a terminal
report it already made is a no-op.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from designcoach.config import settings
from designcoach.db.base import utcnow
from designcoach.db.models.simulation_run import SimulationRunEventRow
from designcoach.errors.exceptions import InvalidTransitionError, NotFoundError, NotReadyError, ValidationError
from designcoach.models.enums import EventSeverity, JobEventState, JobKind, JobStatus
from designcoach.models.evaluation import (
    FailureInjectionProfile,
    GradeReport,
    GradeResultPayload,
    SimulationResultPayload,
    SimulationRun,
)
from designcoach.models.telemetry import JobEventRecord
from designcoach.repositories.evaluation_repo import (
    EvaluationJobRepository,
    GradeReportRepository,
    SimulationRunRepository,
)
from designcoach.repositories.project_repo import ArchitectureVersionRepository
from designcoach.services.id_generator import GRADE_REPORT, SIMULATION_EVENT, SIMULATION_RUN, generate_id
from designcoach.services.normalizer import as_utc, coerce_status, to_grade_report, to_simulation_run
from designcoach.services.ownership import OwnershipGuard, ResourceType, check_owner
from designcoach.telemetry.sink import TelemetrySink
from designcoach.workers.queue import EvaluationQueue, QueueMessage

logger = logging.getLogger(__name__)

ENQUEUE_FAILURE_REASON = "failed to enqueue job"

EVENT_TITLE_MAX = 200
EVENT_COMPONENT_ID_MAX = 200
EVENT_DESCRIPTION_MAX = 2000

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class KindSpec:
    kind: JobKind
    queue_name: str
    job_type: str
    id_prefix: str
    resource_type: ResourceType


def kind_specs() -> dict[JobKind, KindSpec]:
    return {
        JobKind.GRADE: KindSpec(
            kind=JobKind.GRADE,
            queue_name=settings.grading_queue_name,
            job_type="grade-version",
            id_prefix=GRADE_REPORT,
            resource_type=ResourceType.GRADE_REPORT,
        ),
        JobKind.SIMULATE: KindSpec(
            kind=JobKind.SIMULATE,
            queue_name=settings.simulation_queue_name,
            job_type="simulate-version",
            id_prefix=SIMULATION_RUN,
            resource_type=ResourceType.SIMULATION_RUN,
        ),
    }


EvaluationRecord = GradeReport | SimulationRun


class EvaluationOrchestrator:
    """Drives one request's worth of job lifecycle work on a DB session."""

    def __init__(self, session: AsyncSession, queue: EvaluationQueue, telemetry: TelemetrySink):
        self.session = session
        self.queue = queue
        self.telemetry = telemetry
        self.specs = kind_specs()

    def _repo(self, kind: JobKind) -> EvaluationJobRepository:
        if kind == JobKind.GRADE:
            return GradeReportRepository(self.session)
        return SimulationRunRepository(self.session)

    # --- caller-facing operations ---

    async def submit(self, user_id: str, version_id: str, kind: JobKind) -> EvaluationRecord:
        """Create a pending job for ``version_id`` and hand it to the queue.

        A queue outage never escapes: the same record is moved to failed and
        returned, so the caller always receives a pending or failed job.
        """
        spec = self.specs[kind]
        version = await OwnershipGuard(self.session).authorize_version(user_id, version_id)

        job_id = generate_id(spec.id_prefix)
        await self._repo(kind).create(
            job_id=job_id,
            project_id=version.project_id,
            version_id=version.version_id,
            status=JobStatus.PENDING.value,
            queued_at=utcnow(),
        )
        if kind == JobKind.SIMULATE:
            await self._add_event(
                job_id,
                EventSeverity.INFO,
                "Run queued",
                "Simulation run is waiting for worker capacity.",
            )
        await self.session.commit()

        await self._enqueue(
            spec, job_id, version.version_id,
            queue_failure="The run could not be sent to the simulation queue.",
        )
        return await self.load(kind, job_id)

    async def submit_failure_injection(
        self, user_id: str, baseline_run_id: str, profile: FailureInjectionProfile
    ) -> SimulationRun:
        """Queue a simulation that replays ``profile`` against a completed baseline run.

        The new run shares the baseline's project and version. Queue outages
        are handled as in :meth:`submit`.
        """
        spec = self.specs[JobKind.SIMULATE]
        repo = SimulationRunRepository(self.session)
        owner_id = await repo.get_owner_id(baseline_run_id)
        check_owner(user_id, owner_id, ResourceType.SIMULATION_RUN, baseline_run_id)

        baseline = await repo.get(baseline_run_id, fresh=True)
        if coerce_status(baseline.status) != JobStatus.COMPLETED:
            raise NotReadyError("Baseline run must be completed before failure injection")

        target = profile.target_component_id
        if profile.mode.targets_component:
            version = await ArchitectureVersionRepository(self.session).get(baseline.version_id)
            component_ids = {
                component.get("id")
                for component in (version.components if version is not None else None) or []
                if isinstance(component, dict)
            }
            if target not in component_ids:
                raise ValidationError("target_component_id was not found in baseline architecture")

        job_id = generate_id(spec.id_prefix)
        await repo.create(
            job_id=job_id,
            project_id=baseline.project_id,
            version_id=baseline.version_id,
            status=JobStatus.PENDING.value,
            queued_at=utcnow(),
            baseline_run_id=baseline.job_id,
            failure_profile=profile.model_dump(mode="json", exclude_none=True),
        )
        await self._add_event(
            job_id,
            EventSeverity.INFO,
            "Failure injection queued",
            f"Queued {profile.mode.value} against baseline run {baseline.job_id}.",
            component_id=target,
        )
        await self.session.commit()

        await self._enqueue(
            spec, job_id, baseline.version_id,
            queue_failure="The failure injection run could not be sent to the simulation queue.",
            component_id=target,
        )
        return await self.load(JobKind.SIMULATE, job_id)

    async def get(self, user_id: str, job_id: str, kind: JobKind) -> EvaluationRecord:
        spec = self.specs[kind]
        owner_id = await self._repo(kind).get_owner_id(job_id)
        check_owner(user_id, owner_id, spec.resource_type, job_id)
        return await self.load(kind, job_id)

    async def load(self, kind: JobKind, job_id: str) -> EvaluationRecord:
        """Read and normalize a job without any access check."""
        repo = self._repo(kind)
        row = await repo.get(job_id, fresh=True)
        if row is None:
            raise NotFoundError("Evaluation job", job_id)
        if kind == JobKind.GRADE:
            return to_grade_report(row, await repo.list_feedback_items(job_id))
        return to_simulation_run(row, await repo.list_events(job_id))

    # --- worker-side ingestion ---

    async def mark_running(self, kind: JobKind, job_id: str, attempt: int = 1) -> EvaluationRecord:
        spec = self.specs[kind]
        moved = await self._advance(kind, job_id, JobStatus.RUNNING, started_at=utcnow())
        if moved:
            await self.session.commit()
            self._emit(spec, job_id, JobEventState.RUNNING, attempt=attempt)
        return await self.load(kind, job_id)

    async def complete(
        self,
        kind: JobKind,
        job_id: str,
        result: GradeResultPayload | SimulationResultPayload,
        attempt: int = 1,
    ) -> EvaluationRecord:
        """Record a worker's result. Repeating an earlier completion is a no-op."""
        spec = self.specs[kind]
        current = await self._current_status(kind, job_id)
        if current == JobStatus.PENDING:
            # Completion reported without a start: pass through running first.
            await self._advance(kind, job_id, JobStatus.RUNNING, started_at=utcnow())

        moved = await self._advance(
            kind, job_id, JobStatus.COMPLETED, completed_at=utcnow(), failure_reason=None,
            **self._result_values(result),
        )
        if moved:
            if isinstance(result, SimulationResultPayload):
                await self._add_worker_timeline(job_id, result.timeline)
            await self.session.commit()
            self._emit(spec, job_id, JobEventState.COMPLETED, attempt=attempt,
                       duration_ms=await self._duration_ms(kind, job_id))
            await self._release(spec, job_id)
        return await self.load(kind, job_id)

    async def fail(self, kind: JobKind, job_id: str, reason: str, attempt: int = 1) -> EvaluationRecord:
        """Record a worker failure. Repeating an earlier failure is a no-op."""
        spec = self.specs[kind]
        moved = await self._advance(
            kind, job_id, JobStatus.FAILED, completed_at=utcnow(), failure_reason=reason,
        )
        if moved:
            if kind == JobKind.SIMULATE:
                await self._add_event(job_id, EventSeverity.CRITICAL, "Run failed", reason)
            await self.session.commit()
            self._emit(spec, job_id, JobEventState.FAILED, attempt=attempt, error_message=reason,
                       duration_ms=await self._duration_ms(kind, job_id))
            await self._release(spec, job_id)
        return await self.load(kind, job_id)

    # --- internals ---

    async def _current_status(self, kind: JobKind, job_id: str) -> JobStatus:
        row = await self._repo(kind).get(job_id, fresh=True)
        if row is None:
            raise NotFoundError("Evaluation job", job_id)
        return coerce_status(row.status)

    async def _advance(self, kind: JobKind, job_id: str, target: JobStatus, **values) -> bool:
        """Move a job to ``target``; False when it is already there.

        Raises InvalidTransitionError for any move the lifecycle forbids,
        including one that lost a race to a different terminal state.
        """
        current = await self._current_status(kind, job_id)
        if current == target:
            return False
        if not can_transition(current, target):
            raise InvalidTransitionError(job_id, current.value, target.value)

        moved = await self._repo(kind).transition(
            job_id, (current.value,), status=target.value, **values
        )
        if moved:
            return True

        current = await self._current_status(kind, job_id)
        if current == target:
            return False
        raise InvalidTransitionError(job_id, current.value, target.value)

    async def _enqueue(
        self,
        spec: KindSpec,
        job_id: str,
        version_id: str,
        queue_failure: str,
        component_id: str | None = None,
    ) -> None:
        message = QueueMessage(job_id=job_id, version_id=version_id, kind=spec.kind.value)
        try:
            await self.queue.enqueue(spec.queue_name, message)
        except Exception as exc:
            logger.warning("Could not enqueue %s job %s: %s", spec.kind.value, job_id, exc)
            await self._fail_unqueued(spec, job_id, exc, queue_failure, component_id)
        else:
            logger.info("Queued %s job %s (version=%s)", spec.kind.value, job_id, version_id)
            self._emit(spec, job_id, JobEventState.QUEUED)

    async def _fail_unqueued(
        self,
        spec: KindSpec,
        job_id: str,
        exc: Exception,
        queue_failure: str,
        component_id: str | None = None,
    ) -> None:
        await self._repo(spec.kind).transition(
            job_id,
            (JobStatus.PENDING.value,),
            status=JobStatus.FAILED.value,
            failure_reason=ENQUEUE_FAILURE_REASON,
            completed_at=utcnow(),
        )
        if spec.kind == JobKind.SIMULATE:
            await self._add_event(
                job_id,
                EventSeverity.CRITICAL,
                "Queue failure",
                queue_failure,
                component_id=component_id,
            )
        await self.session.commit()
        self._emit(spec, job_id, JobEventState.FAILED, error_message=str(exc) or exc.__class__.__name__)

    def _result_values(self, result: GradeResultPayload | SimulationResultPayload) -> dict:
        if isinstance(result, GradeResultPayload):
            return {
                "overall_score": result.overall_score,
                "summary": result.summary,
                "strengths": result.strengths,
                "risks": result.risks,
                "deterministic_notes": result.deterministic_notes,
                "category_scores": result.category_scores,
                "action_items": result.action_items,
                "ai_provider": result.ai_provider,
                "ai_model": result.ai_model,
            }
        return {
            "metrics": result.metrics,
            "bottlenecks": result.bottlenecks,
            "blast_radius": result.blast_radius,
        }

    async def _add_event(
        self,
        job_id: str,
        severity: EventSeverity,
        title: str,
        description: str,
        at_second: int = 0,
        component_id: str | None = None,
    ) -> None:
        repo = SimulationRunRepository(self.session)
        self.session.add(
            SimulationRunEventRow(
                event_id=generate_id(SIMULATION_EVENT),
                run_id=job_id,
                sequence=await repo.next_event_sequence(job_id),
                at_second=at_second,
                severity=severity.value,
                title=title[:EVENT_TITLE_MAX],
                description=description[:EVENT_DESCRIPTION_MAX],
                component_id=component_id[:EVENT_COMPONENT_ID_MAX] if component_id else None,
            )
        )
        await self.session.flush()

    async def _add_worker_timeline(self, job_id: str, timeline: list[dict]) -> None:
        for entry in timeline:
            try:
                severity = EventSeverity(entry.get("severity", "info"))
            except ValueError:
                severity = EventSeverity.INFO
            at_second = entry.get("at_second", 0)
            await self._add_event(
                job_id,
                severity,
                str(entry.get("title", "")),
                str(entry.get("description", "")),
                at_second=at_second if isinstance(at_second, int) and at_second >= 0 else 0,
                component_id=entry.get("component_id") if isinstance(entry.get("component_id"), str) else None,
            )

    async def _duration_ms(self, kind: JobKind, job_id: str) -> int | None:
        row = await self._repo(kind).get(job_id, fresh=True)
        started, completed = as_utc(row.started_at), as_utc(row.completed_at)
        if started is None or completed is None:
            return None
        return max(0, int((completed - started).total_seconds() * 1000))

    async def _release(self, spec: KindSpec, job_id: str) -> None:
        try:
            await self.queue.release(spec.queue_name, job_id)
        except Exception as exc:
            logger.warning("Could not release dedup marker for job %s: %s", job_id, exc)

    def _emit(
        self,
        spec: KindSpec,
        job_id: str,
        state: JobEventState,
        attempt: int = 0,
        duration_ms: int | None = None,
        error_message: str | None = None,
    ) -> None:
        self.telemetry.record_job_event(
            JobEventRecord(
                queue_name=spec.queue_name,
                job_type=spec.job_type,
                job_id=job_id,
                state=state,
                attempt=attempt,
                duration_ms=duration_ms,
                error_message=error_message,
            )
        )
