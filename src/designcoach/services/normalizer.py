"""Turn stored job rows and worker-attached JSON into typed results.

Workers write semi-structured JSON into the record store. Every JSON field
is validated on its own by a named ``coerce_*`` function returning either
``Valid(value)`` or ``Fallback(reason)``; a fallback substitutes that field's
default and never fails the read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from designcoach.db.models.grade_report import FeedbackItemRow, GradeReportRow
from designcoach.db.models.simulation_run import SimulationRunEventRow, SimulationRunRow
from designcoach.models.enums import ActionPriority, EventSeverity, JobStatus
from designcoach.models.evaluation import (
    ActionItem,
    BlastRadiusSummary,
    Bottleneck,
    CategoryScore,
    FailureInjectionProfile,
    GradeReport,
    SimulationMetrics,
    SimulationRun,
    TimelineEvent,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Fallback:
    reason: str


FieldResult = Valid[T] | Fallback


def value_or(result: FieldResult, default: T) -> T:
    """Unwrap a field result, substituting ``default`` on fallback."""
    if isinstance(result, Valid):
        return result.value
    return default


_CATEGORY_SCORES = TypeAdapter(list[CategoryScore])
_ACTION_ITEMS = TypeAdapter(list[ActionItem])
_BOTTLENECKS = TypeAdapter(list[Bottleneck])
_FAILURE_PROFILE = TypeAdapter(FailureInjectionProfile)
_BLAST_RADIUS = TypeAdapter(BlastRadiusSummary)


def _validate(adapter: TypeAdapter, raw: Any, field: str) -> FieldResult:
    try:
        return Valid(adapter.validate_python(raw))
    except PydanticValidationError as exc:
        logger.debug("Stored %s failed validation (%d errors)", field, exc.error_count())
        return Fallback(f"{field}: {exc.error_count()} validation error(s)")


def coerce_status(raw: Any) -> JobStatus:
    """Map a stored status to the closed enum; unknown values read as failed.

    This only affects what callers see. Nothing is written back.
    """
    try:
        return JobStatus(raw)
    except ValueError:
        logger.warning("Unknown stored job status %r, reporting as failed", raw)
        return JobStatus.FAILED


def coerce_string_list(raw: Any) -> FieldResult:
    """Keep the string entries of a list; anything that is not a list falls back."""
    if not isinstance(raw, list):
        logger.debug("Stored string list has type %s, using empty list", type(raw).__name__)
        return Fallback("expected a list of strings")
    return Valid([entry for entry in raw if isinstance(entry, str)])


def coerce_category_scores(raw: Any) -> FieldResult:
    return _validate(_CATEGORY_SCORES, raw, "category_scores")


def coerce_priority(raw: Any) -> ActionPriority:
    try:
        return ActionPriority(raw)
    except ValueError:
        return ActionPriority.P2


def coerce_legacy_action_items(items: list[FeedbackItemRow]) -> FieldResult:
    """Build action items from per-item feedback records written by older workers."""
    if not items:
        logger.debug("No legacy feedback items to fall back on")
        return Fallback("no legacy feedback items")
    return Valid([
        ActionItem(
            priority=coerce_priority(item.priority),
            title=item.title,
            description=item.description,
            evidence=value_or(coerce_string_list(item.evidence), []),
        )
        for item in items
    ])


def coerce_action_items(raw: Any, legacy_items: list[FeedbackItemRow] | None = None) -> FieldResult:
    """Validate stored action items, falling back to legacy feedback records."""
    parsed = _validate(_ACTION_ITEMS, raw, "action_items")
    if isinstance(parsed, Valid):
        return parsed
    logger.debug("Falling back to legacy feedback items for action_items")
    return coerce_legacy_action_items(legacy_items or [])


def coerce_metrics(raw: Any) -> FieldResult:
    if raw is None:
        logger.debug("Simulation metrics not reported")
        return Fallback("metrics not reported")
    return _validate(TypeAdapter(SimulationMetrics), raw, "metrics")


def coerce_bottlenecks(raw: Any) -> FieldResult:
    return _validate(_BOTTLENECKS, raw, "bottlenecks")


def coerce_failure_profile(raw: Any) -> FieldResult:
    if raw is None:
        return Fallback("not a failure-injection run")
    return _validate(_FAILURE_PROFILE, raw, "failure_profile")


def coerce_blast_radius(raw: Any) -> FieldResult:
    if raw is None:
        logger.debug("Blast radius not reported")
        return Fallback("blast radius not reported")
    return _validate(_BLAST_RADIUS, raw, "blast_radius")


def coerce_event_severity(raw: Any) -> EventSeverity:
    try:
        return EventSeverity(raw)
    except ValueError:
        return EventSeverity.INFO


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _lifecycle_fields(row: GradeReportRow | SimulationRunRow, status: JobStatus) -> dict:
    return {
        "id": row.job_id,
        "project_id": row.project_id,
        "version_id": row.version_id,
        "status": status,
        "failure_reason": row.failure_reason if status == JobStatus.FAILED else None,
        "queued_at": as_utc(row.queued_at),
        "started_at": as_utc(row.started_at),
        "completed_at": as_utc(row.completed_at),
        "created_at": as_utc(row.created_at),
        "updated_at": as_utc(row.updated_at),
    }


def to_grade_report(
    row: GradeReportRow,
    feedback_items: list[FeedbackItemRow] | None = None,
) -> GradeReport:
    status = coerce_status(row.status)
    fields = _lifecycle_fields(row, status)
    if status != JobStatus.COMPLETED:
        return GradeReport(**fields)

    return GradeReport(
        **fields,
        overall_score=row.overall_score,
        summary=row.summary,
        strengths=value_or(coerce_string_list(row.strengths), []),
        risks=value_or(coerce_string_list(row.risks), []),
        deterministic_notes=value_or(coerce_string_list(row.deterministic_notes), []),
        category_scores=value_or(coerce_category_scores(row.category_scores), []),
        action_items=value_or(coerce_action_items(row.action_items, feedback_items), []),
        ai_provider=row.ai_provider,
        ai_model=row.ai_model,
    )


def to_timeline(events: list[SimulationRunEventRow]) -> list[TimelineEvent]:
    return [
        TimelineEvent(
            sequence=event.sequence if event.sequence is not None else index,
            at_second=max(0, event.at_second or 0),
            severity=coerce_event_severity(event.severity),
            title=event.title,
            description=event.description,
            component_id=event.component_id,
        )
        for index, event in enumerate(events)
    ]


def to_simulation_run(
    row: SimulationRunRow,
    events: list[SimulationRunEventRow] | None = None,
) -> SimulationRun:
    status = coerce_status(row.status)
    fields = _lifecycle_fields(row, status)
    timeline = to_timeline(events or [])
    fields["baseline_run_id"] = row.baseline_run_id
    fields["failure_profile"] = value_or(coerce_failure_profile(row.failure_profile), None)
    if status != JobStatus.COMPLETED:
        return SimulationRun(**fields, events=timeline)

    return SimulationRun(
        **fields,
        metrics=value_or(coerce_metrics(row.metrics), None),
        bottlenecks=value_or(coerce_bottlenecks(row.bottlenecks), []),
        blast_radius=value_or(coerce_blast_radius(row.blast_radius), None),
        events=timeline,
    )
