"""Worker callback routes.

Out-of-process workers report job progress here instead of writing the
record store directly. Every call is idempotent: repeating a start, or the
same terminal report, returns the current record unchanged.
"""

from fastapi import APIRouter, Query
from pydantic import ValidationError as PydanticValidationError

from designcoach.dependencies import Orchestrator, WorkerToken
from designcoach.errors.exceptions import ValidationError
from designcoach.models.enums import JobKind
from designcoach.models.evaluation import GradeResultPayload, JobFailurePayload, SimulationResultPayload

router = APIRouter(prefix="/internal/jobs", tags=["Internal"], dependencies=[WorkerToken])


@router.post("/{kind}/{job_id}/start")
async def start_job(
    kind: JobKind,
    job_id: str,
    orchestrator: Orchestrator,
    attempt: int = Query(1, ge=1),
) -> dict:
    record = await orchestrator.mark_running(kind, job_id, attempt=attempt)
    return record.model_dump(mode="json")


@router.post("/{kind}/{job_id}/complete")
async def complete_job(
    kind: JobKind,
    job_id: str,
    body: dict,
    orchestrator: Orchestrator,
    attempt: int = Query(1, ge=1),
) -> dict:
    """Store a worker's result. The body shape depends on ``kind``."""
    payload_model = GradeResultPayload if kind == JobKind.GRADE else SimulationResultPayload
    try:
        result = payload_model.model_validate(body)
    except PydanticValidationError as exc:
        details = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]
        raise ValidationError("Invalid result payload", details) from exc
    record = await orchestrator.complete(kind, job_id, result, attempt=attempt)
    return record.model_dump(mode="json")


@router.post("/{kind}/{job_id}/fail")
async def fail_job(
    kind: JobKind,
    job_id: str,
    body: JobFailurePayload,
    orchestrator: Orchestrator,
    attempt: int = Query(1, ge=1),
) -> dict:
    record = await orchestrator.fail(kind, job_id, body.reason, attempt=attempt)
    return record.model_dump(mode="json")
