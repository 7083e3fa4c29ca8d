"""Owner routes: submit grading/simulation jobs and read them back."""

from fastapi import APIRouter, status

from designcoach.dependencies import CurrentUser, Orchestrator
from designcoach.models.enums import JobKind
from designcoach.models.evaluation import FailureInjectionRequest

router = APIRouter(tags=["Evaluations"])


@router.post("/versions/{version_id}/grade", status_code=status.HTTP_202_ACCEPTED)
async def submit_grade(version_id: str, user: CurrentUser, orchestrator: Orchestrator) -> dict:
    """Queue a grading job for an architecture version.

    Always answers 202: the report is pending, or failed if the queue was
    unreachable.
    """
    report = await orchestrator.submit(user["sub"], version_id, JobKind.GRADE)
    return {"report": report.model_dump(mode="json")}


@router.post("/versions/{version_id}/simulate", status_code=status.HTTP_202_ACCEPTED)
async def submit_simulation(version_id: str, user: CurrentUser, orchestrator: Orchestrator) -> dict:
    run = await orchestrator.submit(user["sub"], version_id, JobKind.SIMULATE)
    return {"run": run.model_dump(mode="json")}


@router.get("/grades/{job_id}")
async def get_grade(job_id: str, user: CurrentUser, orchestrator: Orchestrator) -> dict:
    report = await orchestrator.get(user["sub"], job_id, JobKind.GRADE)
    return report.model_dump(mode="json")


@router.get("/runs/{job_id}")
async def get_run(job_id: str, user: CurrentUser, orchestrator: Orchestrator) -> dict:
    run = await orchestrator.get(user["sub"], job_id, JobKind.SIMULATE)
    return run.model_dump(mode="json")


@router.post("/runs/{job_id}/failure-injection", status_code=status.HTTP_202_ACCEPTED)
async def submit_failure_injection(
    job_id: str, body: FailureInjectionRequest, user: CurrentUser, orchestrator: Orchestrator
) -> dict:
    """Queue a failure-injection run against a completed baseline run (409 until it completes)."""
    run = await orchestrator.submit_failure_injection(user["sub"], job_id, body.profile)
    return {"run": run.model_dump(mode="json")}
