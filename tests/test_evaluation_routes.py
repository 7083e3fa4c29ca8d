"""Tests for the owner-facing evaluation routes.

Covers:
- Submitting grade/simulation jobs answers 202 with a pending record
- Queue outages still answer 202, with a failed record
- Failure injection needs a completed baseline run (409) and a valid profile (400)
- 401 without a token, 403 for another user's version, 404 for unknown ids
- Errors use the standard envelope and carry the request id
- Mutating requests leave an audit entry; every request leaves a trace
"""

import pytest
from sqlalchemy import func, select

from designcoach.db.models.grade_report import GradeReportRow
from designcoach.db.models.telemetry import AuditLogRow, RequestTelemetryRow
from designcoach.errors.exceptions import QueueUnavailableError


class DownQueue:
    async def enqueue(self, queue_name, message):
        raise QueueUnavailableError()

    async def dequeue(self, queue_name, timeout=1.0):
        return None

    async def release(self, queue_name, job_id):
        return None

    async def ping(self):
        raise QueueUnavailableError()


@pytest.mark.asyncio
async def test_submit_grade_returns_pending(client, seeded, owner_headers, queue):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=owner_headers)
    assert r.status_code == 202
    report = r.json()["report"]
    assert report["status"] == "pending"
    assert report["kind"] == "grade"
    assert report["version_id"] == seeded["version_id"]
    assert report["overall_score"] is None
    assert queue.depth("grading-runs") == 1


@pytest.mark.asyncio
async def test_submit_simulation_returns_pending_run(client, seeded, owner_headers, queue):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/simulate", headers=owner_headers)
    assert r.status_code == 202
    run = r.json()["run"]
    assert run["status"] == "pending"
    assert run["events"][0]["title"] == "Run queued"
    assert queue.depth("simulation-runs") == 1


@pytest.mark.asyncio
async def test_submit_with_queue_down_returns_failed(app, client, seeded, owner_headers):
    app.state.queue = DownQueue()
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=owner_headers)
    assert r.status_code == 202
    report = r.json()["report"]
    assert report["status"] == "failed"
    assert report["failure_reason"] == "failed to enqueue job"
    assert report["completed_at"] is not None


@pytest.mark.asyncio
async def test_submit_requires_authentication(client, seeded):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers={"X-Request-Id": "req_fixed_1"})
    assert r.status_code == 401
    error = r.json()["error"]
    assert error["code"] == "AUTHENTICATION_ERROR"
    assert error["request_id"] == "req_fixed_1"
    assert "timestamp" in error
    assert r.headers["X-Request-Id"] == "req_fixed_1"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client, seeded, make_token):
    headers = {"Authorization": f"Bearer {make_token('usr_owner', aud='someone-else')}"}
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=headers)
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "invalid_token"


@pytest.mark.asyncio
async def test_refresh_or_subjectless_token_is_rejected(client, seeded, make_token):
    refresh = {"Authorization": f"Bearer {make_token('usr_owner', type='refresh')}"}
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=refresh)
    assert r.json()["error"]["message"] == "not_access_token"

    subjectless = {"Authorization": f"Bearer {make_token('')}"}
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=subjectless)
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "missing_subject"


@pytest.mark.asyncio
async def test_submit_for_other_users_version_is_forbidden(client, seeded, other_headers, db_session, queue):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=other_headers)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"

    count = await db_session.execute(select(func.count()).select_from(GradeReportRow))
    assert count.scalar_one() == 0
    assert queue.depth("grading-runs") == 0


@pytest.mark.asyncio
async def test_submit_for_unknown_version_is_not_found(client, seeded, owner_headers):
    r = await client.post("/api/v1/versions/ver_nope/simulate", headers=owner_headers)
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_get_grade_owner_only(client, seeded, owner_headers, other_headers):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=owner_headers)
    job_id = r.json()["report"]["id"]

    r = await client.get(f"/api/v1/grades/{job_id}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["id"] == job_id
    assert r.json()["status"] == "pending"

    r = await client.get(f"/api/v1/grades/{job_id}", headers=other_headers)
    assert r.status_code == 403

    r = await client.get("/api/v1/grades/grd_missing", headers=owner_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_get_run(client, seeded, owner_headers):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/simulate", headers=owner_headers)
    run_id = r.json()["run"]["id"]

    r = await client.get(f"/api/v1/runs/{run_id}", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["kind"] == "simulate"
    assert r.json()["metrics"] is None


@pytest.mark.asyncio
async def test_security_headers_present(client):
    r = await client.get("/api/v1/health")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "no-referrer"
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_hsts_behind_https_proxy(client):
    r = await client.get("/api/v1/health", headers={"X-Forwarded-Proto": "https"})
    assert r.headers["Strict-Transport-Security"].startswith("max-age=31536000")


@pytest.mark.asyncio
async def test_mutating_request_is_audited(app, client, seeded, owner_headers, session_factory):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=owner_headers)
    assert r.status_code == 202
    await client.get("/api/v1/health/live")
    await app.state.telemetry.flush()

    async with session_factory() as session:
        audits = list((await session.execute(select(AuditLogRow))).scalars().all())
        traces = list((await session.execute(select(RequestTelemetryRow))).scalars().all())

    assert len(audits) == 1
    audit = audits[0]
    assert audit.action == "POST /api/v1/versions/{version_id}/grade"
    assert audit.resource_type == "versions"
    assert audit.resource_id == seeded["version_id"]
    assert audit.user_id == seeded["owner_id"]
    assert audit.status_code == 202

    paths = sorted(trace.path for trace in traces)
    assert paths == ["/api/v1/health/live", "/api/v1/versions/{version_id}/grade"]


@pytest.mark.asyncio
async def test_denied_request_is_still_audited(app, client, seeded, other_headers, session_factory):
    await client.post(f"/api/v1/versions/{seeded['version_id']}/grade", headers=other_headers)
    await app.state.telemetry.flush()

    async with session_factory() as session:
        audits = list((await session.execute(select(AuditLogRow))).scalars().all())
    assert [audit.status_code for audit in audits] == [403]


async def _completed_run(client, seeded, owner_headers, worker_headers) -> str:
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/simulate", headers=owner_headers)
    run_id = r.json()["run"]["id"]
    r = await client.post(
        f"/api/v1/internal/jobs/simulate/{run_id}/complete", json={"bottlenecks": []}, headers=worker_headers
    )
    assert r.status_code == 200
    return run_id


@pytest.mark.asyncio
async def test_failure_injection_returns_pending_run(client, seeded, owner_headers, worker_headers, queue):
    baseline_id = await _completed_run(client, seeded, owner_headers, worker_headers)
    body = {"profile": {"mode": "dependency-lag", "target_component_id": "db", "lag_ms": 800}}

    r = await client.post(f"/api/v1/runs/{baseline_id}/failure-injection", json=body, headers=owner_headers)
    assert r.status_code == 202
    run = r.json()["run"]
    assert run["status"] == "pending"
    assert run["baseline_run_id"] == baseline_id
    assert run["failure_profile"]["lag_ms"] == 800
    assert run["events"][0]["title"] == "Failure injection queued"


@pytest.mark.asyncio
async def test_failure_injection_on_unfinished_baseline_is_conflict(client, seeded, owner_headers):
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/simulate", headers=owner_headers)
    run_id = r.json()["run"]["id"]
    body = {"profile": {"mode": "az-down", "az_name": "az-a"}}

    r = await client.post(f"/api/v1/runs/{run_id}/failure-injection", json=body, headers=owner_headers)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "NOT_READY"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "profile",
    [
        {"mode": "node-down"},
        {"mode": "dependency-lag", "target_component_id": "db"},
        {"mode": "dependency-lag", "target_component_id": "db", "lag_ms": 10},
        {"mode": "traffic-surge", "surge_multiplier": 20},
        {"mode": "az-down", "az_name": "az-z"},
        {"mode": "meteor-strike"},
    ],
)
async def test_failure_injection_rejects_invalid_profile(client, seeded, owner_headers, worker_headers, profile):
    baseline_id = await _completed_run(client, seeded, owner_headers, worker_headers)

    r = await client.post(
        f"/api/v1/runs/{baseline_id}/failure-injection", json={"profile": profile}, headers=owner_headers
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_failure_injection_on_other_users_run_is_forbidden(client, seeded, owner_headers, other_headers, worker_headers):
    baseline_id = await _completed_run(client, seeded, owner_headers, worker_headers)
    body = {"profile": {"mode": "node-down", "target_component_id": "api"}}

    r = await client.post(f"/api/v1/runs/{baseline_id}/failure-injection", json=body, headers=other_headers)
    assert r.status_code == 403
