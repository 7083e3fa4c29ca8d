"""Tests for the worker callback routes."""

import pytest

from designcoach.config import settings

GRADE_BODY = {
    "overall_score": 64,
    "summary": "Needs a cache tier",
    "strengths": ["Clear service boundaries"],
    "risks": ["No cache", 42],
    "category_scores": [{"category": "scalability", "score": 55}, {"category": "reliability", "score": 70}],
    "action_items": [{"priority": "P0", "title": "Add Redis", "description": "Cache catalog reads"}],
}


async def _submit(client, seeded, owner_headers, kind="grade") -> str:
    r = await client.post(f"/api/v1/versions/{seeded['version_id']}/{kind}", headers=owner_headers)
    body = r.json()
    return (body.get("report") or body.get("run"))["id"]


@pytest.mark.asyncio
async def test_callbacks_require_worker_token(client, seeded, owner_headers):
    job_id = await _submit(client, seeded, owner_headers)

    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start")
    assert r.status_code == 401

    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start", headers={"X-Worker-Token": "nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_callbacks_disabled_without_configured_token(client, seeded, owner_headers, monkeypatch):
    job_id = await _submit(client, seeded, owner_headers)
    monkeypatch.setattr(settings, "worker_callback_token", "")

    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start", headers={"X-Worker-Token": ""})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_grade_lifecycle_over_http(client, seeded, owner_headers, worker_headers):
    job_id = await _submit(client, seeded, owner_headers)

    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start", headers=worker_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "running"

    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/complete", headers=worker_headers, json=GRADE_BODY)
    assert r.status_code == 200
    report = r.json()
    assert report["status"] == "completed"
    assert report["overall_score"] == 64
    assert report["risks"] == ["No cache"]
    assert [c["category"] for c in report["category_scores"]] == ["scalability", "reliability"]

    r = await client.get(f"/api/v1/grades/{job_id}", headers=owner_headers)
    assert r.json()["action_items"][0]["priority"] == "P0"


@pytest.mark.asyncio
async def test_repeated_completion_returns_same_record(client, seeded, owner_headers, worker_headers):
    job_id = await _submit(client, seeded, owner_headers)
    await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start", headers=worker_headers)
    first = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/complete", headers=worker_headers, json=GRADE_BODY)
    again = await client.post(
        f"/api/v1/internal/jobs/grade/{job_id}/complete",
        headers=worker_headers,
        json={**GRADE_BODY, "overall_score": 99},
    )
    assert again.status_code == 200
    assert again.json() == first.json()


@pytest.mark.asyncio
async def test_failure_after_completion_is_conflict(client, seeded, owner_headers, worker_headers):
    job_id = await _submit(client, seeded, owner_headers)
    await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start", headers=worker_headers)
    await client.post(f"/api/v1/internal/jobs/grade/{job_id}/complete", headers=worker_headers, json=GRADE_BODY)

    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/fail", headers=worker_headers, json={"reason": "late"})
    assert r.status_code == 409
    error = r.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"] == {"current": "completed", "requested": "failed"}


@pytest.mark.asyncio
async def test_simulation_failure_records_reason(client, seeded, owner_headers, worker_headers):
    run_id = await _submit(client, seeded, owner_headers, kind="simulate")
    await client.post(f"/api/v1/internal/jobs/simulate/{run_id}/start", headers=worker_headers)

    r = await client.post(
        f"/api/v1/internal/jobs/simulate/{run_id}/fail",
        headers=worker_headers,
        json={"reason": "topology has a cycle"},
    )
    assert r.status_code == 200
    run = r.json()
    assert run["status"] == "failed"
    assert run["failure_reason"] == "topology has a cycle"
    assert run["events"][-1]["severity"] == "critical"


@pytest.mark.asyncio
async def test_out_of_range_score_is_rejected(client, seeded, owner_headers, worker_headers):
    job_id = await _submit(client, seeded, owner_headers)
    await client.post(f"/api/v1/internal/jobs/grade/{job_id}/start", headers=worker_headers)

    r = await client.post(
        f"/api/v1/internal/jobs/grade/{job_id}/complete",
        headers=worker_headers,
        json={**GRADE_BODY, "overall_score": 140},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    r = await client.get(f"/api/v1/grades/{job_id}", headers=owner_headers)
    assert r.json()["status"] == "running"


@pytest.mark.asyncio
async def test_empty_failure_reason_is_rejected(client, seeded, owner_headers, worker_headers):
    job_id = await _submit(client, seeded, owner_headers)
    r = await client.post(f"/api/v1/internal/jobs/grade/{job_id}/fail", headers=worker_headers, json={"reason": ""})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_unknown_kind_or_job(client, worker_headers):
    r = await client.post("/api/v1/internal/jobs/audit/grd_x/start", headers=worker_headers)
    assert r.status_code == 400

    r = await client.post("/api/v1/internal/jobs/grade/grd_missing/start", headers=worker_headers)
    assert r.status_code == 404
