"""Tests for the single-owner access guard."""

import pytest

from designcoach.db.models.grade_report import GradeReportRow
from designcoach.db.models.report_export import ReportExportRow
from designcoach.errors.exceptions import ForbiddenError, NotFoundError
from designcoach.services.ownership import OwnershipGuard, ResourceType, check_owner


@pytest.mark.asyncio
async def test_authorize_version_returns_version_for_owner(db_session, seeded):
    version = await OwnershipGuard(db_session).authorize_version(seeded["owner_id"], seeded["version_id"])
    assert version.version_id == seeded["version_id"]
    assert version.project_id == seeded["project_id"]


@pytest.mark.asyncio
async def test_authorize_version_forbidden_for_other_user(db_session, seeded):
    with pytest.raises(ForbiddenError):
        await OwnershipGuard(db_session).authorize_version(seeded["other_id"], seeded["version_id"])


@pytest.mark.asyncio
async def test_authorize_version_unknown_is_not_found(db_session, seeded):
    with pytest.raises(NotFoundError):
        await OwnershipGuard(db_session).authorize_version(seeded["owner_id"], "ver_missing")


@pytest.mark.asyncio
async def test_resolve_owner_for_each_resource_type(db_session, seeded):
    db_session.add(
        GradeReportRow(
            job_id="grd_owned",
            project_id=seeded["project_id"],
            version_id=seeded["version_id"],
            status="pending",
        )
    )
    await db_session.commit()

    guard = OwnershipGuard(db_session)
    assert await guard.resolve_owner(ResourceType.PROJECT, seeded["project_id"]) == seeded["owner_id"]
    assert await guard.resolve_owner(ResourceType.VERSION, seeded["version_id"]) == seeded["owner_id"]
    assert await guard.resolve_owner(ResourceType.GRADE_REPORT, "grd_owned") == seeded["owner_id"]
    assert await guard.resolve_owner(ResourceType.SIMULATION_RUN, "run_missing") is None


@pytest.mark.asyncio
async def test_resolve_owner_for_report_export(db_session, seeded):
    db_session.add(
        GradeReportRow(
            job_id="grd_exported",
            project_id=seeded["project_id"],
            version_id=seeded["version_id"],
            status="completed",
        )
    )
    await db_session.flush()
    db_session.add(
        ReportExportRow(
            export_id="exp_owned",
            project_id=seeded["project_id"],
            grade_report_id="grd_exported",
            file_name="checkout-v1.pdf",
        )
    )
    await db_session.commit()

    guard = OwnershipGuard(db_session)
    assert await guard.resolve_owner(ResourceType.REPORT_EXPORT, "exp_owned") == seeded["owner_id"]
    assert await guard.resolve_owner(ResourceType.REPORT_EXPORT, "exp_missing") is None
    with pytest.raises(ForbiddenError, match="report export"):
        await guard.ensure_owner(seeded["other_id"], ResourceType.REPORT_EXPORT, "exp_owned")


@pytest.mark.asyncio
async def test_ensure_owner_on_report(db_session, seeded):
    db_session.add(
        GradeReportRow(
            job_id="grd_guarded",
            project_id=seeded["project_id"],
            version_id=seeded["version_id"],
            status="pending",
        )
    )
    await db_session.commit()

    guard = OwnershipGuard(db_session)
    await guard.ensure_owner(seeded["owner_id"], ResourceType.GRADE_REPORT, "grd_guarded")
    with pytest.raises(ForbiddenError):
        await guard.ensure_owner(seeded["other_id"], ResourceType.GRADE_REPORT, "grd_guarded")


def test_check_owner_prefers_not_found_when_missing():
    with pytest.raises(NotFoundError):
        check_owner("usr_a", None, ResourceType.PROJECT, "prj_x")
    with pytest.raises(ForbiddenError):
        check_owner("usr_a", "usr_b", ResourceType.PROJECT, "prj_x")
    check_owner("usr_a", "usr_a", ResourceType.PROJECT, "prj_x")
