"""Single-owner access checks.

Every evaluation resource hangs off a project, and every project has exactly
one owning user. The guard resolves that owner and compares it with the
caller. It only reads.
"""

from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from designcoach.db.models.project import ArchitectureVersionRow
from designcoach.errors.exceptions import ForbiddenError, NotFoundError
from designcoach.repositories.evaluation_repo import GradeReportRepository, SimulationRunRepository
from designcoach.repositories.project_repo import ArchitectureVersionRepository, ProjectRepository
from designcoach.repositories.report_export_repo import ReportExportRepository


class ResourceType(StrEnum):
    PROJECT = "project"
    VERSION = "version"
    GRADE_REPORT = "grade_report"
    SIMULATION_RUN = "simulation_run"
    REPORT_EXPORT = "report_export"


_LABELS = {
    ResourceType.PROJECT: "Project",
    ResourceType.VERSION: "Version",
    ResourceType.GRADE_REPORT: "Grade report",
    ResourceType.SIMULATION_RUN: "Simulation run",
    ResourceType.REPORT_EXPORT: "Report export",
}


class OwnershipGuard:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve_owner(self, resource_type: ResourceType, resource_id: str) -> str | None:
        """Return the owning user id, or None when the resource does not exist."""
        if resource_type == ResourceType.PROJECT:
            return await ProjectRepository(self.session).get_owner_id(resource_id)
        if resource_type == ResourceType.VERSION:
            found = await ArchitectureVersionRepository(self.session).get_with_owner(resource_id)
            return found[1] if found else None
        if resource_type == ResourceType.GRADE_REPORT:
            return await GradeReportRepository(self.session).get_owner_id(resource_id)
        if resource_type == ResourceType.SIMULATION_RUN:
            return await SimulationRunRepository(self.session).get_owner_id(resource_id)
        if resource_type == ResourceType.REPORT_EXPORT:
            return await ReportExportRepository(self.session).get_owner_id(resource_id)
        raise ValueError(f"Unsupported resource type: {resource_type}")

    async def ensure_owner(self, user_id: str, resource_type: ResourceType, resource_id: str) -> None:
        """Raise NotFoundError or ForbiddenError unless ``user_id`` owns the resource."""
        owner_id = await self.resolve_owner(resource_type, resource_id)
        check_owner(user_id, owner_id, resource_type, resource_id)

    async def authorize_version(self, user_id: str, version_id: str) -> ArchitectureVersionRow:
        """Resolve version -> project -> owner in one query and return the version."""
        found = await ArchitectureVersionRepository(self.session).get_with_owner(version_id)
        version, owner_id = found if found else (None, None)
        check_owner(user_id, owner_id, ResourceType.VERSION, version_id)
        return version


def check_owner(user_id: str, owner_id: str | None, resource_type: ResourceType, resource_id: str) -> None:
    if owner_id is None:
        raise NotFoundError(_LABELS[resource_type], resource_id)
    if owner_id != user_id:
        raise ForbiddenError(f"You do not have access to this {_LABELS[resource_type].lower()}.")
