"""Project and architecture version repositories."""

from sqlalchemy import select

from designcoach.db.models.project import ArchitectureVersionRow, ProjectRow
from designcoach.repositories.base import BaseRepository


class ProjectRepository(BaseRepository):
    model_class = ProjectRow
    pk_field = "project_id"

    async def get_owner_id(self, project_id: str) -> str | None:
        stmt = select(ProjectRow.user_id).where(ProjectRow.project_id == project_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class ArchitectureVersionRepository(BaseRepository):
    model_class = ArchitectureVersionRow
    pk_field = "version_id"

    async def get_with_owner(self, version_id: str) -> tuple[ArchitectureVersionRow, str] | None:
        """Return the version together with the user id owning its project."""
        stmt = (
            select(ArchitectureVersionRow, ProjectRow.user_id)
            .join(ProjectRow, ProjectRow.project_id == ArchitectureVersionRow.project_id)
            .where(ArchitectureVersionRow.version_id == version_id)
        )
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], row[1]
