"""Report export repository."""

from sqlalchemy import select

from designcoach.db.models.project import ProjectRow
from designcoach.db.models.report_export import ReportExportRow
from designcoach.repositories.base import BaseRepository


class ReportExportRepository(BaseRepository):
    model_class = ReportExportRow
    pk_field = "export_id"

    async def get_owner_id(self, export_id: str) -> str | None:
        stmt = (
            select(ProjectRow.user_id)
            .join(ReportExportRow, ReportExportRow.project_id == ProjectRow.project_id)
            .where(ReportExportRow.export_id == export_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_share_token(self, share_token: str) -> ReportExportRow | None:
        """Look up a live (not revoked) export by its share token."""
        stmt = select(ReportExportRow).where(
            ReportExportRow.share_token == share_token,
            ReportExportRow.share_revoked_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
