"""Public, token-authorized access to exported grade reports.

Possession of a share token is the only credential. Malformed, unknown and
revoked tokens all produce the same NotFound so a caller cannot probe which
tokens exist.
"""

import logging
import re

from sqlalchemy.ext.asyncio import AsyncSession

from designcoach.db.models.report_export import ReportExportRow
from designcoach.errors.exceptions import NotFoundError, NotReadyError
from designcoach.models.evaluation import SharedReport, SharedReportExport
from designcoach.repositories.evaluation_repo import GradeReportRepository
from designcoach.repositories.report_export_repo import ReportExportRepository
from designcoach.services.normalizer import as_utc, to_grade_report
from designcoach.services.pdf_renderer import render_report_pdf, to_safe_attachment_filename

logger = logging.getLogger(__name__)

_SHARE_TOKEN = re.compile(r"[A-Za-z0-9_-]{16,128}")


def is_valid_share_token(token: str | None) -> bool:
    return bool(token) and _SHARE_TOKEN.fullmatch(token) is not None


class ShareGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _resolve_export(self, token: str) -> ReportExportRow:
        if not is_valid_share_token(token):
            raise NotFoundError("Shared report")
        export = await ReportExportRepository(self.session).get_by_share_token(token)
        if export is None or export.share_revoked_at is not None:
            raise NotFoundError("Shared report")
        return export

    async def resolve(self, token: str) -> SharedReport:
        """Return export metadata, stored snapshot and the current grade report."""
        export = await self._resolve_export(token)
        repo = GradeReportRepository(self.session)
        row = await repo.get(export.grade_report_id)
        if row is None:
            logger.warning("Export %s points at missing grade report %s", export.export_id, export.grade_report_id)
            raise NotFoundError("Shared report")

        report = to_grade_report(row, await repo.list_feedback_items(row.job_id))
        return SharedReport(
            export=SharedReportExport(
                export_id=export.export_id,
                project_id=export.project_id,
                file_name=export.file_name,
                download_path=f"/shared/reports/{token}/pdf",
                created_at=as_utc(export.created_at),
            ),
            snapshot=export.report_snapshot if isinstance(export.report_snapshot, dict) else {},
            report=report,
        )

    async def render_pdf(self, token: str) -> tuple[bytes, str]:
        """Render the shared report; raises NotReadyError until it is terminal."""
        shared = await self.resolve(token)
        if not shared.report.status.is_terminal:
            raise NotReadyError("Shared report is still being evaluated")
        pdf = render_report_pdf(shared.report, shared.snapshot)
        return pdf, to_safe_attachment_filename(shared.export.file_name)
