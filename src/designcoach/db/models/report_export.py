"""Report export table (share tokens)."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from designcoach.db.base import Base, TimestampMixin


class ReportExportRow(Base, TimestampMixin):
    __tablename__ = "report_exports"

    export_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    project_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("projects.project_id"), nullable=False, index=True
    )
    grade_report_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("grade_reports.job_id"), nullable=False, index=True
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    report_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    share_token: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True, index=True)
    share_revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
