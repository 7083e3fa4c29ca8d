"""Grade report tables."""

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from designcoach.db.base import Base, JobLifecycleMixin, TimestampMixin


class GradeReportRow(Base, JobLifecycleMixin):
    __tablename__ = "grade_reports"

    overall_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    category_scores: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
    strengths: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
    risks: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
    deterministic_notes: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
    action_items: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_provider: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ai_model: Mapped[str | None] = mapped_column(String(200), nullable=True)


class FeedbackItemRow(Base, TimestampMixin):
    """Per-item action records written by older grading workers."""

    __tablename__ = "feedback_items"

    feedback_item_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    grade_report_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("grade_reports.job_id"), nullable=False, index=True
    )
    priority: Mapped[str] = mapped_column(String(10), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evidence: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
