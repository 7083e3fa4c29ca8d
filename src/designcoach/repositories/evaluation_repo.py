"""Repositories for evaluation job records (grade reports and simulation runs)."""

from typing import Any

from sqlalchemy import select, update

from designcoach.db.base import utcnow
from designcoach.db.models.grade_report import FeedbackItemRow, GradeReportRow
from designcoach.db.models.project import ProjectRow
from designcoach.db.models.simulation_run import SimulationRunEventRow, SimulationRunRow
from designcoach.repositories.base import BaseRepository


class EvaluationJobRepository(BaseRepository):
    """Shared access for any table keyed by ``job_id`` with a ``status`` column."""

    pk_field = "job_id"

    async def get_owner_id(self, job_id: str) -> str | None:
        stmt = (
            select(ProjectRow.user_id)
            .join(self.model_class, self.model_class.project_id == ProjectRow.project_id)
            .where(self.model_class.job_id == job_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def transition(self, job_id: str, from_statuses: tuple[str, ...], **values: Any) -> bool:
        """Conditionally update a job if it is still in one of ``from_statuses``.

        Returns True when exactly this call moved the row.
        """
        stmt = (
            update(self.model_class)
            .where(
                self.model_class.job_id == job_id,
                self.model_class.status.in_(from_statuses),
            )
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1


class GradeReportRepository(EvaluationJobRepository):
    model_class = GradeReportRow

    async def list_feedback_items(self, job_id: str) -> list[FeedbackItemRow]:
        return await FeedbackItemRepository(self.session).list_by_field(
            "grade_report_id", job_id, order_by="created_at"
        )


class FeedbackItemRepository(BaseRepository):
    model_class = FeedbackItemRow
    pk_field = "feedback_item_id"


class SimulationRunRepository(EvaluationJobRepository):
    model_class = SimulationRunRow

    async def list_events(self, job_id: str) -> list[SimulationRunEventRow]:
        return await SimulationRunEventRepository(self.session).list_by_field(
            "run_id", job_id, order_by="sequence"
        )

    async def next_event_sequence(self, job_id: str) -> int:
        return await SimulationRunEventRepository(self.session).count_by_field("run_id", job_id)


class SimulationRunEventRepository(BaseRepository):
    model_class = SimulationRunEventRow
    pk_field = "event_id"
