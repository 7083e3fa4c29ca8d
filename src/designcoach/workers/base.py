"""Base worker interface for evaluation jobs."""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from designcoach.db.models.project import ArchitectureVersionRow
from designcoach.errors.exceptions import InvalidTransitionError
from designcoach.models.enums import JobKind
from designcoach.models.evaluation import GradeResultPayload, SimulationResultPayload
from designcoach.repositories.project_repo import ArchitectureVersionRepository
from designcoach.services.orchestrator import EvaluationOrchestrator
from designcoach.workers.queue import QueueMessage

logger = logging.getLogger(__name__)

MAX_FAILURE_REASON_LENGTH = 2000


class BaseWorker(ABC):
    """Abstract base class for evaluation workers.

    Subclasses supply the evaluator; the base class drives the job through
    the orchestrator so every status change goes through the same guarded
    transitions the HTTP callbacks use.
    """

    kind: JobKind

    @abstractmethod
    async def evaluate(
        self, version: ArchitectureVersionRow, session: AsyncSession
    ) -> GradeResultPayload | SimulationResultPayload:
        """Evaluate one architecture version and return the result payload."""
        ...

    async def execute(self, message: QueueMessage, orchestrator: EvaluationOrchestrator, attempt: int = 1) -> None:
        """Run the full job lifecycle: running -> evaluate -> completed/failed."""
        try:
            await orchestrator.mark_running(self.kind, message.job_id, attempt=attempt)
        except InvalidTransitionError as exc:
            # Redelivery of a job that already finished.
            logger.info("Skipping job %s: %s", message.job_id, exc.message)
            return

        version = await ArchitectureVersionRepository(orchestrator.session).get(message.version_id)
        if version is None:
            await orchestrator.fail(self.kind, message.job_id, "architecture version no longer exists", attempt=attempt)
            return

        try:
            result = await self.evaluate(version, orchestrator.session)
        except Exception as exc:
            logger.exception("Job %s failed (kind=%s)", message.job_id, self.kind.value)
            reason = f"{exc.__class__.__name__}: {exc}"[:MAX_FAILURE_REASON_LENGTH]
            await orchestrator.session.rollback()
            await orchestrator.fail(self.kind, message.job_id, reason, attempt=attempt)
            return

        await orchestrator.complete(self.kind, message.job_id, result, attempt=attempt)
        logger.info("Job %s completed (kind=%s)", message.job_id, self.kind.value)
