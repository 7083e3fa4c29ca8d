"""Simulation run tables."""

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from designcoach.db.base import Base, JobLifecycleMixin, TimestampMixin


class SimulationRunRow(Base, JobLifecycleMixin):
    __tablename__ = "simulation_runs"

    metrics: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    bottlenecks: Mapped[list | None] = mapped_column(JSON, nullable=True, default=list)
    # Set only on failure-injection runs.
    baseline_run_id: Mapped[str | None] = mapped_column(
        String(128),
        ForeignKey("simulation_runs.job_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    failure_profile: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    blast_radius: Mapped[dict | None] = mapped_column(JSON, nullable=True)


class SimulationRunEventRow(Base, TimestampMixin):
    """Ordered lifecycle timeline entries for a simulation run."""

    __tablename__ = "simulation_run_events"

    event_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    run_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("simulation_runs.job_id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    at_second: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    component_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
