"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from designcoach.db.models.project import ArchitectureVersionRow, ProjectRow, UserRow
from designcoach.db.models.grade_report import FeedbackItemRow, GradeReportRow
from designcoach.db.models.simulation_run import SimulationRunEventRow, SimulationRunRow
from designcoach.db.models.report_export import ReportExportRow
from designcoach.db.models.telemetry import AuditLogRow, JobTelemetryRow, RequestTelemetryRow

__all__ = [
    "UserRow",
    "ProjectRow",
    "ArchitectureVersionRow",
    "GradeReportRow",
    "FeedbackItemRow",
    "SimulationRunRow",
    "SimulationRunEventRow",
    "ReportExportRow",
    "RequestTelemetryRow",
    "AuditLogRow",
    "JobTelemetryRow",
]
