"""String enums for evaluation jobs, results and telemetry."""

from enum import StrEnum


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobKind(StrEnum):
    GRADE = "grade"
    SIMULATE = "simulate"


class ActionPriority(StrEnum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"


class EventSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class BottleneckSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class JobEventState(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureInjectionMode(StrEnum):
    NODE_DOWN = "node-down"
    AZ_DOWN = "az-down"
    DEPENDENCY_LAG = "dependency-lag"
    TRAFFIC_SURGE = "traffic-surge"

    @property
    def targets_component(self) -> bool:
        return self in (FailureInjectionMode.NODE_DOWN, FailureInjectionMode.DEPENDENCY_LAG)
