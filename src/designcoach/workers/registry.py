"""Worker registry mapping job kinds to worker classes.

Evaluators live outside this package and register themselves on import,
typically from a module passed to ``designcoach-worker --plugin``.
"""

from designcoach.models.enums import JobKind
from designcoach.workers.base import BaseWorker

_registry: dict[JobKind, type[BaseWorker]] = {}


def register_worker(kind: JobKind, worker_class: type[BaseWorker]) -> None:
    """Register a worker class for a job kind."""
    _registry[JobKind(kind)] = worker_class


def get_worker(kind: JobKind) -> BaseWorker | None:
    """Get a worker instance for a job kind."""
    cls = _registry.get(JobKind(kind))
    return cls() if cls else None


def registered_kinds() -> list[JobKind]:
    return list(_registry)


def clear_registry() -> None:
    _registry.clear()
