"""Structured logging for the API and the evaluation workers.

Both processes log through stdlib ``logging``; structlog renders every
record (ours and third-party) and merges whatever request or job context
is bound in the current task.
"""

import logging
import sys

import structlog

# Chatty libraries that only matter when debugging them directly.
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio")


def _add_service(service: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def configure_logging(
    log_level: str = "info",
    json_output: bool = False,
    service: str = "designcoach-api",
) -> None:
    """Configure structlog over the root logger.

    Args:
        log_level: Logging level string (debug/info/warning/error).
        json_output: JSON lines for production; colored console otherwise.
        service: Stamped on every record so API and worker logs can share a sink.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service(service),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(request_id: str, user_id: str | None = None) -> None:
    ctx = {"request_id": request_id}
    if user_id:
        ctx["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**ctx)


def bind_job_context(job_id: str, kind: str, attempt: int = 1) -> None:
    """Bind the job being processed so worker log lines carry it."""
    structlog.contextvars.bind_contextvars(job_id=job_id, job_kind=kind, attempt=attempt)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()
