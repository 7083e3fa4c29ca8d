"""Consumer loop feeding queued evaluation jobs to registered workers."""

import asyncio
import importlib
import logging
import signal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from designcoach.config import settings
from designcoach.db.engine import create_db_engine, create_session_factory
from designcoach.errors.exceptions import QueueUnavailableError
from designcoach.logging_config import bind_job_context, clear_log_context, configure_logging
from designcoach.models.enums import JobKind
from designcoach.services.orchestrator import EvaluationOrchestrator, kind_specs
from designcoach.telemetry.sink import TelemetrySink
from designcoach.workers.queue import EvaluationQueue, create_queue
from designcoach.workers.registry import get_worker

logger = logging.getLogger(__name__)


def load_plugins(modules: list[str]) -> None:
    """Import evaluator modules so they can call ``register_worker``."""
    for module in modules:
        importlib.import_module(module)
        logger.info("Loaded evaluator plugin %s", module)


async def run_once(
    kind: JobKind,
    queue: EvaluationQueue,
    session_factory: async_sessionmaker[AsyncSession],
    telemetry: TelemetrySink,
    poll_timeout: float = 1.0,
) -> bool:
    """Process at most one job of ``kind``. Returns False when the queue was empty."""
    worker = get_worker(kind)
    if worker is None:
        raise LookupError(f"No worker registered for job kind '{kind.value}'")

    queue_name = kind_specs()[kind].queue_name
    message = await queue.dequeue(queue_name, timeout=poll_timeout)
    if message is None:
        return False

    if message.kind != kind.value:
        logger.warning("Dropping job %s: kind %s arrived on %s", message.job_id, message.kind, queue_name)
        return True

    bind_job_context(message.job_id, kind.value)
    try:
        async with session_factory() as session:
            orchestrator = EvaluationOrchestrator(session, queue, telemetry)
            await worker.execute(message, orchestrator)
    except Exception:
        logger.exception("Unhandled error while processing job %s", message.job_id)
    finally:
        clear_log_context()
    return True


async def run_worker(
    kinds: list[JobKind],
    once: bool = False,
    poll_timeout: float = 1.0,
    plugins: list[str] | None = None,
) -> None:
    """Open the store and queue, then consume ``kinds`` until stopped."""
    configure_logging(
        log_level=settings.log_level,
        json_output=settings.json_logs and not settings.local_mode,
        service="designcoach-worker",
    )
    load_plugins(plugins or [])

    missing = [kind.value for kind in kinds if get_worker(kind) is None]
    if missing:
        raise SystemExit(f"No evaluator registered for: {', '.join(missing)} (use --plugin)")
    if settings.local_mode:
        logger.warning("Local mode uses an in-process queue; this worker will not see API submissions")

    engine = create_db_engine()
    session_factory = create_session_factory(engine)
    queue = await create_queue(settings).open()
    telemetry = TelemetrySink(
        session_factory,
        sample_rate=settings.effective_sample_rate,
        error_buffer_size=settings.telemetry_error_buffer_size,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    logger.info("Worker started (kinds=%s)", ",".join(kind.value for kind in kinds))
    try:
        while not stop.is_set():
            for kind in kinds:
                try:
                    await run_once(kind, queue, session_factory, telemetry, poll_timeout)
                except QueueUnavailableError:
                    logger.warning("Queue unavailable, retrying in %.1fs", poll_timeout)
                    await asyncio.sleep(poll_timeout)
            if once:
                break
    finally:
        await telemetry.aclose(timeout=settings.telemetry_drain_timeout_seconds)
        await queue.close()
        await engine.dispose()
        logger.info("Worker stopped")
