"""CLI entry points for the API server and the evaluation worker."""

import argparse
import asyncio
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="designcoach-server",
        description="System Design Coach API server",
    )
    parser.add_argument("--host", default=None, help="Bind host (default: DESIGNCOACH_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: DESIGNCOACH_PORT or 3001)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, in-process queue, no Redis required",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["DESIGNCOACH_LOCAL_MODE"] = "1"

    import uvicorn

    from designcoach.config import Settings

    current = Settings()
    uvicorn.run(
        "designcoach.main:app",
        host=args.host or current.host,
        port=args.port or current.port,
    )


def worker_main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="designcoach-worker",
        description="Consume evaluation jobs from the grading and simulation queues",
    )
    parser.add_argument(
        "--kind",
        choices=["grade", "simulate"],
        action="append",
        help="Job kind to consume (repeatable; default: both)",
    )
    parser.add_argument("--once", action="store_true", help="Process at most one job per kind, then exit")
    parser.add_argument("--plugin", action="append", default=[], help="Module that registers evaluators (repeatable)")
    parser.add_argument("--poll-timeout", type=float, default=1.0, help="Seconds to block on an empty queue")
    args = parser.parse_args(argv)

    from designcoach.models.enums import JobKind
    from designcoach.workers.runner import run_worker

    kinds = [JobKind(kind) for kind in (args.kind or ["grade", "simulate"])]
    asyncio.run(run_worker(kinds, once=args.once, poll_timeout=args.poll_timeout, plugins=args.plugin))


if __name__ == "__main__":
    main()
