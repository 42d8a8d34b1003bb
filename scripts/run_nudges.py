#!/usr/bin/env python3
"""CLI for running nudge jobs outside the web server.

Usage:
    # One nudge pass over the entities in a fixture file:
    python3 scripts/run_nudges.py run --entities config/entities.example.yml

    # Deliver due scheduled notifications / delete expired ones:
    python3 scripts/run_nudges.py sweep
    python3 scripts/run_nudges.py cleanup

    # Run all periodic jobs until interrupted:
    python3 scripts/run_nudges.py serve-scheduler --entities config/entities.example.yml

Storage follows NUDGE_DB_DATABASE_URL; without it every command works on
fresh in-memory stores.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

# Ensure the project source is importable when running the script directly.
_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from nudge.core.config import Settings  # noqa: E402
from nudge.entities.loader import load_fixture  # noqa: E402
from nudge.services import Services, build_services  # noqa: E402

logger = logging.getLogger("nudge.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run nudge engine jobs.")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Evaluate nudge rules for all active entities.")
    run.add_argument("--entities", type=str, required=True, help="YAML entity fixture file.")
    run.add_argument("--entity-id", type=str, default=None, help="Only run for this entity.")

    sub.add_parser("sweep", help="Deliver scheduled notifications that are due.")
    sub.add_parser("cleanup", help="Delete expired notifications past retention.")

    serve = sub.add_parser("serve-scheduler", help="Run periodic jobs until interrupted.")
    serve.add_argument("--entities", type=str, required=True, help="YAML entity fixture file.")

    return parser.parse_args(argv)


def _services(settings: Settings, entities: str | None) -> Services:
    if entities is None:
        return build_services(settings)
    directory, provider = load_fixture(entities)
    return build_services(settings, directory=directory, metrics_provider=provider)


async def _prepare(services: Services) -> None:
    if services.db_manager is not None and services.db_manager.is_sqlite:
        await services.db_manager.create_all()


async def _serve(services: Services) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    logger.info("Scheduler started with jobs: %s", ", ".join(services.scheduler.jobs))
    await services.scheduler.run_forever(stop)
    logger.info("Scheduler stopped")


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    services = _services(settings, getattr(args, "entities", None))
    await _prepare(services)
    try:
        if args.command == "run":
            if args.entity_id:
                result = await services.runner.run_for_entity(args.entity_id)
                print(json.dumps(result.model_dump(), indent=2))
            else:
                run = await services.runner.run_for_all_entities()
                print(json.dumps(run.model_dump(mode="json"), indent=2))
                return 1 if run.errors else 0
        elif args.command == "sweep":
            print(f"Processed {await services.queue.process_scheduled()} scheduled notifications")
        elif args.command == "cleanup":
            print(f"Deleted {await services.queue.cleanup_expired()} expired notifications")
        elif args.command == "serve-scheduler":
            await _serve(services)
    finally:
        await services.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
