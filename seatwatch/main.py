"""Command-line interface entry point for the Seatwatch monitor."""

from __future__ import annotations

import argparse
import asyncio
from copy import deepcopy
import json
from pathlib import Path
from typing import Any, Iterable

import uvicorn
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from dotenv import load_dotenv

from seatwatch.alerts.notifier import Notifier
from seatwatch.api import create_app
from seatwatch.errors import InvalidUrlError, NavigationError
from seatwatch.health import HealthMonitor
from seatwatch.logging_config import get_logger, set_level
from seatwatch.pipeline import PipelineContext, TicketPipeline, extract_event_id
from seatwatch.poller import TicketPoller
from seatwatch.settings import Settings
from seatwatch.storage import repo
from seatwatch.storage.db import get_engine, init_db, make_session

LOGGER = get_logger(__name__)


DEFAULT_CONFIG: dict[str, Any] = {
    "browser": {
        "session_name": "default",
        "profile_dir": "./tmp/browser-profile",
        "window_width": 1024,
        "window_height": 768,
        "keep_pages_open": False,
    },
    "navigation": {
        "attempts": 3,
        "goto_timeout_ms": 60000,
        "backoff_ms": 2000,
        "settle_timeout_ms": 12000,
    },
    "gate": {
        "max_attempts": 3,
        "loading_timeout_ms": 120000,
        "consent_timeout_ms": 30000,
        "human_pause_ms": [1500, 2500],
        "remediation_pause_ms": [3500, 4500],
    },
    "extraction": {
        "stadium_attempts": 3,
        "stadium_retry_pause_ms": 2000,
        "selector_timeout_ms": 5000,
    },
    "network": {"timeout_ms": 10000},
    "cache": {"ttl_ms": 5000},
    "pipeline": {"deadline_seconds": 300},
    "changes": {"limit": 100},
    "diagnostics": {"enabled": True, "directory": "screenshots", "save_results": True},
    "schedule": {"interval_ms": 5000},
    "storage": {"sqlite_path": "seatwatch.sqlite"},
    "api": {"host": "0.0.0.0", "port": 8000},
    "health_log": "logs/health.log",
}


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the application."""

    parser = argparse.ArgumentParser(description="Monitor ticket marketplace event pages for inventory changes.")
    parser.add_argument("--config", default="config.yml", help="Path to the YAML configuration file.")
    parser.add_argument("--once", action="store_true", help="Run a single poll cycle instead of on a schedule.")
    parser.add_argument("--fetch", metavar="URL", help="Fetch one event URL, print the result JSON and exit.")
    parser.add_argument("--add", metavar="URL", action="append", default=[], help="Register an event URL to monitor.")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP API alongside the scheduler.")
    parser.add_argument("--log-level", dest="log_level", help="Override LOG_LEVEL for this run.")

    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.serve and (args.once or args.fetch):
        parser.error("--serve cannot be combined with --once or --fetch")
    return args


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def load_config(path: Path) -> dict[str, Any]:
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    else:
        LOGGER.warning("Configuration file %s not found; using defaults", path)
        data = {}

    if not isinstance(data, dict):
        raise RuntimeError(f"Configuration root must be a mapping: {path}")
    return _deep_merge(DEFAULT_CONFIG, data) if data else deepcopy(DEFAULT_CONFIG)


def _register_urls(session_factory, urls: list[str]) -> None:
    with session_factory() as session:
        for url in urls:
            try:
                event_id = extract_event_id(url)
            except InvalidUrlError as exc:
                LOGGER.error("Skipping %s", exc)
                continue
            _, created = repo.upsert_endpoint(session, url, event_id)
            LOGGER.info("%s endpoint %s", "Registered" if created else "Already monitoring", url)
        session.commit()


async def _fetch_one(pipeline: TicketPipeline, url: str) -> None:
    result = await pipeline.fetch(url)
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False, default=str))


async def _async_main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    if args.log_level:
        set_level(args.log_level)

    load_dotenv()
    config = load_config(Path(args.config))
    settings = Settings.from_config(config)
    LOGGER.info(
        "Parsed arguments: once=%s fetch=%s add=%d serve=%s",
        args.once,
        args.fetch,
        len(args.add),
        args.serve,
    )

    engine = get_engine(config.get("storage", {}).get("sqlite_path", "seatwatch.sqlite"))
    init_db(engine)
    session_factory = make_session(engine)

    if args.add:
        _register_urls(session_factory, args.add)
        if not (args.once or args.fetch or args.serve):
            return

    async with PipelineContext(settings=settings) as context:
        pipeline = TicketPipeline(context)

        if args.fetch:
            await _fetch_one(pipeline, args.fetch)
            return

        poller = TicketPoller(
            pipeline,
            session_factory,
            notifier=Notifier(),
            health=HealthMonitor(Path(config.get("health_log", "logs/health.log"))),
            change_limit=settings.change_limit,
        )

        if args.once:
            await poller.poll_once()
            return

        scheduler = AsyncIOScheduler()
        poller.schedule(scheduler, settings.poll_interval_ms)
        scheduler.start()

        try:
            if args.serve:
                api_conf = config.get("api", {})
                server = uvicorn.Server(
                    uvicorn.Config(
                        create_app(pipeline, session_factory, poller=poller),
                        host=api_conf.get("host", "0.0.0.0"),
                        port=int(api_conf.get("port", 8000)),
                        log_config=None,
                    )
                )
                LOGGER.info("Serving API on %s:%s", server.config.host, server.config.port)
                await server.serve()
            else:
                await asyncio.Event().wait()
        except (KeyboardInterrupt, SystemExit):
            LOGGER.info("Shutdown signal received; stopping scheduler")
        finally:
            scheduler.shutdown(wait=False)


def main() -> None:
    try:
        asyncio.run(_async_main())
    except (InvalidUrlError, NavigationError) as exc:
        LOGGER.error("Fetch failed: %s", exc)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:  # pragma: no cover - interactive safety
        LOGGER.info("Interrupted by user")


if __name__ == "__main__":
    main()
