from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

from streakify.config import Settings
from streakify.daily_reset import run_reset_loop
from streakify.errors import StreakifyError
from streakify.ledger import ActivityLedger
from streakify.messages import status_message
from streakify.progression import load_progression_config
from streakify.storage import LocalStore, PersistenceGateway, RemoteMirror

logger = logging.getLogger(__name__)

JOBS = ("daily_reset", "reset_loop", "status", "export", "import", "clear")


def build_gateway(settings: Settings) -> PersistenceGateway:
    remote = None
    if settings.remote_url:
        remote = RemoteMirror(settings.remote_url, timeout_seconds=settings.remote_timeout_seconds)
    return PersistenceGateway(LocalStore(settings.data_path), remote, tz_name=settings.tz)


def build_ledger(settings: Settings) -> ActivityLedger:
    tuning = load_progression_config(settings.progression_config_path)
    return ActivityLedger(build_gateway(settings), tuning=tuning, tz_name=settings.tz)


def run_daily_reset(ledger: ActivityLedger) -> None:
    outcome = ledger.check_daily_reset()
    if not outcome.did_reset:
        logger.info("daily reset already done today")
    elif not outcome.persisted:
        raise SystemExit("Daily goals were reset but could not be saved")


async def run_reset_service(ledger: ActivityLedger, interval_seconds: float) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            logger.debug("signal handlers unsupported on this platform")
    logger.info("reset loop started interval=%ss", interval_seconds)
    await run_reset_loop(ledger, interval_seconds, stop)
    logger.info("reset loop stopped")


def _require_path(job_name: str, args: list[str]) -> Path:
    if len(args) != 1:
        raise SystemExit(f"Usage: python jobs.py {job_name} <path>")
    return Path(args[0])


def run_job(job_name: str, args: list[str], settings: Settings) -> None:
    if job_name not in JOBS:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOBS)}")

    ledger = build_ledger(settings)
    try:
        if job_name == "daily_reset":
            run_daily_reset(ledger)
        elif job_name == "reset_loop":
            asyncio.run(run_reset_service(ledger, settings.reset_interval_seconds))
        elif job_name == "status":
            print(status_message(ledger.status()))
        elif job_name == "export":
            path = _require_path(job_name, args)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(ledger.export_data(), encoding="utf-8")
            logger.info("exported data to %s", path)
        elif job_name == "import":
            path = _require_path(job_name, args)
            if not path.exists():
                raise SystemExit(f"Import file not found: {path}")
            imported = ledger.import_data(path.read_text(encoding="utf-8"))
            logger.info("imported %s from %s", ", ".join(imported), path)
        else:
            ledger.clear_data()
            logger.info("all data cleared")
    except StreakifyError as exc:
        raise SystemExit(f"{job_name} failed: {exc}") from exc
