from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from streakify.config import load_settings
from streakify.jobs_runner import JOBS, run_job
from streakify.logging_setup import setup_logging


def main() -> None:
    if len(sys.argv) < 2:
        raise SystemExit(f"Usage: python jobs.py <{'|'.join(JOBS)}> [path]")

    settings = load_settings()
    setup_logging(settings.log_level)
    run_job(sys.argv[1], sys.argv[2:], settings)


if __name__ == "__main__":
    main()
