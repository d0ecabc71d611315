from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_TZ = "UTC"
DEFAULT_REMOTE_TIMEOUT = 3.0
DEFAULT_MIRROR_PORT = 8787
DEFAULT_RESET_INTERVAL = 60


@dataclass(frozen=True)
class Settings:
    data_path: Path
    tz: str
    remote_url: str | None
    remote_timeout_seconds: float
    progression_config_path: Path
    mirror_host: str
    mirror_port: int
    mirror_data_path: Path | None
    reset_interval_seconds: int
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_int(value: str | None, default: int, min_value: int = 1) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= min_value else default


def _parse_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def load_settings() -> Settings:
    _load_env_file(Path(".env"))

    remote_url = os.getenv("STREAKIFY_REMOTE_URL", "").strip().rstrip("/") or None
    mirror_data_raw = os.getenv("MIRROR_DATA_PATH", "").strip()

    return Settings(
        data_path=Path(os.getenv("STREAKIFY_DATA_PATH", "./data/streakify.db")),
        tz=os.getenv("TZ", DEFAULT_TZ) or DEFAULT_TZ,
        remote_url=remote_url,
        remote_timeout_seconds=_parse_float(os.getenv("STREAKIFY_REMOTE_TIMEOUT"), DEFAULT_REMOTE_TIMEOUT),
        progression_config_path=Path(os.getenv("PROGRESSION_CONFIG", "./progression.yaml")),
        mirror_host=os.getenv("MIRROR_HOST", "127.0.0.1"),
        mirror_port=_parse_int(os.getenv("MIRROR_PORT"), DEFAULT_MIRROR_PORT),
        mirror_data_path=Path(mirror_data_raw) if mirror_data_raw else None,
        reset_interval_seconds=_parse_int(os.getenv("DAILY_RESET_INTERVAL_SECONDS"), DEFAULT_RESET_INTERVAL),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
