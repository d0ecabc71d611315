from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from streakify.codec import format_timestamp
from streakify.config import load_settings
from streakify.logging_setup import setup_logging
from streakify.storage import KeyValueStore, LocalStore, MemoryStore

logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    status: str = "OK"
    timestamp: str


class StoredValue(BaseModel):
    data: Any = None


class WriteAck(BaseModel):
    success: bool = True
    data: Any = None


class DeleteAck(BaseModel):
    success: bool = True


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc


def build_mirror_app(store: KeyValueStore) -> FastAPI:
    """Key/value mirror the app pushes every aggregate to."""
    app = FastAPI(title="Streakify Mirror", version="1.0.0")

    @app.get("/health")
    async def health() -> HealthStatus:
        return HealthStatus(timestamp=format_timestamp(datetime.now(timezone.utc)))

    @app.get("/storage/{key}")
    async def read_key(key: str) -> StoredValue:
        raw = store.get(key)
        if raw is None:
            return StoredValue()
        return StoredValue(data=json.loads(raw))

    async def _write(key: str, request: Request) -> WriteAck:
        body = await _json_body(request)
        store.set(key, json.dumps(body))
        logger.info("mirror stored key=%s", key)
        return WriteAck(data=body)

    @app.post("/storage/{key}")
    async def create_key(key: str, request: Request) -> WriteAck:
        return await _write(key, request)

    @app.put("/storage/{key}")
    async def replace_key(key: str, request: Request) -> WriteAck:
        return await _write(key, request)

    @app.delete("/storage/{key}")
    async def delete_key(key: str) -> DeleteAck:
        store.remove(key)
        logger.info("mirror removed key=%s", key)
        return DeleteAck()

    return app


def run_mirror() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    store: KeyValueStore
    if settings.mirror_data_path is not None:
        store = LocalStore(settings.mirror_data_path)
    else:
        logger.info("MIRROR_DATA_PATH not set, mirror keeps data in memory")
        store = MemoryStore()
    app = build_mirror_app(store)
    uvicorn.run(app, host=settings.mirror_host, port=settings.mirror_port)
