"""Dependency injection for FastAPI routes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from fastapi import Request
from fastapi.responses import JSONResponse

from rate_ledger.api.schemas import ErrorResponse
from rate_ledger.core.config import LedgerConfig
from rate_ledger.ingestion.pipeline import IngestionPipeline
from rate_ledger.ingestion.store import SqliteRateStore


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: LedgerConfig
    store: SqliteRateStore
    pipeline: IngestionPipeline
    # Serializes sync and reset against the single store connection
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> LedgerConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_store(request: Request) -> SqliteRateStore:
    """Dependency: retrieve storage backend."""
    return request.app.state.app_state.store


EXEMPT_PATHS = {"/api/health"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content=ErrorResponse(
                    error="Unauthorized", detail="Invalid or missing API key"
                ).model_dump(),
            )
    return await call_next(request)
