"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rate_ledger.api.deps import AppState, api_key_middleware
from rate_ledger.api.routes import router
from rate_ledger.api.schemas import ErrorResponse
from rate_ledger.core.config import LedgerConfig, load_config
from rate_ledger.core.exceptions import (
    ConfigError,
    ExportError,
    FetchError,
    ParseError,
    RateLedgerError,
    StorageError,
)
from rate_ledger.ingestion.aligner import SeriesAligner
from rate_ledger.ingestion.pipeline import IngestionPipeline
from rate_ledger.ingestion.reader import SourceReader
from rate_ledger.ingestion.store import create_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    source = config.source
    store = await create_store(config.storage, source.currencies)
    reader = SourceReader(source)
    pipeline = IngestionPipeline(
        reader=reader,
        aligner=SeriesAligner(source.currencies, source.alignment),
        store=store,
        sources=source.series,
    )

    app.state.app_state = AppState(config=config, store=store, pipeline=pipeline)

    yield

    await reader.close()
    await store.close()


def create_app(config: LedgerConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import rate_ledger

    app = FastAPI(
        title="rate-ledger API",
        description="Daily FX reference rate history",
        version=rate_ledger.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Checks api.api_key per request, so keys from YAML or env apply too
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(RateLedgerError)
    async def ledger_exception_handler(request: Request, exc: RateLedgerError):
        status_map = {
            ConfigError: 400,
            FetchError: 502,
            ParseError: 502,
            StorageError: 500,
            ExportError: 500,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content=ErrorResponse(error=type(exc).__name__, detail=str(exc)).model_dump(),
        )

    return app

