"""FastAPI route definitions for the rate-ledger API."""

from __future__ import annotations

import io

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

import rate_ledger
from rate_ledger.api.deps import AppState, get_app_state, get_config, get_store
from rate_ledger.api.schemas import (
    HealthResponse,
    LatestResponse,
    RateListResponse,
    RateResponse,
    SyncResponse,
)
from rate_ledger.core.config import LedgerConfig
from rate_ledger.export import CONTENT_TYPE, TableExporter, XlsxWriter
from rate_ledger.ingestion.aligner import from_timestamp
from rate_ledger.ingestion.store import SqliteRateStore

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: SqliteRateStore = Depends(get_store),
):
    """System health and record count."""
    healthy = await store.health_check()
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version=rate_ledger.__version__,
        currencies=store.currencies,
        total_records=await store.count() if healthy else 0,
    )


# -- Rates --


@router.get("/rates", response_model=RateListResponse)
async def list_rates(
    limit: int | None = Query(None, ge=1, description="Most recent N records only"),
    store: SqliteRateStore = Depends(get_store),
):
    """Stored history, ascending by date."""
    records = await store.ordered_history()
    total = len(records)
    if limit is not None:
        records = records[-limit:]
    return RateListResponse(
        total=total,
        currencies=store.currencies,
        items=[
            RateResponse(date=r.day, timestamp=r.timestamp, values=r.values)
            for r in records
        ],
    )


@router.get("/rates/latest", response_model=LatestResponse)
async def latest_rate(store: SqliteRateStore = Depends(get_store)):
    """Most recent stored timestamp, if any."""
    latest = await store.max_timestamp()
    if latest is None:
        return LatestResponse()
    return LatestResponse(timestamp=latest, date=from_timestamp(latest))


@router.post("/rates/sync", response_model=SyncResponse)
async def sync_rates(state: AppState = Depends(get_app_state)):
    """Fetch every configured series and merge new days into the store."""
    async with state.write_lock:
        result = await state.pipeline.run()
    return SyncResponse(**result.model_dump())


@router.delete("/rates", status_code=204)
async def reset_rates(state: AppState = Depends(get_app_state)):
    """Remove all stored records."""
    async with state.write_lock:
        await state.store.reset()
    return Response(status_code=204)


@router.get("/rates/export")
async def export_rates(
    store: SqliteRateStore = Depends(get_store),
    config: LedgerConfig = Depends(get_config),
):
    """Download the history as an .xlsx attachment."""
    buffer = io.BytesIO()
    exporter = TableExporter(store.currencies)
    await exporter.export(store, XlsxWriter(config.export.sheet_title), buffer)
    return Response(
        content=buffer.getvalue(),
        media_type=CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{config.export.filename}"',
            "Cache-Control": "max-age=0",
        },
    )
