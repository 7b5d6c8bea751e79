"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """GET /api/health."""

    status: str
    version: str
    currencies: list[str]
    total_records: int


class RateResponse(BaseModel):
    """One merged record in API response format."""

    date: dt.date
    timestamp: int
    values: dict[str, float]


class RateListResponse(BaseModel):
    """GET /api/rates."""

    total: int
    currencies: list[str]
    items: list[RateResponse]


class LatestResponse(BaseModel):
    """GET /api/rates/latest."""

    timestamp: int | None = None
    date: dt.date | None = None


class SyncResponse(BaseModel):
    """POST /api/rates/sync."""

    fetched: dict[str, int]
    aligned: int
    skipped: int
    inserted: int
    latest_timestamp: int | None = None
