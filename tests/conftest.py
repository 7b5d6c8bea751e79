"""Shared pytest fixtures for rate-ledger."""

import pytest

from rate_ledger.core.config import StorageConfig
from rate_ledger.core.models import MergedRecord, Observation
from rate_ledger.ingestion.store import SqliteRateStore

USD_URL = "https://rates.example.com/usd.xml"
CAD_URL = "https://rates.example.com/cad.xml"

# 2024-01-01T00:00:00Z
JAN_1_2024 = 1704067200000
DAY_MS = 86_400_000


def series_xml(currency: str, points: list[tuple[str, str | None]]) -> str:
    """Build an ECB-style compact series document."""
    obs = []
    for period, value in points:
        if value is None:
            obs.append(f'<Obs TIME_PERIOD="{period}" OBS_STATUS="A"/>')
        else:
            obs.append(f'<Obs TIME_PERIOD="{period}" OBS_VALUE="{value}" OBS_STATUS="A"/>')
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<message:CompactData xmlns:message="http://www.SDMX.org/resources/SDMXML/schemas/v2_0/message" '
        'xmlns:exr="http://www.ecb.europa.eu/vocabulary/stats/exr/1">\n'
        "<exr:DataSet>\n"
        f'<exr:Series FREQ="D" CURRENCY="{currency}" CURRENCY_DENOM="EUR" EXR_TYPE="SP00">\n'
        + "\n".join(f"<exr:{o[1:]}" for o in obs)
        + "\n</exr:Series>\n</exr:DataSet>\n</message:CompactData>\n"
    )


@pytest.fixture
def make_record():
    """Factory for MergedRecord with USD/CAD defaults."""

    def _make(timestamp: int = JAN_1_2024, usd: float = 1.10, cad: float = 1.47):
        return MergedRecord(timestamp=timestamp, values={"USD": usd, "CAD": cad})

    return _make


@pytest.fixture
def make_observations():
    """Factory: list of (period, value) pairs -> Observations."""

    def _make(points):
        return [Observation(time_period=p, value=v) for p, v in points]

    return _make


@pytest.fixture
async def store():
    """An in-memory USD/CAD SqliteRateStore."""
    s = SqliteRateStore(StorageConfig(sqlite_path=":memory:"), ["USD", "CAD"])
    await s.initialize()
    yield s
    await s.close()
