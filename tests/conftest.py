"""Pytest configuration and fixtures."""
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.db.dal import Database
from app.db.migrate import apply_migrations
from app.main import create_app
from app.models.rates import RateMatrix
from app.services.currency_context import DisplayContext
from app.services.rates.base import RateSource, RateSourceAuthError, RateSourceError


class FakeRateSource(RateSource):
    """Scripted source: per-pivot matrix or exception, and a call log."""

    name = "fake"

    def __init__(self, responses: Optional[Dict[str, object]] = None):
        self.responses = responses or {}
        self.calls: List[str] = []

    async def fetch_latest(self, pivot: str) -> RateMatrix:
        self.calls.append(pivot)
        outcome = self.responses.get(pivot)
        if outcome is None:
            raise RateSourceAuthError(f"pivot {pivot} refused: unsupported-code")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome  # type: ignore[return-value]


@pytest.fixture
def usd_matrix() -> RateMatrix:
    return RateMatrix("USD", {"USD": 1.0, "COP": 4000.0, "EUR": 0.9, "MXN": 17.0})


@pytest.fixture
def make_ctx(usd_matrix):
    def _make(currency: str = "COP", matrix: Optional[RateMatrix] = None) -> DisplayContext:
        return DisplayContext(currency=currency, matrix=matrix or usd_matrix, default_currency="COP")

    return _make


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings(
        data_dir=tmp_path,
        exchange_rate_provider="static",
        exchange_rate_api_key=None,
        local_timezone="America/Bogota",
    )
    s.init_post_load()
    return s


@pytest.fixture
def db(settings) -> Database:
    apply_migrations(settings.db_path)
    return Database(settings.db_path, settings.tz)


@pytest.fixture
def app(settings):
    return create_app(settings_override=settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user_headers() -> Dict[str, str]:
    return {"X-User-Id": "user-1"}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


__all__ = ["FakeRateSource", "RateSourceError", "utc"]
