"""Tests for settings loading and post-load normalization."""
import pytest

from app.core.config import Settings


def test_post_load_derives_paths_and_normalizes_codes(tmp_path):
    s = Settings(
        data_dir=tmp_path / "nested",
        default_currency="cop",
        supported_currencies=["usd", "eur"],
        pivot_fallbacks=[" usd "],
        exchange_rate_provider="static",
    )
    s.init_post_load()
    assert s.db_path == tmp_path / "nested" / "finance.sqlite3"
    assert (tmp_path / "nested").is_dir()
    assert s.default_currency == "COP"
    assert s.supported_currencies == ["COP", "USD", "EUR"]
    assert s.pivot_fallbacks == ["USD"]


def test_env_variables_are_read(tmp_path, monkeypatch):
    monkeypatch.setenv("DEFAULT_CURRENCY", "USD")
    monkeypatch.setenv("RATES_CACHE_TTL_SECONDS", "60")
    s = Settings(data_dir=tmp_path, exchange_rate_provider="static")
    assert s.default_currency == "USD"
    assert s.rates_cache_ttl_seconds == 60


@pytest.mark.parametrize(
    "overrides",
    [{"exchange_rate_provider": "carrier-pigeon"}, {"local_timezone": "Mars/Olympus"}],
)
def test_invalid_settings_are_rejected(tmp_path, overrides):
    s = Settings(data_dir=tmp_path, **overrides)
    with pytest.raises(ValueError):
        s.init_post_load()
