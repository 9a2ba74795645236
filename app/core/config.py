from functools import lru_cache
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Finance tracker configuration.

    Every field can be set from the environment or `.env` under its upper-case
    name, e.g. DEFAULT_CURRENCY=USD or EXCHANGE_RATE_API_KEY=....
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Service
    app_name: str = "Finance Tracker"
    debug: bool = False
    version: str = "0.1.0"

    # SQLite store
    data_dir: Path = Path("data")
    db_filename: str = "finance.sqlite3"
    db_path: Optional[Path] = None  # data_dir / db_filename unless set

    # Currencies
    default_currency: str = "COP"  # currency of record for stored amounts
    supported_currencies: List[str] = ["COP", "USD", "EUR", "MXN"]

    # Rate matrix source and cache
    rates_cache_ttl_seconds: int = 3600
    exchange_api_base_url: AnyHttpUrl = "https://v6.exchangerate-api.com/v6"
    exchange_rate_api_key: Optional[str] = None
    # Allowed: 'exchangerate-api' (HTTP, needs key), 'static' (built-in fixed rates)
    exchange_rate_provider: str = "exchangerate-api"
    pivot_fallbacks: List[str] = ["USD", "EUR"]
    http_timeout_seconds: float = 5.0

    # Calendar & analytics
    local_timezone: str = "America/Bogota"
    savings_window_days: int = 30

    # Feature toggles
    enable_rate_override: bool = True

    def init_post_load(self) -> None:
        """Derive db_path, create its directory, normalize currency codes and
        reject unknown provider kinds or time zones."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.default_currency = self.default_currency.strip().upper()
        self.supported_currencies = [c.strip().upper() for c in self.supported_currencies]
        if self.default_currency not in self.supported_currencies:
            self.supported_currencies.insert(0, self.default_currency)
        self.pivot_fallbacks = [c.strip().upper() for c in self.pivot_fallbacks]
        allowed = {"exchangerate-api", "static"}
        if self.exchange_rate_provider not in allowed:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{self.exchange_rate_provider}'. Allowed: {allowed}"
            )
        try:
            ZoneInfo(self.local_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown local_timezone '{self.local_timezone}'") from e

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.local_timezone)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
