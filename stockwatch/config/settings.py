import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class Settings(BaseModel):
    FINNHUB_API_KEY: str = ""
    FINNHUB_BASE_URL: str = "https://finnhub.io/api/v1"
    QUOTE_SOURCE: Literal["demo", "finnhub", "proxy"]
    QUOTE_API_BASE_URL: str | None = None
    WATCHLIST_STORE_PATH: str = "data/watchlist.json"
    WATCHLIST_REFRESH_INTERVAL_SEC: float = Field(default=60.0, gt=0)
    WATCHLIST_TICK_SEC: float = Field(default=1.0, gt=0)
    WATCHLIST_MAX_CONCURRENCY: int = Field(default=8, ge=1)

    @model_validator(mode="after")
    def check_quote_source(self) -> "Settings":
        if self.QUOTE_SOURCE == "finnhub" and not self.FINNHUB_API_KEY:
            raise ValueError("FINNHUB_API_KEY is required when QUOTE_SOURCE=finnhub")
        if self.QUOTE_SOURCE == "proxy" and not self.QUOTE_API_BASE_URL:
            raise ValueError("QUOTE_API_BASE_URL is required when QUOTE_SOURCE=proxy")
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.getenv("FINNHUB_API_KEY", "").strip()
        quote_source = os.getenv("QUOTE_SOURCE") or ("finnhub" if api_key else "demo")

        raw = {
            "FINNHUB_API_KEY": api_key,
            "QUOTE_SOURCE": quote_source,
            "QUOTE_API_BASE_URL": os.getenv("QUOTE_API_BASE_URL") or None,
        }
        for name in (
            "FINNHUB_BASE_URL",
            "WATCHLIST_STORE_PATH",
            "WATCHLIST_REFRESH_INTERVAL_SEC",
            "WATCHLIST_TICK_SEC",
            "WATCHLIST_MAX_CONCURRENCY",
        ):
            value = os.getenv(name)
            if value:
                raw[name] = value

        return cls.model_validate(raw)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
