from __future__ import annotations

from typing import Any, Optional

import requests

from stockwatch.errors import QuoteNetworkError, SymbolNotFoundError, error_for_status
from stockwatch.schemas.quote import Quote, SymbolMatch


def _status_code_from_error(exc: Exception) -> int | None:
    response = getattr(exc, "response", None)
    code = getattr(response, "status_code", None)
    if isinstance(code, int):
        return code
    return None


class FinnhubRestClient:
    """Finnhub quote/search client. Holds the API key so callers never see it."""

    DEFAULT_BASE_URL = "https://finnhub.io/api/v1"

    def __init__(
        self,
        api_key: str,
        session: Optional[Any] = None,
        base_url: Optional[str] = None,
        timeout_sec: float = 5,
    ) -> None:
        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.session = session or requests
        self.timeout_sec = timeout_sec

    @staticmethod
    def _to_float(value: Any, default: float = 0.0) -> float:
        try:
            if value is None or value == "":
                return default
            return float(value)
        except (TypeError, ValueError):
            return default

    def _get(self, path: str, params: dict) -> Any:
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                params={**params, "token": self.api_key},
                timeout=self.timeout_sec,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            code = _status_code_from_error(exc)
            if code is None:
                raise QuoteNetworkError(str(exc)) from exc
            raise error_for_status(code, f"upstream status {code}") from exc
        except requests.RequestException as exc:
            raise QuoteNetworkError(str(exc)) from exc
        return response.json()

    def get_quote(self, symbol: str) -> Quote:
        payload = self._get("/quote", {"symbol": symbol})
        if not isinstance(payload, dict):
            raise QuoteNetworkError(f"unexpected quote payload for {symbol}")
        # unknown tickers come back as 200 with null change fields
        if payload.get("d") is None and not self._to_float(payload.get("c")):
            raise SymbolNotFoundError(f"unknown symbol: {symbol}")

        return Quote(
            current_price=self._to_float(payload.get("c")),
            previous_close=self._to_float(payload.get("pc")),
            change=self._to_float(payload.get("d")),
            percent_change=self._to_float(payload.get("dp")),
        )

    def search_symbols(self, query: str) -> list[SymbolMatch]:
        payload = self._get("/search", {"q": query})
        rows = payload.get("result", []) if isinstance(payload, dict) else []
        out: list[SymbolMatch] = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("symbol"):
                continue
            out.append(
                SymbolMatch(
                    symbol=str(row["symbol"]),
                    description=str(row.get("description") or ""),
                )
            )
        return out
