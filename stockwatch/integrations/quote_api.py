from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote as url_quote

import requests

from stockwatch.errors import QuoteNetworkError, error_for_status
from stockwatch.schemas.quote import Quote, SymbolMatch


class QuoteApiClient:
    """Client for the stockwatch proxy (`/api/quote/{symbol}`, `/api/search`)."""

    def __init__(self, base_url: str, session: Optional[Any] = None, timeout_sec: float = 5) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests
        self.timeout_sec = timeout_sec

    @staticmethod
    def _error_detail(response: Any) -> str:
        try:
            body = response.json()
        except ValueError:
            return ""
        if isinstance(body, dict):
            return str(body.get("error") or body.get("detail") or "")
        return ""

    def _get(self, path: str, params: dict | None = None) -> Any:
        try:
            response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout_sec)
        except requests.RequestException as exc:
            raise QuoteNetworkError(str(exc)) from exc

        status = int(response.status_code)
        if not 200 <= status < 300:
            raise error_for_status(status, self._error_detail(response) or f"status {status}")
        return response.json()

    def get_quote(self, symbol: str) -> Quote:
        payload = self._get(f"/api/quote/{url_quote(symbol, safe='')}")
        return Quote.model_validate(payload)

    def search_symbols(self, query: str) -> list[SymbolMatch]:
        payload = self._get("/api/search", params={"query": query})
        return [SymbolMatch.model_validate(row) for row in payload or []]
