from __future__ import annotations

import asyncio
import time
from typing import Iterable, Protocol

from stockwatch.errors import FETCH_FAILED, RATE_LIMITED, classify_error
from stockwatch.schemas.quote import Quote
from stockwatch.schemas.watchlist import FetchError, FetchReport, WatchlistEntry
from stockwatch.services.watchlist_store import dedup_symbols


class QuoteService(Protocol):
    def get_quote(self, symbol: str) -> Quote: ...


def batch_aggregate_error(errors: list[FetchError], target_count: int) -> str | None:
    """Single error code for a batch where every target failed, else None."""
    if not target_count or len(errors) < target_count:
        return None
    if all(err.kind == RATE_LIMITED for err in errors):
        return RATE_LIMITED
    return FETCH_FAILED


class QuoteFanoutService:
    """Concurrent quote lookup for a batch of symbols, joined on all results.

    Each symbol is fetched in its own worker thread. One failing or slow symbol
    never blocks or aborts the others; every symbol ends up either as an entry
    or as an error in the returned report.
    """

    def __init__(self, *, quote_service: QuoteService, max_concurrency: int = 8) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.quote_service = quote_service
        self.max_concurrency = max_concurrency

        self.batches = 0
        self.requested = 0
        self.succeeded = 0
        self.failed = 0
        self.rate_limited = 0
        self.last_batch_target = 0
        self.last_batch_succeeded = 0
        self.last_batch_failed = 0
        self.last_batch_aggregate_error: str | None = None

    async def _fetch_one(self, symbol: str, semaphore: asyncio.Semaphore) -> Quote:
        async with semaphore:
            return await asyncio.to_thread(self.quote_service.get_quote, symbol)

    async def fetch_all(self, symbols: Iterable[str]) -> FetchReport:
        unique_symbols = dedup_symbols(symbols)
        if not unique_symbols:
            return FetchReport()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *(self._fetch_one(symbol, semaphore) for symbol in unique_symbols),
            return_exceptions=True,
        )

        now = int(time.time())
        entries: list[WatchlistEntry] = []
        errors: list[FetchError] = []
        for symbol, result in zip(unique_symbols, results):
            if isinstance(result, Quote):
                entries.append(WatchlistEntry(symbol=symbol, quote=result, updated_at=now))
                continue
            if not isinstance(result, Exception):
                raise result
            kind = classify_error(result)
            errors.append(FetchError(symbol=symbol, kind=kind))
            print(f"[FANOUT][fetch_error] symbol={symbol} kind={kind} error={result}", flush=True)

        aggregate_error = batch_aggregate_error(errors, len(unique_symbols))

        self.batches += 1
        self.requested += len(unique_symbols)
        self.succeeded += len(entries)
        self.failed += len(errors)
        self.rate_limited += sum(1 for err in errors if err.kind == RATE_LIMITED)
        self.last_batch_target = len(unique_symbols)
        self.last_batch_succeeded = len(entries)
        self.last_batch_failed = len(errors)
        self.last_batch_aggregate_error = aggregate_error

        print(
            "[FANOUT][batch_resolve] "
            f"target_count={len(unique_symbols)} succeeded={len(entries)} "
            f"failed={len(errors)} aggregate_error={aggregate_error}",
            flush=True,
        )
        return FetchReport(entries=entries, errors=errors, aggregate_error=aggregate_error)

    def metrics(self) -> dict[str, int | str | None]:
        return {
            "batches": self.batches,
            "requested": self.requested,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "rate_limited": self.rate_limited,
            "batch_target_count": self.last_batch_target,
            "batch_succeeded_count": self.last_batch_succeeded,
            "batch_failed_count": self.last_batch_failed,
            "batch_aggregate_error": self.last_batch_aggregate_error,
        }
