from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from stockwatch.api.routes import router
from stockwatch.config.settings import Settings, get_settings
from stockwatch.errors import SymbolNotFoundError
from stockwatch.integrations.finnhub_rest import FinnhubRestClient
from stockwatch.integrations.quote_api import QuoteApiClient
from stockwatch.schemas.quote import Quote, SymbolMatch
from stockwatch.services.quote_fanout import QuoteFanoutService
from stockwatch.services.refresh_scheduler import RefreshController
from stockwatch.services.watchlist import Watchlist
from stockwatch.services.watchlist_store import JsonFileWatchlistStore


class _DemoQuoteClient:
    _QUOTES = {
        'AAPL': Quote(current_price=150.23, previous_close=149.50, change=0.73, percent_change=0.49),
        'GOOGL': Quote(current_price=2750.10, previous_close=2735.45, change=14.65, percent_change=0.54),
        'AMZN': Quote(current_price=3342.88, previous_close=3350.00, change=-7.12, percent_change=-0.21),
        'MSFT': Quote(current_price=299.35, previous_close=296.71, change=2.64, percent_change=0.89),
    }
    _MATCHES = [
        SymbolMatch(symbol='AAPL', description='Apple Inc.'),
        SymbolMatch(symbol='GOOGL', description='Alphabet Inc.'),
        SymbolMatch(symbol='AMZN', description='Amazon.com Inc.'),
        SymbolMatch(symbol='MSFT', description='Microsoft Corporation'),
    ]

    def get_quote(self, symbol: str) -> Quote:
        quote = self._QUOTES.get(symbol.upper())
        if quote is None:
            raise SymbolNotFoundError(f'unknown symbol: {symbol}')
        return quote

    def search_symbols(self, query: str) -> list[SymbolMatch]:
        needle = query.strip().casefold()
        return [
            m for m in self._MATCHES
            if needle in m.symbol.casefold() or needle in m.description.casefold()
        ]


def build_quote_client(settings: Settings):
    if settings.QUOTE_SOURCE == 'finnhub':
        return FinnhubRestClient(api_key=settings.FINNHUB_API_KEY, base_url=settings.FINNHUB_BASE_URL)
    if settings.QUOTE_SOURCE == 'proxy':
        return QuoteApiClient(base_url=settings.QUOTE_API_BASE_URL)
    return _DemoQuoteClient()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.get_settings()
    if app.state.quote_client is None:
        app.state.quote_client = build_quote_client(settings)
    if app.state.watchlist_store is None:
        app.state.watchlist_store = JsonFileWatchlistStore(settings.WATCHLIST_STORE_PATH)

    app.state.watchlist = Watchlist(app.state.watchlist_store)
    app.state.quote_fanout = QuoteFanoutService(
        quote_service=app.state.quote_client,
        max_concurrency=settings.WATCHLIST_MAX_CONCURRENCY,
    )
    controller = RefreshController(
        watchlist=app.state.watchlist,
        fanout=app.state.quote_fanout,
        scheduler=app.state.scheduler,
        interval_sec=settings.WATCHLIST_REFRESH_INTERVAL_SEC,
        tick_sec=settings.WATCHLIST_TICK_SEC,
    )
    app.state.refresh_controller = controller
    print(f"[APP][startup] quote_source={settings.QUOTE_SOURCE} symbols={len(app.state.watchlist)}", flush=True)
    controller.mount()

    try:
        yield
    finally:
        controller.unmount()
        await controller.wait_pending(timeout=1.0)
        cancelled = await controller.cancel_pending()
        print(f"[APP][shutdown] refresh timers cancelled pending_cancelled={cancelled}", flush=True)


app = FastAPI(title="Stockwatch", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/api")

# NOTE: lazy-loaded so app import does not require env during tests.
app.state.get_settings = get_settings
app.state.quote_client = None
app.state.watchlist_store = None
app.state.scheduler = None
