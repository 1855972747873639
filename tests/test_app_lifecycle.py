import os
import tempfile
import threading
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from stockwatch.config.settings import Settings, get_settings
from stockwatch.errors import QuoteNetworkError
from stockwatch.integrations.finnhub_rest import FinnhubRestClient
from stockwatch.integrations.quote_api import QuoteApiClient
from stockwatch.main import _DemoQuoteClient, app, build_quote_client
from stockwatch.services.watchlist_store import InMemoryWatchlistStore, JsonFileWatchlistStore


class _RecordedHandle:
    def __init__(self, period_sec, name):
        self.period_sec = period_sec
        self.name = name
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class RecordingScheduler:
    def __init__(self) -> None:
        self.handles: list[_RecordedHandle] = []

    def schedule(self, period_sec, callback, *, name="schedule"):
        handle = _RecordedHandle(period_sec, name)
        self.handles.append(handle)
        return handle


class AppLifecycleTest(unittest.TestCase):
    def tearDown(self):
        app.state.get_settings = get_settings
        app.state.quote_client = None
        app.state.watchlist_store = None
        app.state.scheduler = None

    def test_timers_start_on_startup_and_stop_on_shutdown(self):
        scheduler = RecordingScheduler()
        app.state.get_settings = lambda: Settings(
            QUOTE_SOURCE="demo", WATCHLIST_REFRESH_INTERVAL_SEC=30, WATCHLIST_TICK_SEC=0.5
        )
        app.state.watchlist_store = InMemoryWatchlistStore()
        app.state.scheduler = scheduler

        with TestClient(app) as c:
            self.assertEqual([(h.name, h.period_sec) for h in scheduler.handles], [
                ("watchlist-refresh", 30.0),
                ("watchlist-countdown", 0.5),
            ])
            self.assertFalse(any(h.cancelled for h in scheduler.handles))
            self.assertTrue(c.get("/api/metrics/watchlist").json()["mounted"])
            self.assertIsInstance(app.state.quote_client, _DemoQuoteClient)

        self.assertTrue(all(h.cancelled for h in scheduler.handles))
        self.assertFalse(app.state.refresh_controller.mounted)

    def test_shutdown_cancels_refresh_stuck_on_slow_quote(self):
        release = threading.Event()

        class SlowQuoteClient:
            def get_quote(self, symbol):
                release.wait(timeout=2)
                raise QuoteNetworkError("timed out")

        app.state.get_settings = lambda: Settings(QUOTE_SOURCE="demo")
        app.state.quote_client = SlowQuoteClient()
        app.state.watchlist_store = InMemoryWatchlistStore(["AAPL"])
        app.state.scheduler = RecordingScheduler()

        try:
            with TestClient(app):
                pass
            controller = app.state.refresh_controller
            self.assertEqual(controller.metrics()["pending_refreshes"], 0)
            self.assertEqual(controller.refreshes, 0)
        finally:
            release.set()

    def test_watchlist_survives_restart_through_file_store(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = str(Path(tmp) / "watchlist.json")
            app.state.get_settings = lambda: Settings(QUOTE_SOURCE="demo", WATCHLIST_STORE_PATH=path)
            app.state.scheduler = RecordingScheduler()

            with TestClient(app) as c:
                c.post("/api/watchlist", json={"symbol": "AAPL"})
                c.post("/api/watchlist", json={"symbol": "MSFT"})
            self.assertIsInstance(app.state.watchlist_store, JsonFileWatchlistStore)

            app.state.watchlist_store = None
            with TestClient(app) as c:
                body = c.get("/api/watchlist").json()

            self.assertEqual([e["symbol"] for e in body["entries"]], ["AAPL", "MSFT"])
            self.assertTrue(os.path.exists(path))


class BuildQuoteClientTest(unittest.TestCase):
    def test_source_selects_client(self):
        finnhub = build_quote_client(Settings(QUOTE_SOURCE="finnhub", FINNHUB_API_KEY="k"))
        proxy = build_quote_client(Settings(QUOTE_SOURCE="proxy", QUOTE_API_BASE_URL="http://localhost:3001"))
        demo = build_quote_client(Settings(QUOTE_SOURCE="demo"))

        self.assertIsInstance(finnhub, FinnhubRestClient)
        self.assertEqual(finnhub.api_key, "k")
        self.assertIsInstance(proxy, QuoteApiClient)
        self.assertEqual(proxy.base_url, "http://localhost:3001")
        self.assertIsInstance(demo, _DemoQuoteClient)

    def test_demo_client_quotes_and_search(self):
        demo = _DemoQuoteClient()

        self.assertEqual(demo.get_quote("aapl").current_price, 150.23)
        self.assertEqual([m.symbol for m in demo.search_symbols("alpha")], ["GOOGL"])


if __name__ == "__main__":
    unittest.main()
