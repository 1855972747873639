import json
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from stockwatch.config.settings import Settings, get_settings
from stockwatch.main import app
from stockwatch.services.watchlist_store import InMemoryWatchlistStore


class SmokeTest(unittest.TestCase):
    def setUp(self):
        app.state.get_settings = lambda: Settings(QUOTE_SOURCE="demo")
        app.state.watchlist_store = InMemoryWatchlistStore(["AAPL", "GOOGL"])

    def tearDown(self):
        app.state.get_settings = get_settings
        app.state.quote_client = None
        app.state.watchlist_store = None

    def test_openapi_export_script(self):
        repo_root = Path(__file__).resolve().parents[1]
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "openapi.json"
            subprocess.run([sys.executable, "scripts/export_openapi.py", str(out)], cwd=repo_root, check=True)
            schema = json.loads(out.read_text(encoding="utf-8"))

        for path in ("/api/quote/{symbol}", "/api/search", "/api/watchlist", "/api/watchlist/refresh"):
            self.assertIn(path, schema["paths"])

    def test_demo_quotes_watchlist_and_search(self):
        with TestClient(app) as c:
            quote = c.get("/api/quote/GOOGL")
            self.assertEqual(quote.status_code, 200)
            self.assertEqual(quote.json()["currentPrice"], 2750.10)

            search = c.get("/api/search", params={"query": "micro"})
            self.assertEqual([m["symbol"] for m in search.json()], ["MSFT"])

            unknown = c.get("/api/quote/NOPE")
            self.assertEqual(unknown.status_code, 404)
            self.assertEqual(unknown.json(), {"error": "No stock data for NOPE found."})

            r = c.post("/api/watchlist", json={"symbol": "msft"})
            self.assertEqual(r.json()["symbols"], ["AAPL", "GOOGL", "MSFT"])

            body = c.get("/api/watchlist").json()
            self.assertIn(body["state"], ("LOADING", "READY"))
            self.assertIn("secondsLeft", body["refresh"])


if __name__ == "__main__":
    unittest.main()
