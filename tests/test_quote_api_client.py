import unittest
from unittest.mock import MagicMock

import requests

from stockwatch.errors import (
    ForbiddenError,
    QuoteNetworkError,
    QuoteServiceError,
    RateLimitedError,
    SymbolNotFoundError,
)
from stockwatch.integrations.quote_api import QuoteApiClient


def _response(status_code: int, body) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    return response


class TestQuoteApiClient(unittest.TestCase):
    def test_get_quote_reads_proxy_payload(self):
        session = MagicMock()
        session.get.return_value = _response(
            200, {"currentPrice": 150, "previousClose": 148, "change": 2, "percentChange": 1.35}
        )
        client = QuoteApiClient("http://localhost:3001/", session=session)

        quote = client.get_quote("AAPL")

        self.assertEqual(quote.current_price, 150)
        self.assertEqual(quote.percent_change, 1.35)
        session.get.assert_called_once_with("http://localhost:3001/api/quote/AAPL", params=None, timeout=5)

    def test_status_codes_map_to_typed_errors(self):
        cases = [
            (429, RateLimitedError),
            (403, ForbiddenError),
            (404, SymbolNotFoundError),
        ]
        for status_code, error_type in cases:
            session = MagicMock()
            session.get.return_value = _response(status_code, {"detail": "nope"})
            with self.assertRaises(error_type) as ctx:
                QuoteApiClient("http://proxy", session=session).get_quote("AAPL")
            self.assertEqual(str(ctx.exception), "nope")

    def test_other_status_is_generic_failure(self):
        session = MagicMock()
        session.get.return_value = _response(500, {"error": "An internal error occurred"})

        with self.assertRaises(QuoteServiceError) as ctx:
            QuoteApiClient("http://proxy", session=session).get_quote("AAPL")

        self.assertIs(type(ctx.exception), QuoteServiceError)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(str(ctx.exception), "An internal error occurred")

    def test_network_failure(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("read timeout")

        with self.assertRaises(QuoteNetworkError):
            QuoteApiClient("http://proxy", session=session).get_quote("AAPL")

    def test_search_symbols(self):
        session = MagicMock()
        session.get.return_value = _response(200, [{"symbol": "AAPL", "description": "Apple Inc."}])

        matches = QuoteApiClient("http://proxy", session=session).search_symbols("ap")

        self.assertEqual(matches[0].symbol, "AAPL")
        session.get.assert_called_once_with("http://proxy/api/search", params={"query": "ap"}, timeout=5)


if __name__ == "__main__":
    unittest.main()
