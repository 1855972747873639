from __future__ import annotations

from typing import Callable, Iterable

from stockwatch.schemas.quote import Quote
from stockwatch.schemas.watchlist import WatchlistEntry

DEFAULT_SORT_OPTION = "symbol"

_SORT_FIELDS: dict[str, tuple[Callable[[Quote], float], bool]] = {
    "price-asc": (lambda q: q.current_price, False),
    "price-desc": (lambda q: q.current_price, True),
    "change-asc": (lambda q: q.change, False),
    "change-desc": (lambda q: q.change, True),
    "percentChange-asc": (lambda q: q.percent_change, False),
    "percentChange-desc": (lambda q: q.percent_change, True),
}

SORT_OPTIONS = (DEFAULT_SORT_OPTION, *_SORT_FIELDS)


def sort_entries(entries: Iterable[WatchlistEntry], sort_option: str) -> list[WatchlistEntry]:
    """Sort by the given option; symbol order breaks ties and unquoted entries go last."""
    by_symbol = sorted(entries, key=lambda e: e.symbol.casefold())
    sort_field = _SORT_FIELDS.get(sort_option)
    if sort_field is None:
        return by_symbol

    field, descending = sort_field
    quoted = [e for e in by_symbol if e.quote is not None]
    unquoted = [e for e in by_symbol if e.quote is None]
    # sorted() is stable under reverse=True, so ties keep symbol order
    quoted = sorted(quoted, key=lambda e: field(e.quote), reverse=descending)
    return quoted + unquoted


def filter_entries(entries: Iterable[WatchlistEntry], filter_text: str) -> list[WatchlistEntry]:
    needle = (filter_text or "").casefold()
    if not needle:
        return list(entries)
    return [e for e in entries if needle in e.symbol.casefold()]


def project_watchlist(
    entries: Iterable[WatchlistEntry],
    sort_option: str = DEFAULT_SORT_OPTION,
    filter_text: str = "",
) -> list[WatchlistEntry]:
    return filter_entries(sort_entries(entries, sort_option), filter_text)
