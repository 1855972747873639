from __future__ import annotations

from stockwatch.schemas.watchlist import FetchReport, WatchlistEntry
from stockwatch.services.watchlist_store import (
    WatchlistStore,
    canonical_symbol,
    dedup_symbols,
    is_valid_symbol,
)


class Watchlist:
    """Insertion-ordered, duplicate-free symbol entries, written through to a store.

    New symbols start without a quote and pick one up on the next refresh.
    """

    def __init__(self, store: WatchlistStore) -> None:
        self.store = store
        self._entries: dict[str, WatchlistEntry] = {}
        for symbol in dedup_symbols(store.load()):
            self._entries[symbol] = WatchlistEntry(symbol=symbol)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and canonical_symbol(symbol) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def symbols(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[WatchlistEntry]:
        return list(self._entries.values())

    def get(self, symbol: str) -> WatchlistEntry | None:
        return self._entries.get(canonical_symbol(symbol))

    def _persist(self) -> None:
        self.store.save(self.symbols())

    def add(self, symbol: str) -> bool:
        key = canonical_symbol(symbol)
        if not is_valid_symbol(key):
            raise ValueError("INVALID_SYMBOL")
        if key in self._entries:
            return False
        self._entries[key] = WatchlistEntry(symbol=key)
        self._persist()
        print(f"[WATCHLIST][add] symbol={key} size={len(self._entries)}", flush=True)
        return True

    def remove(self, symbol: str) -> bool:
        key = canonical_symbol(symbol)
        if self._entries.pop(key, None) is None:
            return False
        self._persist()
        print(f"[WATCHLIST][remove] symbol={key} size={len(self._entries)}", flush=True)
        return True

    def reconcile(self, report: FetchReport) -> dict[str, int]:
        fresh = {entry.symbol: entry for entry in report.entries}
        failed = {err.symbol: err.kind for err in report.errors}

        updated = 0
        flagged = 0
        for symbol, current in list(self._entries.items()):
            if symbol in fresh:
                self._entries[symbol] = fresh[symbol]
                updated += 1
            elif symbol in failed:
                self._entries[symbol] = current.model_copy(update={"last_error": failed[symbol]})
                flagged += 1

        # results for symbols removed while the fetch was in flight are dropped
        dropped = sum(1 for s in (*fresh, *failed) if s not in self._entries)
        return {"updated": updated, "flagged": flagged, "dropped": dropped}
