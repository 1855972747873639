from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, Protocol

from stockwatch.errors import StorageUnavailableError

WATCHLIST_STORAGE_KEY = "watchlist"

_SYMBOL_RE = re.compile(r"^[A-Z0-9^][A-Z0-9.\-^=]{0,14}$")


def canonical_symbol(value: str) -> str:
    return str(value).strip().upper()


def is_valid_symbol(symbol: str) -> bool:
    return bool(_SYMBOL_RE.match(symbol))


def dedup_symbols(values: Iterable) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        symbol = canonical_symbol(value)
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)
        out.append(symbol)
    return out


class WatchlistStore(Protocol):
    def load(self) -> list[str]: ...

    def save(self, symbols: list[str]) -> None: ...


class InMemoryWatchlistStore:
    def __init__(self, symbols: Iterable[str] = ()) -> None:
        self._symbols = dedup_symbols(symbols)
        self.saves = 0

    def load(self) -> list[str]:
        return list(self._symbols)

    def save(self, symbols: list[str]) -> None:
        self._symbols = dedup_symbols(symbols)
        self.saves += 1


class JsonFileWatchlistStore:
    """Key-value JSON file; the watchlist is one record holding symbol strings only.

    Reads and writes never raise to the caller. A missing, unreadable or corrupt
    file loads as an empty watchlist, and a failed write leaves the previous
    file untouched.
    """

    def __init__(self, path: str | Path, key: str = WATCHLIST_STORAGE_KEY) -> None:
        self.path = Path(path)
        self.key = key
        self.load_failures = 0
        self.save_failures = 0

    def _read_records(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageUnavailableError(f"read failed: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageUnavailableError(f"corrupt store: {exc}") from exc
        if not isinstance(records, dict):
            raise StorageUnavailableError("store root must be an object")
        return records

    def _write_records(self, records: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
        except OSError as exc:
            raise StorageUnavailableError(f"write failed: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageUnavailableError(f"write failed: {exc}") from exc

    def load(self) -> list[str]:
        try:
            records = self._read_records()
        except StorageUnavailableError as exc:
            self.load_failures += 1
            print(f"[STORE][load_failed] path={self.path} error={exc}", flush=True)
            return []

        stored = records.get(self.key)
        if not isinstance(stored, list):
            return []
        return [s for s in dedup_symbols(stored) if is_valid_symbol(s)]

    def save(self, symbols: list[str]) -> None:
        try:
            try:
                records = self._read_records()
            except StorageUnavailableError:
                # an unreadable store is overwritten rather than blocking the save
                records = {}
            records[self.key] = dedup_symbols(symbols)
            self._write_records(records)
        except StorageUnavailableError as exc:
            self.save_failures += 1
            print(f"[STORE][save_failed] path={self.path} error={exc}", flush=True)
