from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Protocol

from stockwatch.errors import RATE_LIMITED
from stockwatch.schemas.refresh import RefreshCycle
from stockwatch.services.quote_fanout import QuoteFanoutService, batch_aggregate_error
from stockwatch.services.watchlist import Watchlist

IDLE = "IDLE"
LOADING = "LOADING"
READY = "READY"
REFRESHING = "REFRESHING"
ERROR = "ERROR"

RATE_LIMIT_MESSAGE = "Too many requests: Rate limit exceeded. Please wait and try again."
FETCH_FAILED_MESSAGE = "Failed to load stock data"


class ScheduledHandle:
    def __init__(self, task: asyncio.Task, name: str) -> None:
        self._task = task
        self.name = name
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        self._task.cancel()


class Scheduler(Protocol):
    def schedule(self, period_sec: float, callback: Callable[[], Any], *, name: str = ...) -> Any: ...


class AsyncioScheduler:
    """Runs a callback every `period_sec` on the current event loop until cancelled."""

    def schedule(self, period_sec: float, callback: Callable[[], Any], *, name: str = "schedule") -> ScheduledHandle:
        if period_sec <= 0:
            raise ValueError("period_sec must be > 0")
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(period_sec, callback, name), name=name)
        return ScheduledHandle(task, name)

    @staticmethod
    async def _run(period_sec: float, callback: Callable[[], Any], name: str) -> None:
        while True:
            await asyncio.sleep(period_sec)
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                print(f"[REFRESH][callback_error] name={name} error={exc}", flush=True)


class RefreshController:
    """Drives periodic watchlist refreshes and the countdown shown between them.

    States: IDLE -> LOADING -> READY <-> REFRESHING, READY/REFRESHING -> ERROR on
    a total batch failure, ERROR -> REFRESHING on the next fetch tick.

    Two timers run while mounted: the fetch timer (`interval_sec`) and the
    display timer (`tick_sec`). Both start together and the display timer is
    restarted on every fetch tick. Add/remove on the watchlist never touches
    either timer. A refresh result is applied only if no newer refresh started
    and the controller was not unmounted in the meantime.
    """

    def __init__(
        self,
        *,
        watchlist: Watchlist,
        fanout: QuoteFanoutService,
        scheduler: Scheduler | None = None,
        interval_sec: float = 60.0,
        tick_sec: float = 1.0,
    ) -> None:
        self.watchlist = watchlist
        self.fanout = fanout
        self.scheduler = scheduler or AsyncioScheduler()
        self.interval_sec = interval_sec
        self.tick_sec = tick_sec

        self.state = IDLE
        self.error_message: str | None = None
        self.cycle = RefreshCycle(interval_sec=interval_sec)

        self._fetch_handle: Any = None
        self._tick_handle: Any = None
        self._refresh_token = 0
        self._mounted = False
        self._disposed = False
        self._pending: set[asyncio.Task] = set()

        self.refreshes = 0
        self.discarded_results = 0
        self.errors = 0
        self.last_refresh_ts: int | None = None

    @property
    def mounted(self) -> bool:
        return self._mounted

    def _start_tick_timer(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
        self._tick_handle = self.scheduler.schedule(self.tick_sec, self._on_display_tick, name="watchlist-countdown")

    def mount(self) -> None:
        if self._mounted:
            return
        self._mounted = True
        self._disposed = False
        self.state = LOADING
        self.error_message = None
        self.cycle.reset()

        self._fetch_handle = self.scheduler.schedule(self.interval_sec, self._on_fetch_tick, name="watchlist-refresh")
        self._start_tick_timer()
        print(
            f"[REFRESH][mount] symbols={len(self.watchlist)} interval_sec={self.interval_sec} tick_sec={self.tick_sec}",
            flush=True,
        )

        if not len(self.watchlist):
            self.state = READY
            return
        self._spawn_refresh()

    def unmount(self) -> None:
        if not self._mounted:
            return
        self._mounted = False
        self._disposed = True
        # invalidates whatever refresh is still in flight
        self._refresh_token += 1
        for handle in (self._fetch_handle, self._tick_handle):
            if handle is not None:
                handle.cancel()
        self._fetch_handle = None
        self._tick_handle = None
        print(f"[REFRESH][unmount] pending={len(self._pending)}", flush=True)

    def _on_fetch_tick(self) -> None:
        if self._disposed:
            return
        self.cycle.reset()
        self._start_tick_timer()
        self._spawn_refresh()

    def _on_display_tick(self) -> None:
        if self._disposed:
            return
        self.cycle.advance(self.tick_sec)

    def _spawn_refresh(self) -> None:
        task = asyncio.get_running_loop().create_task(self._run_refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_refresh(self) -> None:
        try:
            await self.refresh()
        except Exception as exc:
            self.errors += 1
            print(f"[REFRESH][refresh_error] error={exc}", flush=True)

    async def refresh(self) -> str:
        if self._disposed:
            return self.state

        self._refresh_token += 1
        token = self._refresh_token
        symbols = self.watchlist.symbols()
        if not symbols:
            self.state = READY
            self.error_message = None
            return self.state

        if self.state != LOADING:
            self.state = REFRESHING

        report = await self.fanout.fetch_all(symbols)

        if token != self._refresh_token or self._disposed:
            self.discarded_results += 1
            print(f"[REFRESH][discard_stale] token={token} current={self._refresh_token}", flush=True)
            return self.state

        outcome = self.watchlist.reconcile(report)
        self.refreshes += 1
        self.last_refresh_ts = int(time.time())

        # judged on what is still watched, symbols removed mid-flight do not count
        remaining_errors = [err for err in report.errors if err.symbol in self.watchlist]
        aggregate = batch_aggregate_error(remaining_errors, len(remaining_errors) + outcome["updated"])
        if aggregate is not None:
            self.state = ERROR
            self.error_message = RATE_LIMIT_MESSAGE if aggregate == RATE_LIMITED else FETCH_FAILED_MESSAGE
        else:
            self.state = READY
            self.error_message = None

        print(
            f"[REFRESH][reconciled] state={self.state} updated={outcome['updated']} "
            f"flagged={outcome['flagged']} dropped={outcome['dropped']}",
            flush=True,
        )
        return self.state

    async def wait_pending(self, timeout: float | None = None) -> None:
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=timeout)

    async def cancel_pending(self) -> int:
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)

    def status(self) -> dict:
        return {
            "state": self.state,
            "error": self.error_message,
            "refresh": self.cycle.snapshot(),
        }

    def metrics(self) -> dict:
        return {
            "state": self.state,
            "mounted": self._mounted,
            "refreshes": self.refreshes,
            "discarded_results": self.discarded_results,
            "refresh_errors": self.errors,
            "last_refresh_ts": self.last_refresh_ts,
            "pending_refreshes": len(self._pending),
        }
