"""
auth/reclaimer.py -- Periodic sweeps over the in-memory auth state.

Three sweeps, each on its own fixed interval and independent of traffic:
  refresh    -- delete refresh tokens past their expiry
  limiter    -- delete login-attempt records whose lock or window has passed
  blacklist  -- clear the whole jti blacklist (entries carry no expiry)

Each sweep runs as an asyncio task started in the FastAPI lifespan. stop()
sets an event that the tasks wait on between ticks: no new sweep starts after
it, and a sweep already running completes first because sweeps never await.
A failing sweep is logged and the loop keeps going.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from auth.blacklist import TokenBlacklist
from auth.ratelimit import LoginRateLimiter
from auth.refresh import RefreshTokenStore

logger = logging.getLogger("trackerauth.reclaimer")


class Reclaimer:
    def __init__(
        self,
        *,
        refresh_store: RefreshTokenStore,
        rate_limiter: LoginRateLimiter,
        blacklist: TokenBlacklist,
        refresh_interval: float = 3600,
        limiter_interval: float = 60,
        blacklist_interval: float = 3600,
    ) -> None:
        self._sweeps: list[tuple[str, float, Callable[[], int]]] = [
            ("refresh", refresh_interval, refresh_store.purge_expired),
            ("limiter", limiter_interval, rate_limiter.purge_expired),
            ("blacklist", blacklist_interval, blacklist.clear),
        ]
        self._stopping: asyncio.Event | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Schedule the sweep loops on the running event loop."""
        if self._tasks:
            return
        self._stopping = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._loop(name, interval, sweep), name=f"reclaimer-{name}")
            for name, interval, sweep in self._sweeps
        ]
        logger.info("Reclaimer started (%s)", ", ".join(f"{n}={i:g}s" for n, i, _ in self._sweeps))

    async def stop(self) -> None:
        """Stop issuing ticks and wait for the loops to exit."""
        if self._stopping is None:
            return
        self._stopping.set()
        await asyncio.gather(*self._tasks)
        self._tasks = []
        self._stopping = None
        logger.info("Reclaimer stopped")

    def run_once(self) -> dict[str, int]:
        """Run every sweep now. Returns removed counts keyed by sweep name."""
        return {name: self._run(name, sweep) for name, _, sweep in self._sweeps}

    async def _loop(self, name: str, interval: float, sweep: Callable[[], int]) -> None:
        stopping = self._stopping
        while True:
            try:
                await asyncio.wait_for(stopping.wait(), timeout=interval)
                return
            except asyncio.TimeoutError:
                pass
            self._run(name, sweep)

    def _run(self, name: str, sweep: Callable[[], int]) -> int:
        try:
            removed = sweep()
        except Exception:
            logger.exception("Reclaimer sweep %r failed", name)
            return 0
        if removed:
            logger.info("Reclaimer sweep %r removed %d entr%s", name, removed, "y" if removed == 1 else "ies")
        else:
            logger.debug("Reclaimer sweep %r removed nothing", name)
        return removed
