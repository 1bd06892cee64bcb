"""Unit tests for auth/reclaimer.py -- periodic sweeps over auth state.

Covers:
- run_once sweeps refresh tokens, limiter records and the blacklist together
- A running reclaimer clears the blacklist on its interval
- stop() ends every loop and is safe to call twice or before start()
- A failing sweep is logged and does not kill its loop

Async tests drive their own event loop with asyncio.run so no pytest plugin
is needed.
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from auth.blacklist import TokenBlacklist
from auth.ratelimit import LOCKOUT_MS, LoginRateLimiter
from auth.reclaimer import Reclaimer
from auth.refresh import RefreshTokenStore
from support import REFRESH_MS, FakeClock


def _reclaimer(clock: FakeClock, **intervals: float) -> tuple[Reclaimer, RefreshTokenStore, LoginRateLimiter, TokenBlacklist]:
    store = RefreshTokenStore(expiration_ms=REFRESH_MS, clock=clock)
    limiter = LoginRateLimiter(clock=clock)
    blacklist = TokenBlacklist()
    reclaimer = Reclaimer(refresh_store=store, rate_limiter=limiter, blacklist=blacklist, **intervals)
    return reclaimer, store, limiter, blacklist


class TestRunOnce:
    def test_sweeps_all_three_stores(self, clock: FakeClock) -> None:
        reclaimer, store, limiter, blacklist = _reclaimer(clock)
        store.mint("admin", "DEVELOPER")
        for _ in range(5):
            limiter.record_failed_attempt("10.0.0.1")
        blacklist.add("jti-1")
        blacklist.add("jti-2")

        clock.advance(max(REFRESH_MS, LOCKOUT_MS) + 1)

        assert reclaimer.run_once() == {"refresh": 1, "limiter": 1, "blacklist": 2}
        assert len(store) == len(limiter) == len(blacklist) == 0

    def test_live_state_survives(self, clock: FakeClock) -> None:
        reclaimer, store, limiter, _ = _reclaimer(clock)
        store.mint("admin", "DEVELOPER")
        limiter.record_failed_attempt("10.0.0.1")

        counts = reclaimer.run_once()

        assert counts["refresh"] == 0
        assert counts["limiter"] == 0
        assert len(store) == 1
        assert len(limiter) == 1


class TestScheduling:
    def test_blacklist_is_cleared_on_interval(self, clock: FakeClock) -> None:
        reclaimer, _, _, blacklist = _reclaimer(
            clock, refresh_interval=60, limiter_interval=60, blacklist_interval=0.01
        )

        async def scenario() -> None:
            blacklist.add("jti-1")
            reclaimer.start()
            assert reclaimer.running
            for _ in range(100):
                if len(blacklist) == 0:
                    break
                await asyncio.sleep(0.01)
            await reclaimer.stop()

        asyncio.run(scenario())
        assert len(blacklist) == 0
        assert not reclaimer.running

    def test_stop_returns_promptly_with_long_intervals(self, clock: FakeClock) -> None:
        """stop() must not wait for the next tick of a 1-hour sweep."""
        reclaimer, _, _, _ = _reclaimer(clock)

        async def scenario() -> None:
            reclaimer.start()
            await asyncio.wait_for(reclaimer.stop(), timeout=1)

        asyncio.run(scenario())
        assert not reclaimer.running

    def test_stop_is_idempotent(self, clock: FakeClock) -> None:
        reclaimer, _, _, _ = _reclaimer(clock)

        async def scenario() -> None:
            await reclaimer.stop()
            reclaimer.start()
            await reclaimer.stop()
            await reclaimer.stop()

        asyncio.run(scenario())

    def test_failing_sweep_is_logged_and_loop_continues(
        self, clock: FakeClock, caplog: pytest.LogCaptureFixture
    ) -> None:
        reclaimer, _, _, _ = _reclaimer(clock, refresh_interval=60, limiter_interval=60, blacklist_interval=0.01)
        calls: list[int] = []

        def flaky() -> int:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        reclaimer._sweeps[2] = ("blacklist", 0.01, flaky)

        async def scenario() -> None:
            reclaimer.start()
            for _ in range(100):
                if len(calls) >= 2:
                    break
                await asyncio.sleep(0.01)
            await reclaimer.stop()

        with caplog.at_level(logging.ERROR, logger="trackerauth.reclaimer"):
            asyncio.run(scenario())

        assert len(calls) >= 2
        assert any("blacklist" in r.getMessage() for r in caplog.records)
