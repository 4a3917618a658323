"""
Unit tests for loop windows, debouncing and the scheduler tick.

Run: pytest backend/tests/test_scheduler.py -v
"""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Callable, Optional

import pytest

from shared.models.domain import Match, ProviderEvent
from shared.models.enums import MatchStatus, ProviderName

from ingest.providers.api_cricket import ApiCricketProvider
from ingest.providers.cricapi import CricApiProvider
from ingest.providers.cricbuzz import CricbuzzProvider
from ingest.providers.registry import ProviderRegistry
from scheduler.engine.polling import (
    Debouncer,
    scorecard_window,
    squad_window,
    status_window,
    verify_window,
    xi_window,
)
from scheduler.service import Loop, ReconciliationScheduler, build_loops, build_router
from scheduler.status import StatusRefresher

from conftest import NOW, InMemoryRepository, StubProvider, make_match


def upcoming_in(delta: timedelta, match_id: str = "m1") -> Match:
    return make_match(match_id, status=MatchStatus.UPCOMING, start_time=NOW + delta)


# ── Windows ─────────────────────────────────────────────────────────────

def test_xi_window(settings) -> None:
    eligible = xi_window(settings)
    assert eligible(upcoming_in(timedelta(minutes=20)), NOW)
    assert not eligible(upcoming_in(timedelta(minutes=21)), NOW)
    assert eligible(make_match(status=MatchStatus.LIVE), NOW)
    assert eligible(make_match(status=MatchStatus.DELAYED), NOW)
    assert not eligible(make_match(status=MatchStatus.COMPLETED), NOW)


def test_verify_window_is_narrower(settings) -> None:
    eligible = verify_window(settings)
    assert eligible(upcoming_in(timedelta(minutes=10)), NOW)
    assert not eligible(upcoming_in(timedelta(minutes=15)), NOW)
    assert eligible(make_match(status=MatchStatus.LIVE), NOW)
    assert not eligible(make_match(status=MatchStatus.DELAYED), NOW)


@pytest.mark.parametrize(
    "status, expected",
    [
        (MatchStatus.LIVE, True),
        (MatchStatus.DELAYED, True),
        (MatchStatus.UPCOMING, False),
        (MatchStatus.COMPLETED, False),
    ],
)
def test_scorecard_window(settings, status: MatchStatus, expected: bool) -> None:
    assert scorecard_window(settings)(make_match(status=status), NOW) is expected


def test_status_window(settings) -> None:
    eligible = status_window(settings)
    assert eligible(upcoming_in(timedelta(minutes=30)), NOW)
    assert not eligible(upcoming_in(timedelta(hours=2)), NOW)
    # Past its start time but still marked upcoming
    assert eligible(upcoming_in(timedelta(minutes=-45)), NOW)
    assert eligible(make_match(status=MatchStatus.LIVE), NOW)
    assert not eligible(make_match(status=MatchStatus.COMPLETED), NOW)


def test_squad_window(settings) -> None:
    eligible = squad_window(settings)
    assert eligible(upcoming_in(timedelta(hours=47)), NOW)
    assert not eligible(upcoming_in(timedelta(hours=49)), NOW)
    assert not eligible(make_match(status=MatchStatus.LIVE), NOW)


# ── Debouncer ───────────────────────────────────────────────────────────

class TestDebouncer:

    def test_first_run_is_due(self) -> None:
        assert Debouncer(120).due("m1", NOW)

    def test_waits_for_interval(self) -> None:
        d = Debouncer(120)
        d.mark("m1", NOW)
        assert not d.due("m1", NOW + timedelta(seconds=119))
        assert d.due("m1", NOW + timedelta(seconds=120))
        assert d.last_run("m1") == NOW

    def test_matches_are_independent(self) -> None:
        d = Debouncer(120)
        d.mark("m1", NOW)
        assert d.due("m2", NOW)

    def test_forgets_unknown_matches(self) -> None:
        d = Debouncer(60)
        d.mark("m1", NOW)
        d.mark("m2", NOW)
        d.retain(["m2"])
        assert len(d) == 1
        assert d.due("m1", NOW)


# ── Tick ────────────────────────────────────────────────────────────────

class Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, MatchStatus]] = []

    def job(
        self,
        name: str,
        returns: Optional[Callable[[Match], Any]] = None,
        raises: Optional[Exception] = None,
    ):
        async def run(match: Match) -> Any:
            self.calls.append((name, match.id, match.status))
            if raises is not None:
                raise raises
            return returns(match) if returns else None
        return run


def always(match: Match, now) -> bool:
    return True


@pytest.mark.asyncio
async def test_status_change_decides_later_loops(settings) -> None:
    rec = Recorder()
    repo = InMemoryRepository(matches=[make_match("m1"), upcoming_in(timedelta(days=3), "m2")])
    loops = [
        Loop(
            "status_refresh",
            status_window(settings),
            Debouncer(60),
            rec.job("status_refresh", returns=lambda m: m.model_copy(update={"status": MatchStatus.COMPLETED})),
        ),
        Loop("scorecard_sync", scorecard_window(settings), Debouncer(60), rec.job("scorecard_sync")),
    ]
    scheduler = ReconciliationScheduler(repo, loops, settings, now_fn=lambda: NOW)

    counts = await scheduler.tick()

    assert rec.calls == [("status_refresh", "m1", MatchStatus.LIVE)]
    assert counts == {"status_refresh": 1, "scorecard_sync": 0}
    assert scheduler.last_tick_at == NOW


@pytest.mark.asyncio
async def test_loops_run_in_order_per_match(settings) -> None:
    rec = Recorder()
    repo = InMemoryRepository(matches=[make_match("m1")])
    names = ["squad_import", "status_refresh", "playing_xi", "lineup_verify", "scorecard_sync"]
    loops = [Loop(n, always, Debouncer(60), rec.job(n)) for n in names]

    await ReconciliationScheduler(repo, loops, settings, now_fn=lambda: NOW).tick()

    assert [c[0] for c in rec.calls] == names


@pytest.mark.asyncio
async def test_failing_job_does_not_stop_others(settings) -> None:
    rec = Recorder()
    repo = InMemoryRepository(matches=[make_match("m1"), make_match("m2")])
    loops = [
        Loop("playing_xi", always, Debouncer(60), rec.job("playing_xi", raises=RuntimeError("boom"))),
        Loop("scorecard_sync", always, Debouncer(60), rec.job("scorecard_sync")),
    ]

    counts = await ReconciliationScheduler(repo, loops, settings, now_fn=lambda: NOW).tick()

    assert counts == {"playing_xi": 2, "scorecard_sync": 2}
    assert sorted(c[:2] for c in rec.calls if c[0] == "scorecard_sync") == [
        ("scorecard_sync", "m1"),
        ("scorecard_sync", "m2"),
    ]


@pytest.mark.asyncio
async def test_debounced_loop_skips_until_interval(settings) -> None:
    rec = Recorder()
    now = [NOW]
    repo = InMemoryRepository(matches=[make_match("m1")])
    loops = [Loop("scorecard_sync", always, Debouncer(120), rec.job("scorecard_sync"))]
    scheduler = ReconciliationScheduler(repo, loops, settings, now_fn=lambda: now[0])

    await scheduler.tick()
    now[0] = NOW + timedelta(seconds=30)
    await scheduler.tick()
    now[0] = NOW + timedelta(seconds=120)
    await scheduler.tick()

    assert len(rec.calls) == 2


@pytest.mark.asyncio
async def test_ledgers_drop_matches_that_leave_the_window(settings) -> None:
    repo = InMemoryRepository(matches=[make_match("m1"), make_match("m2")])
    debouncer = Debouncer(60)
    loops = [Loop("scorecard_sync", scorecard_window(settings), debouncer, Recorder().job("scorecard_sync"))]
    scheduler = ReconciliationScheduler(repo, loops, settings, now_fn=lambda: NOW)

    await scheduler.tick()
    assert len(debouncer) == 2

    repo.matches["m1"] = make_match("m1", status=MatchStatus.COMPLETED)
    await scheduler.tick()

    assert len(debouncer) == 1
    assert debouncer.last_run("m1") is None


@pytest.mark.asyncio
async def test_fan_out_is_bounded(settings) -> None:
    settings = settings.model_copy(update={"max_concurrent_matches": 2})
    repo = InMemoryRepository(matches=[make_match(f"m{i}") for i in range(5)])
    in_flight = 0
    peak = 0

    async def slow(match: Match) -> None:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1

    loops = [Loop("scorecard_sync", always, Debouncer(60), slow)]
    counts = await ReconciliationScheduler(repo, loops, settings, now_fn=lambda: NOW).tick()

    assert counts == {"scorecard_sync": 5}
    assert peak == 2


@pytest.mark.asyncio
async def test_started_match_reaches_scorecard_sync_while_status_lags(settings) -> None:
    rec = Recorder()
    repo = InMemoryRepository(matches=[upcoming_in(timedelta(hours=-2))])
    lagging = StubProvider(
        ProviderName.CRICAPI,
        event=ProviderEvent(
            provider=ProviderName.CRICAPI,
            provider_match_id="cric-1",
            started=False,
            status_text="Match starts at 12:00 GMT",
        ),
    )
    refresher = StatusRefresher(repo, [lagging], now_fn=lambda: NOW)
    loops = [
        Loop("status_refresh", status_window(settings), Debouncer(60), refresher.refresh),
        Loop("scorecard_sync", scorecard_window(settings), Debouncer(60), rec.job("scorecard_sync")),
    ]

    counts = await ReconciliationScheduler(repo, loops, settings, now_fn=lambda: NOW).tick()

    assert counts == {"status_refresh": 1, "scorecard_sync": 1}
    assert rec.calls == [("scorecard_sync", "m1", MatchStatus.LIVE)]
    assert repo.matches["m1"].status == MatchStatus.LIVE


@pytest.mark.asyncio
async def test_request_shutdown_stops_run(settings) -> None:
    repo = InMemoryRepository()
    scheduler = ReconciliationScheduler(repo, [], settings, now_fn=lambda: NOW)
    scheduler.request_shutdown()
    await scheduler.run()
    assert scheduler.last_tick_at is None


# ── Wiring ──────────────────────────────────────────────────────────────

def registry_for(settings) -> ProviderRegistry:
    router = build_router(settings)
    return ProviderRegistry(
        {
            ProviderName.CRICAPI: CricApiProvider(router, settings),
            ProviderName.CRICBUZZ: CricbuzzProvider(router, settings),
            ProviderName.API_CRICKET: ApiCricketProvider(router, settings),
        },
        router,
    )


def test_build_loops_with_every_provider(settings) -> None:
    loops = build_loops(InMemoryRepository(), registry_for(settings), settings)
    assert [loop.name for loop in loops] == [
        "squad_import", "status_refresh", "playing_xi", "lineup_verify", "scorecard_sync",
    ]


def test_build_loops_without_secondary_key(settings) -> None:
    settings = settings.model_copy(update={"cricbuzz_rapidapi_key": ""})
    loops = build_loops(InMemoryRepository(), registry_for(settings), settings)
    assert "lineup_verify" not in [loop.name for loop in loops]
