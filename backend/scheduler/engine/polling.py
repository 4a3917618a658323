"""
Polling eligibility for the reconciliation loops.

Each loop asks two questions per match on every tick: is the match inside this
loop's time window, and has enough time passed since this loop last ran for
it. Windows are pure functions of (match, now); the "last run" bookkeeping is
an in-memory Debouncer per loop.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import Match
from shared.models.enums import MatchStatus

Window = Callable[[Match, datetime], bool]


def _starts_within(match: Match, now: datetime, window: timedelta) -> bool:
    return match.start_time - now <= window


def xi_window(settings: Settings | None = None) -> Window:
    """Starting within the XI window, or already in play."""
    window = timedelta(minutes=(settings or get_settings()).playing_xi_window_min)

    def eligible(match: Match, now: datetime) -> bool:
        if match.status.is_in_play:
            return True
        return match.status == MatchStatus.UPCOMING and _starts_within(match, now, window)

    return eligible


def verify_window(settings: Settings | None = None) -> Window:
    """Starting within the verify window, or live. A delayed match waits until play resumes."""
    window = timedelta(minutes=(settings or get_settings()).lineup_verify_window_min)

    def eligible(match: Match, now: datetime) -> bool:
        if match.status == MatchStatus.LIVE:
            return True
        return match.status == MatchStatus.UPCOMING and _starts_within(match, now, window)

    return eligible


def scorecard_window(settings: Settings | None = None) -> Window:
    """Live or delayed only; a completed match drops out on the next tick."""

    def eligible(match: Match, now: datetime) -> bool:
        return match.status.is_in_play

    return eligible


def status_window(settings: Settings | None = None) -> Window:
    window = timedelta(minutes=(settings or get_settings()).status_refresh_window_min)

    def eligible(match: Match, now: datetime) -> bool:
        if match.status.is_terminal:
            return False
        if match.status.is_in_play:
            return True
        return _starts_within(match, now, window)

    return eligible


def squad_window(settings: Settings | None = None) -> Window:
    window = timedelta(hours=(settings or get_settings()).squad_import_window_h)

    def eligible(match: Match, now: datetime) -> bool:
        return match.status == MatchStatus.UPCOMING and _starts_within(match, now, window)

    return eligible


class Debouncer:
    """Per-match "last run" ledger: a match is due once interval_s has passed since its last mark."""

    def __init__(self, interval_s: float) -> None:
        self._interval = timedelta(seconds=interval_s)
        self._last: dict[str, datetime] = {}

    def due(self, match_id: str, now: datetime) -> bool:
        last = self._last.get(match_id)
        return last is None or now - last >= self._interval

    def mark(self, match_id: str, now: datetime) -> None:
        self._last[match_id] = now

    def last_run(self, match_id: str) -> Optional[datetime]:
        return self._last.get(match_id)

    def retain(self, match_ids: Iterable[str]) -> None:
        """Keep only the given matches; the scheduler passes those still inside the loop's window."""
        keep = set(match_ids)
        for match_id in list(self._last):
            if match_id not in keep:
                del self._last[match_id]

    def __len__(self) -> int:
        return len(self._last)
