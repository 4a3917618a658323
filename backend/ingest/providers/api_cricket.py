"""
api-cricket.com provider connector.

Regional fallback. There is no per-match endpoint: one get_events call over a
date range returns every event with its lineups and scorecard embedded, and
the fixture is picked out by team names. Event dates are local to the venue,
so lookups search one day either side of the fixture's UTC date.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.models.domain import (
    FieldingEvent,
    FixtureRef,
    LineupEntry,
    ProviderEvent,
    ProviderLineup,
    ProviderScorecard,
    ScorecardInning,
)
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import (
    build_batting,
    build_bowling,
    fixture_matches,
    parse_timestamp,
    safe_str,
    team_short_for,
)
from ingest.providers.base import BaseProvider
from ingest.providers.registry import CredentialRouter

logger = get_logger(__name__)

_NOT_STARTED = ("", "not started", "scheduled", "postponed", "cancelled")
_FINISHED = ("finished", "ended", "completed")


def _event_start(event: dict[str, Any]):
    day = safe_str(event.get("event_date_start"))
    if not day:
        return None
    clock = safe_str(event.get("event_time")) or "00:00"
    return parse_timestamp(f"{day}T{clock}")


def parse_event(event: dict[str, Any]) -> Optional[ProviderEvent]:
    if not event.get("event_key"):
        return None
    home = safe_str(event.get("event_home_team"))
    away = safe_str(event.get("event_away_team"))
    status = safe_str(event.get("event_status"))
    scorecard = event.get("scorecard")
    return ProviderEvent(
        provider=ProviderName.API_CRICKET,
        provider_match_id=safe_str(event["event_key"]),
        series_id=safe_str(event.get("league_key")) or None,
        name=safe_str(event.get("league_name")),
        team1=home,
        team1_short=team_short_for(home),
        team2=away,
        team2_short=team_short_for(away),
        start_time=_event_start(event),
        started=status.lower() not in _NOT_STARTED,
        ended=status.lower() in _FINISHED,
        status_text=safe_str(event.get("event_status_info")) or status,
        has_score=bool(scorecard),
    )


def _side(lineups: dict[str, Any], side: str) -> list[LineupEntry]:
    starting = (lineups.get(side) or {}).get("starting_lineups") or []
    return [
        LineupEntry(player_name=safe_str(p.get("player")), provider_player_id=safe_str(p.get("player_key")) or None)
        for p in starting
        if isinstance(p, dict) and safe_str(p.get("player"))
    ]


def parse_lineup(event: dict[str, Any]) -> Optional[ProviderLineup]:
    lineups = event.get("lineups") or {}
    home, away = _side(lineups, "home_team"), _side(lineups, "away_team")
    if not home and not away:
        return None
    return ProviderLineup(
        provider=ProviderName.API_CRICKET,
        provider_match_id=safe_str(event.get("event_key")) or None,
        home=home,
        away=away,
    )


def parse_scorecard_innings(scorecard: Any) -> list[ScorecardInning]:
    """Scorecard rows grouped per innings; rows are typed "Batsman" or "Bowler"."""
    if isinstance(scorecard, list):
        grouped: dict[str, list[dict[str, Any]]] = {}
        for row in scorecard:
            if isinstance(row, dict):
                grouped.setdefault(safe_str(row.get("innings")), []).append(row)
        scorecard = grouped
    if not isinstance(scorecard, dict):
        return []

    innings = []
    for label, rows in scorecard.items():
        batting = []
        bowling = []
        fielding: list[FieldingEvent] = []
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            kind = safe_str(row.get("type")).lower()
            pid = safe_str(row.get("player_key")) or None
            if kind == "batsman":
                bat, events = build_batting(
                    row.get("player"), pid, row.get("R"), row.get("B"),
                    row.get("4s"), row.get("6s"), row.get("SR"), row.get("status"),
                )
                batting.append(bat)
                fielding.extend(events)
            elif kind == "bowler":
                bowling.append(
                    build_bowling(row.get("player"), pid, row.get("O"), row.get("M"), row.get("R"), row.get("W"), row.get("ER"))
                )
        innings.append(ScorecardInning(label=label, batting=batting, bowling=bowling, fielding=fielding))
    return innings


class ApiCricketProvider(BaseProvider):
    """api-cricket.com data provider connector."""

    def __init__(
        self,
        router: CredentialRouter,
        settings: Settings | None = None,
        http_client: ProviderHTTPClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._league_key = settings.api_cricket_league_key
        super().__init__(
            name=ProviderName.API_CRICKET,
            http_client=http_client or ProviderHTTPClient(
                provider_name=ProviderName.API_CRICKET.value,
                base_url=settings.api_cricket_base_url,
            ),
            router=router,
        )

    async def _events(self, key: str, date_from: date, date_to: date) -> list[dict[str, Any]]:
        params = {
            "APIkey": key,
            "method": "get_events",
            "date_start": date_from.isoformat(),
            "date_stop": date_to.isoformat(),
        }
        if self._league_key:
            params["league_key"] = self._league_key
        body = await self._http.get_json("", params=params)
        if not isinstance(body, dict):
            return []
        ok = body.get("success") == 1 and str(body.get("error", "0")) != "1"
        if not ok:
            result = body.get("result")
            reason = result[0].get("msg") if isinstance(result, list) and result and isinstance(result[0], dict) else body
            self.check_failure(False, reason)
            return []
        return [e for e in body.get("result") or [] if isinstance(e, dict)]

    async def _find(self, key: str, fixture: FixtureRef) -> Optional[dict[str, Any]]:
        day = fixture.start_time.date()
        for event in await self._events(key, day - timedelta(days=1), day + timedelta(days=1)):
            if fixture_matches(
                safe_str(event.get("event_home_team")),
                safe_str(event.get("event_away_team")),
                (fixture.team1_short, fixture.team1),
                (fixture.team2_short, fixture.team2),
            ):
                return event
        logger.debug(
            "api_cricket_fixture_not_found",
            team1=fixture.team1_short,
            team2=fixture.team2_short,
            date=day.isoformat(),
        )
        return None

    async def _list_matches(self, key: str, date_from: date, date_to: date) -> Optional[list[ProviderEvent]]:
        parsed = (parse_event(e) for e in await self._events(key, date_from, date_to))
        return [e for e in parsed if e is not None]

    async def _fetch_match_status(self, key: str, fixture: FixtureRef) -> Optional[ProviderEvent]:
        event = await self._find(key, fixture)
        return parse_event(event) if event else None

    async def _fetch_lineup(self, key: str, fixture: FixtureRef) -> Optional[ProviderLineup]:
        event = await self._find(key, fixture)
        return parse_lineup(event) if event else None

    async def _fetch_scorecard(self, key: str, fixture: FixtureRef) -> Optional[ProviderScorecard]:
        event = await self._find(key, fixture)
        if not event or not event.get("scorecard"):
            return None
        status = safe_str(event.get("event_status"))
        return ProviderScorecard(
            provider=self._name,
            provider_match_id=safe_str(event.get("event_key")) or None,
            innings=parse_scorecard_innings(event["scorecard"]),
            status_text=safe_str(event.get("event_status_info")) or status,
            ended=status.lower() in _FINISHED,
        )
