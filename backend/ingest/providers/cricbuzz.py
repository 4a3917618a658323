"""
Cricbuzz (RapidAPI) provider connector.

Secondary source. Cricbuzz has its own match ids, so every fixture lookup
walks the live, recent and upcoming listings for the pair of teams on the
fixture's date. Lineups are only trusted once the match is in progress or
complete, when the scorecard shows who actually took the field.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.models.domain import (
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
    parse_timestamp,
    safe_str,
    team_matches,
)
from ingest.providers.base import BaseProvider
from ingest.providers.registry import CredentialRouter

logger = get_logger(__name__)

LISTINGS = ("/matches/v1/live", "/matches/v1/recent", "/matches/v1/upcoming")
IN_PROGRESS = "In Progress"
COMPLETE = "Complete"


def extract_match_infos(data: Any) -> list[dict[str, Any]]:
    """Flatten typeMatches → seriesMatches → seriesAdWrapper.matches → matchInfo."""
    out: list[dict[str, Any]] = []
    if not isinstance(data, dict):
        return out
    for type_match in data.get("typeMatches") or []:
        for series in type_match.get("seriesMatches") or []:
            wrapper = series.get("seriesAdWrapper") or {}
            for m in wrapper.get("matches") or []:
                info = m.get("matchInfo")
                if isinstance(info, dict):
                    out.append(info)
    return out


def parse_match_info(info: dict[str, Any]) -> Optional[ProviderEvent]:
    if not info.get("matchId"):
        return None
    team1 = info.get("team1") or {}
    team2 = info.get("team2") or {}
    venue = info.get("venueInfo") or {}
    state = safe_str(info.get("state"))
    return ProviderEvent(
        provider=ProviderName.CRICBUZZ,
        provider_match_id=safe_str(info["matchId"]),
        series_id=safe_str(info.get("seriesId")) or None,
        name=safe_str(info.get("matchDesc")),
        team1=safe_str(team1.get("teamName")),
        team1_short=safe_str(team1.get("teamSName")),
        team2=safe_str(team2.get("teamName")),
        team2_short=safe_str(team2.get("teamSName")),
        venue=", ".join(v for v in (safe_str(venue.get("ground")), safe_str(venue.get("city"))) if v),
        start_time=parse_timestamp(info.get("startDate")),
        started=state in (IN_PROGRESS, COMPLETE),
        ended=state == COMPLETE,
        status_text=safe_str(info.get("status")),
        has_score=state in (IN_PROGRESS, COMPLETE),
    )


def is_fixture(event: ProviderEvent, fixture: FixtureRef) -> bool:
    """Same two teams, either order, starting on the fixture's UTC date."""
    teams = (
        team_matches(event.team1_short, fixture.team1_short, fixture.team1)
        and team_matches(event.team2_short, fixture.team2_short, fixture.team2)
    ) or (
        team_matches(event.team1_short, fixture.team2_short, fixture.team2)
        and team_matches(event.team2_short, fixture.team1_short, fixture.team1)
    )
    if not teams:
        return False
    if event.start_time is None:
        return True
    return event.start_time.date() == fixture.start_time.date()


def parse_scorecard_innings(data: dict[str, Any]) -> list[ScorecardInning]:
    innings = []
    for sc in data.get("scoreCard") or []:
        team = safe_str((sc.get("batTeamDetails") or {}).get("batTeamName"))
        batting = []
        fielding = []
        for bat in _rows(sc.get("batsman") or (sc.get("batTeamDetails") or {}).get("batsmenData")):
            row, events = build_batting(
                bat.get("batName"),
                safe_str(bat.get("batId")) or None,
                bat.get("runs"),
                bat.get("balls"),
                bat.get("fours"),
                bat.get("sixes"),
                bat.get("strikeRate"),
                bat.get("outDesc"),
            )
            batting.append(row)
            fielding.extend(events)
        bowling = [
            build_bowling(
                bowl.get("bowlName"),
                safe_str(bowl.get("bowlId")) or None,
                bowl.get("overs"),
                bowl.get("maidens"),
                bowl.get("runs"),
                bowl.get("wickets"),
                bowl.get("economy"),
            )
            for bowl in _rows(sc.get("bowler") or (sc.get("bowlTeamDetails") or {}).get("bowlersData"))
        ]
        innings.append(
            ScorecardInning(
                label=f"{team} Inning" if team else f"Innings {sc.get('inningsId', len(innings) + 1)}",
                batting=batting,
                bowling=bowling,
                fielding=fielding,
            )
        )
    return innings


def _rows(raw: Any) -> list[dict[str, Any]]:
    # Older payloads key rows by "bat_1", "bowl_1"...
    if isinstance(raw, dict):
        raw = list(raw.values())
    return [r for r in raw or [] if isinstance(r, dict)]


class CricbuzzProvider(BaseProvider):
    """Cricbuzz RapidAPI data provider connector."""

    def __init__(
        self,
        router: CredentialRouter,
        settings: Settings | None = None,
        http_client: ProviderHTTPClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        super().__init__(
            name=ProviderName.CRICBUZZ,
            http_client=http_client or ProviderHTTPClient(
                provider_name=ProviderName.CRICBUZZ.value,
                base_url=settings.cricbuzz_base_url,
                headers={"x-rapidapi-host": settings.cricbuzz_rapidapi_host},
            ),
            router=router,
        )

    async def _get(self, key: str, path: str) -> Any:
        body = await self._http.get_json(path, extra_headers={"x-rapidapi-key": key})
        if isinstance(body, dict) and body.get("message"):
            # RapidAPI reports an exhausted plan in a "message" field
            self.check_failure(False, body["message"])
            return None
        return body

    async def _events(self, key: str) -> list[ProviderEvent]:
        seen: set[str] = set()
        events: list[ProviderEvent] = []
        for path in LISTINGS:
            for info in extract_match_infos(await self._get(key, path)):
                event = parse_match_info(info)
                if event is None or event.provider_match_id in seen:
                    continue
                seen.add(event.provider_match_id)
                events.append(event)
        return events

    async def _find(self, key: str, fixture: FixtureRef) -> Optional[ProviderEvent]:
        for event in await self._events(key):
            if is_fixture(event, fixture):
                return event
        logger.debug(
            "cricbuzz_fixture_not_found",
            team1=fixture.team1_short,
            team2=fixture.team2_short,
            date=fixture.start_time.date().isoformat(),
        )
        return None

    async def _list_matches(self, key: str, date_from: date, date_to: date) -> Optional[list[ProviderEvent]]:
        return [
            e for e in await self._events(key)
            if e.start_time is not None and date_from <= e.start_time.date() <= date_to
        ]

    async def _fetch_match_status(self, key: str, fixture: FixtureRef) -> Optional[ProviderEvent]:
        return await self._find(key, fixture)

    async def _scorecard_for(self, key: str, event: ProviderEvent) -> Optional[ProviderScorecard]:
        data = await self._get(key, f"/mcenter/v1/{event.provider_match_id}/scard")
        if not isinstance(data, dict) or not data.get("scoreCard"):
            return None
        header = data.get("matchHeader") or {}
        return ProviderScorecard(
            provider=self._name,
            provider_match_id=event.provider_match_id,
            innings=parse_scorecard_innings(data),
            status_text=safe_str(header.get("status")) or event.status_text,
            ended=bool(header.get("complete")) or event.ended,
        )

    async def _fetch_scorecard(self, key: str, fixture: FixtureRef) -> Optional[ProviderScorecard]:
        event = await self._find(key, fixture)
        if event is None or not event.started:
            return None
        return await self._scorecard_for(key, event)

    async def _fetch_lineup(self, key: str, fixture: FixtureRef) -> Optional[ProviderLineup]:
        """Players who batted or bowled, sided by the batting team of each innings."""
        event = await self._find(key, fixture)
        if event is None or not event.started:
            return None
        scorecard = await self._scorecard_for(key, event)
        if scorecard is None or not scorecard.has_rows:
            return None

        home: dict[str, LineupEntry] = {}
        away: dict[str, LineupEntry] = {}
        for inn in scorecard.innings:
            home_batting = team_matches(inn.label, fixture.team1_short, fixture.team1)
            batters, bowlers = (home, away) if home_batting else (away, home)
            for b in inn.batting:
                batters.setdefault(b.player_name, LineupEntry(player_name=b.player_name, provider_player_id=b.provider_player_id))
            for b in inn.bowling:
                bowlers.setdefault(b.player_name, LineupEntry(player_name=b.player_name, provider_player_id=b.provider_player_id))
        return ProviderLineup(
            provider=self._name,
            provider_match_id=event.provider_match_id,
            home=list(home.values()),
            away=list(away.values()),
        )
