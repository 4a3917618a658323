"""
CricAPI provider connector.

Primary source for fixtures, match status, scorecards and squads. Every body
carries a status discriminator ("success" or "failure" with a free-text
reason); a failure reason mentioning a limit or block means the key's daily
hits are spent.
"""
from __future__ import annotations

from datetime import date
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
    SquadPlayer,
)
from shared.models.enums import FieldingKind, ProviderName
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger

from ingest.normalization.normalizer import (
    build_batting,
    build_bowling,
    catches_from_counts,
    credits_for,
    map_role,
    parse_timestamp,
    safe_float,
    safe_int,
    safe_str,
    team_matches,
    team_short_for,
)
from ingest.providers.base import BaseProvider, ProviderResult
from ingest.providers.registry import CredentialRouter

logger = get_logger(__name__)


def _has_score(score: Any) -> bool:
    if not isinstance(score, list):
        return False
    return any(
        safe_float(s.get("r")) > 0 or safe_float(s.get("w")) > 0 or safe_float(s.get("o")) > 0
        for s in score
        if isinstance(s, dict)
    )


def _short_for(team_info: Any, team: str) -> str:
    for info in team_info or []:
        if isinstance(info, dict) and info.get("name") == team and info.get("shortname"):
            return safe_str(info["shortname"])
    return team_short_for(team)


def parse_match(m: dict[str, Any]) -> Optional[ProviderEvent]:
    """A CricAPI match object (list entry or match_info data) as a ProviderEvent."""
    teams = m.get("teams") or []
    if not m.get("id") or len(teams) < 2:
        return None
    team1, team2 = safe_str(teams[0]), safe_str(teams[1])
    return ProviderEvent(
        provider=ProviderName.CRICAPI,
        provider_match_id=safe_str(m["id"]),
        series_id=safe_str(m.get("series_id")) or None,
        name=safe_str(m.get("name")),
        team1=team1,
        team1_short=_short_for(m.get("teamInfo"), team1),
        team2=team2,
        team2_short=_short_for(m.get("teamInfo"), team2),
        venue=safe_str(m.get("venue")),
        start_time=parse_timestamp(m.get("dateTimeGMT")),
        started=bool(m.get("matchStarted")),
        ended=bool(m.get("matchEnded")),
        status_text=safe_str(m.get("status")),
        has_score=_has_score(m.get("score")),
    )


def _ref(obj: Any) -> tuple[str, Optional[str]]:
    if isinstance(obj, dict):
        return safe_str(obj.get("name")), safe_str(obj.get("id")) or None
    return safe_str(obj), None


def parse_inning(inn: dict[str, Any]) -> ScorecardInning:
    batting = []
    fielding: list[FieldingEvent] = []
    for b in inn.get("batting") or []:
        name, pid = _ref(b.get("batsman"))
        row, events = build_batting(
            name,
            pid,
            b.get("r"),
            b.get("b"),
            b.get("4s"),
            b.get("6s"),
            b.get("sr"),
            b.get("dismissal-text") or b.get("dismissal"),
        )
        batting.append(row)
        fielding.extend(events)

    bowling = []
    for b in inn.get("bowling") or []:
        name, pid = _ref(b.get("bowler"))
        bowling.append(build_bowling(name, pid, b.get("o"), b.get("m"), b.get("r"), b.get("w"), b.get("eco")))

    # The catching tally carries player ids, so it replaces catches read from dismissal text
    catching = inn.get("catching") or []
    if catching:
        counts = []
        for c in catching:
            name, pid = _ref(c.get("catcher"))
            counts.append((name, pid, safe_int(c.get("catches", c.get("catch")), field="catches")))
        fielding = [e for e in fielding if e.kind != FieldingKind.CATCH]
        fielding.extend(catches_from_counts(counts))

    return ScorecardInning(
        label=safe_str(inn.get("inning")),
        batting=batting,
        bowling=bowling,
        fielding=fielding,
    )


def parse_squad(teams: Any, only: Optional[FixtureRef] = None) -> list[SquadPlayer]:
    players: list[SquadPlayer] = []
    for team in teams or []:
        if not isinstance(team, dict):
            continue
        team_name = safe_str(team.get("teamName"))
        short = safe_str(team.get("shortname")) or team_short_for(team_name)
        if only is not None and not (
            team_matches(team_name, only.team1_short, only.team1)
            or team_matches(team_name, only.team2_short, only.team2)
        ):
            continue
        for p in team.get("players") or []:
            if not p.get("id") or not p.get("name"):
                continue
            role = map_role(p.get("role"))
            players.append(
                SquadPlayer(
                    external_id=safe_str(p["id"]),
                    name=safe_str(p["name"]),
                    team=team_name,
                    team_short=short,
                    role=role,
                    credits=credits_for(role),
                )
            )
    return players


class CricApiProvider(BaseProvider):
    """CricAPI data provider connector."""

    def __init__(
        self,
        router: CredentialRouter,
        settings: Settings | None = None,
        http_client: ProviderHTTPClient | None = None,
    ) -> None:
        settings = settings or get_settings()
        super().__init__(
            name=ProviderName.CRICAPI,
            http_client=http_client or ProviderHTTPClient(
                provider_name=ProviderName.CRICAPI.value,
                base_url=settings.cricapi_base_url,
            ),
            router=router,
        )

    async def _get(self, key: str, path: str, **params: Any) -> Any:
        """Data of a successful response, or None when the body reports a non-quota failure."""
        body = await self._http.get_json(path, params={"apikey": key, **params})
        if not isinstance(body, dict):
            return None
        if not self.check_failure(body.get("status") == "success", body.get("reason") or body.get("status")):
            return None
        info = body.get("info") or {}
        if info.get("hitsLimit"):
            logger.debug(
                "cricapi_hits",
                path=path,
                used=info.get("hitsUsed"),
                limit=info.get("hitsLimit"),
            )
        return body.get("data")

    async def _list_matches(self, key: str, date_from: date, date_to: date) -> Optional[list[ProviderEvent]]:
        seen: set[str] = set()
        events: list[ProviderEvent] = []
        for path in ("/currentMatches", "/matches"):
            data = await self._get(key, path, offset=0)
            for raw in data or []:
                event = parse_match(raw) if isinstance(raw, dict) else None
                if event is None or event.start_time is None or event.provider_match_id in seen:
                    continue
                if not (date_from <= event.start_time.date() <= date_to):
                    continue
                seen.add(event.provider_match_id)
                events.append(event)
        return events

    async def _fetch_match_status(self, key: str, fixture: FixtureRef) -> Optional[ProviderEvent]:
        if not fixture.provider_match_id:
            return None
        data = await self._get(key, "/match_info", id=fixture.provider_match_id)
        return parse_match(data) if isinstance(data, dict) else None

    async def _fetch_lineup(self, key: str, fixture: FixtureRef) -> Optional[ProviderLineup]:
        """Announced players from match_info, split by team when the payload says which."""
        if not fixture.provider_match_id:
            return None
        data = await self._get(key, "/match_info", id=fixture.provider_match_id)
        if not isinstance(data, dict):
            return None
        home: list[LineupEntry] = []
        away: list[LineupEntry] = []
        for p in data.get("players") or []:
            name, pid = _ref(p)
            if not name:
                continue
            entry = LineupEntry(player_name=name, provider_player_id=pid)
            team = safe_str(p.get("team")) if isinstance(p, dict) else ""
            if team and team_matches(team, fixture.team2_short, fixture.team2):
                away.append(entry)
            else:
                home.append(entry)
        if not home and not away:
            return None
        return ProviderLineup(
            provider=self._name,
            provider_match_id=fixture.provider_match_id,
            home=home,
            away=away,
        )

    async def _fetch_scorecard(self, key: str, fixture: FixtureRef) -> Optional[ProviderScorecard]:
        if not fixture.provider_match_id:
            return None
        data = await self._get(key, "/match_scorecard", offset=0, id=fixture.provider_match_id)
        if not isinstance(data, dict) or not data.get("scorecard"):
            return None
        return ProviderScorecard(
            provider=self._name,
            provider_match_id=fixture.provider_match_id,
            innings=[parse_inning(inn) for inn in data["scorecard"] if isinstance(inn, dict)],
            status_text=safe_str(data.get("status")),
            ended=bool(data.get("matchEnded")),
        )

    # ── Squads ──────────────────────────────────────────────────────────
    async def _fetch_squad(self, key: str, fixture: FixtureRef) -> Optional[list[SquadPlayer]]:
        if fixture.provider_match_id:
            data = await self._get(key, "/match_squad", offset=0, id=fixture.provider_match_id)
            players = parse_squad(data)
            if players:
                return players
        if fixture.series_id:
            # Series squads cover every team in the tournament; keep only this fixture's two
            data = await self._get(key, "/series_squad", id=fixture.series_id)
            return parse_squad(data, only=fixture)
        return None

    async def fetch_squad(self, fixture: FixtureRef) -> ProviderResult[list[SquadPlayer]]:
        return await self._call(
            "fetch_squad",
            lambda key: self._fetch_squad(key, fixture),
            fixture=f"{fixture.team1_short} vs {fixture.team2_short}",
        )
