"""
Pydantic v2 domain models for the fantasy scoring engine.
These are the canonical internal representations, NOT ORM models.

Provider payloads are normalized into three kind-tagged models (ProviderEvent,
ProviderLineup, ProviderScorecard) so scoring and reconciliation never see a
provider's own JSON shape.
"""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared.models.enums import (
    DismissalKind,
    FieldingKind,
    MatchStatus,
    PlayerRole,
    ProviderName,
)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Match / roster / teams ──────────────────────────────────────────────
class TeamDescriptor(DomainModel):
    name: str
    short: str
    color: str = "#333333"


class Match(DomainModel):
    id: str
    external_id: Optional[str] = None
    series_id: Optional[str] = None
    team1: TeamDescriptor
    team2: TeamDescriptor
    venue: str = ""
    start_time: datetime
    status: MatchStatus = MatchStatus.UPCOMING
    status_note: str = ""
    last_sync_at: Optional[datetime] = None
    playing_xi_manual: bool = False

    @property
    def label(self) -> str:
        return f"{self.team1.short} vs {self.team2.short}"


class Player(DomainModel):
    id: str
    match_id: str
    name: str
    team: str
    team_short: str
    role: PlayerRole = PlayerRole.BAT
    credits: float = 8.0
    points: int = 0
    is_playing_xi: bool = False
    external_id: Optional[str] = None
    api_name: Optional[str] = None


class SquadPlayer(DomainModel):
    """A roster entry as imported from a provider squad, before it has an id."""
    external_id: str
    name: str
    team: str
    team_short: str
    role: PlayerRole
    credits: float


class UserTeam(DomainModel):
    id: str
    user_id: str
    match_id: str
    name: str = ""
    player_ids: list[str]
    captain_id: str
    vice_captain_id: str
    total_points: int = 0

    @model_validator(mode="after")
    def check_composition(self) -> "UserTeam":
        if len(set(self.player_ids)) != 11:
            raise ValueError("a team holds exactly 11 distinct players")
        if self.captain_id not in self.player_ids or self.vice_captain_id not in self.player_ids:
            raise ValueError("captain and vice-captain must be team members")
        if self.captain_id == self.vice_captain_id:
            raise ValueError("captain and vice-captain must differ")
        return self


# ── Fixture lookup key ──────────────────────────────────────────────────
class FixtureRef(DomainModel):
    """What an adapter needs to find one match on its own provider."""
    provider_match_id: Optional[str] = None
    series_id: Optional[str] = None
    team1: str
    team1_short: str
    team2: str
    team2_short: str
    start_time: datetime

    @classmethod
    def for_match(cls, match: Match) -> "FixtureRef":
        return cls(
            provider_match_id=match.external_id,
            series_id=match.series_id,
            team1=match.team1.name,
            team1_short=match.team1.short,
            team2=match.team2.name,
            team2_short=match.team2.short,
            start_time=match.start_time,
        )


# ── Scorecard rows ──────────────────────────────────────────────────────
class BattingRow(DomainModel):
    player_name: str
    provider_player_id: Optional[str] = None
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    strike_rate: float = 0.0
    dismissal: str = ""
    dismissal_kind: DismissalKind = DismissalKind.NOT_OUT
    bowler_name: Optional[str] = None


class BowlingRow(DomainModel):
    player_name: str
    provider_player_id: Optional[str] = None
    legal_balls: int = 0
    maidens: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    economy: float = 0.0


class FieldingEvent(DomainModel):
    kind: FieldingKind
    player_name: str
    provider_player_id: Optional[str] = None


class ScorecardInning(DomainModel):
    label: str
    batting: list[BattingRow] = Field(default_factory=list)
    bowling: list[BowlingRow] = Field(default_factory=list)
    fielding: list[FieldingEvent] = Field(default_factory=list)

    @property
    def legal_balls(self) -> int:
        return sum(b.legal_balls for b in self.bowling)

    @property
    def is_empty(self) -> bool:
        return not (self.batting or self.bowling)


# ── Normalized provider payloads ────────────────────────────────────────
class LineupEntry(DomainModel):
    player_name: str
    provider_player_id: Optional[str] = None


class ProviderEvent(DomainModel):
    """One fixture as a provider lists it, with its live-state hints."""
    kind: Literal["event"] = "event"
    provider: ProviderName
    provider_match_id: str
    series_id: Optional[str] = None
    name: str = ""
    team1: str = ""
    team1_short: str = ""
    team2: str = ""
    team2_short: str = ""
    venue: str = ""
    start_time: Optional[datetime] = None
    started: bool = False
    ended: bool = False
    status_text: str = ""
    has_score: bool = False


class ProviderLineup(DomainModel):
    kind: Literal["lineup"] = "lineup"
    provider: ProviderName
    provider_match_id: Optional[str] = None
    home: list[LineupEntry] = Field(default_factory=list)
    away: list[LineupEntry] = Field(default_factory=list)

    @property
    def entries(self) -> list[LineupEntry]:
        return [*self.home, *self.away]


class ProviderScorecard(DomainModel):
    kind: Literal["scorecard"] = "scorecard"
    provider: ProviderName
    provider_match_id: Optional[str] = None
    innings: list[ScorecardInning] = Field(default_factory=list)
    status_text: str = ""
    ended: bool = False

    @property
    def legal_balls(self) -> int:
        return sum(inn.legal_balls for inn in self.innings)

    @property
    def has_rows(self) -> bool:
        return any(not inn.is_empty for inn in self.innings)

    def appearances(self) -> list[LineupEntry]:
        """Everyone named in any batting, bowling or fielding row, in first-seen order."""
        seen: set[tuple[str, Optional[str]]] = set()
        out: list[LineupEntry] = []
        for inn in self.innings:
            rows: list[tuple[str, Optional[str]]] = [
                *((b.player_name, b.provider_player_id) for b in inn.batting),
                *((b.player_name, b.provider_player_id) for b in inn.bowling),
                *((f.player_name, f.provider_player_id) for f in inn.fielding),
            ]
            for name, pid in rows:
                if not name or (name, pid) in seen:
                    continue
                seen.add((name, pid))
                out.append(LineupEntry(player_name=name, provider_player_id=pid))
        return out


# ── Scoring output ──────────────────────────────────────────────────────
class PointsBreakdown(DomainModel):
    batting: int = 0
    bowling: int = 0
    fielding: int = 0

    @property
    def total(self) -> int:
        return self.batting + self.bowling + self.fielding
