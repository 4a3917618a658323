"""
Match repository: the narrow persistence contract the reconciliation engine
reads through and writes through.

Every write is atomic on its own; nothing spans a whole reconciliation cycle.
"""
from __future__ import annotations

import abc
from typing import Any, Iterable, Optional

from pydantic import ValidationError
from sqlalchemy import select, update

from shared.models.domain import Match, Player, SquadPlayer, TeamDescriptor, UserTeam
from shared.models.orm import MatchORM, PlayerORM, UserTeamORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)

MATCH_FIELDS = frozenset({"status", "status_note", "last_sync_at", "playing_xi_manual"})
PLAYER_FIELDS = frozenset({"points", "is_playing_xi", "api_name"})


class MatchRepository(abc.ABC):
    """Read/write access to matches, their rosters, and the user teams built on them."""

    @abc.abstractmethod
    async def get_match(self, match_id: str) -> Optional[Match]:
        ...

    @abc.abstractmethod
    async def get_all_matches(self) -> list[Match]:
        ...

    @abc.abstractmethod
    async def update_match(self, match_id: str, **fields: Any) -> None:
        ...

    @abc.abstractmethod
    async def get_players_for_match(self, match_id: str) -> list[Player]:
        ...

    @abc.abstractmethod
    async def update_player(self, player_id: str, **fields: Any) -> None:
        ...

    @abc.abstractmethod
    async def upsert_players_for_match(self, match_id: str, players: Iterable[SquadPlayer]) -> int:
        """Insert unknown players and refresh descriptive fields of known ones.

        Credits, points and Playing XI flags of existing players are never touched.
        Returns the number of rows inserted.
        """

    @abc.abstractmethod
    async def mark_playing_xi(self, match_id: str, external_ids: Iterable[str]) -> int:
        """Reset every player of the match to not-playing, then mark exactly these.

        Returns the number of players marked.
        """

    @abc.abstractmethod
    async def get_all_teams_for_match(self, match_id: str) -> list[UserTeam]:
        ...

    @abc.abstractmethod
    async def update_team_points(self, team_id: str, total_points: int) -> None:
        ...


def _check_fields(fields: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"not writable: {sorted(unknown)}")


def match_from_row(row: MatchORM) -> Match:
    return Match(
        id=row.id,
        external_id=row.external_id,
        series_id=row.series_id,
        team1=TeamDescriptor(name=row.team1, short=row.team1_short, color=row.team1_color),
        team2=TeamDescriptor(name=row.team2, short=row.team2_short, color=row.team2_color),
        venue=row.venue,
        start_time=row.start_time,
        status=row.status,
        status_note=row.status_note,
        last_sync_at=row.last_sync_at,
        playing_xi_manual=row.playing_xi_manual,
    )


class SqlAlchemyMatchRepository(MatchRepository):
    """MatchRepository over the async SQLAlchemy session manager."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_match(self, match_id: str) -> Optional[Match]:
        async with self._db.read_session() as session:
            row = await session.get(MatchORM, match_id)
            return match_from_row(row) if row else None

    async def get_all_matches(self) -> list[Match]:
        async with self._db.read_session() as session:
            rows = (await session.execute(select(MatchORM).order_by(MatchORM.start_time))).scalars()
            return [match_from_row(r) for r in rows]

    async def update_match(self, match_id: str, **fields: Any) -> None:
        _check_fields(fields, MATCH_FIELDS)
        if "status" in fields:
            fields["status"] = getattr(fields["status"], "value", fields["status"])
        async with self._db.write_session() as session:
            await session.execute(update(MatchORM).where(MatchORM.id == match_id).values(**fields))

    async def get_players_for_match(self, match_id: str) -> list[Player]:
        async with self._db.read_session() as session:
            rows = (
                await session.execute(
                    select(PlayerORM).where(PlayerORM.match_id == match_id).order_by(PlayerORM.name)
                )
            ).scalars()
            return [Player.model_validate(r) for r in rows]

    async def update_player(self, player_id: str, **fields: Any) -> None:
        _check_fields(fields, PLAYER_FIELDS)
        async with self._db.write_session() as session:
            await session.execute(update(PlayerORM).where(PlayerORM.id == player_id).values(**fields))

    async def upsert_players_for_match(self, match_id: str, players: Iterable[SquadPlayer]) -> int:
        inserted = 0
        async with self._db.write_session() as session:
            existing = {
                p.external_id: p
                for p in (
                    await session.execute(select(PlayerORM).where(PlayerORM.match_id == match_id))
                ).scalars()
                if p.external_id
            }
            for sp in players:
                row = existing.get(sp.external_id)
                if row is None:
                    row = PlayerORM(
                        match_id=match_id,
                        external_id=sp.external_id,
                        name=sp.name,
                        team=sp.team,
                        team_short=sp.team_short,
                        role=sp.role.value,
                        credits=sp.credits,
                    )
                    session.add(row)
                    existing[sp.external_id] = row
                    inserted += 1
                else:
                    row.name = sp.name
                    row.team = sp.team
                    row.team_short = sp.team_short
                    row.role = sp.role.value
        logger.info("players_upserted", match_id=match_id, inserted=inserted)
        return inserted

    async def mark_playing_xi(self, match_id: str, external_ids: Iterable[str]) -> int:
        ids = sorted(set(external_ids))
        async with self._db.write_session() as session:
            await session.execute(
                update(PlayerORM).where(PlayerORM.match_id == match_id).values(is_playing_xi=False)
            )
            if not ids:
                return 0
            result = await session.execute(
                update(PlayerORM)
                .where(PlayerORM.match_id == match_id, PlayerORM.external_id.in_(ids))
                .values(is_playing_xi=True)
            )
            return result.rowcount or 0

    async def get_all_teams_for_match(self, match_id: str) -> list[UserTeam]:
        async with self._db.read_session() as session:
            rows = (
                await session.execute(select(UserTeamORM).where(UserTeamORM.match_id == match_id))
            ).scalars()
            teams: list[UserTeam] = []
            for r in rows:
                try:
                    teams.append(UserTeam.model_validate(r))
                except ValidationError as exc:
                    logger.warning("user_team_malformed", team_id=r.id, error=str(exc))
            return teams

    async def update_team_points(self, team_id: str, total_points: int) -> None:
        async with self._db.write_session() as session:
            await session.execute(
                update(UserTeamORM).where(UserTeamORM.id == team_id).values(total_points=total_points)
            )
