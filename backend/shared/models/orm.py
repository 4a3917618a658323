"""
SQLAlchemy 2.0 ORM models for the fantasy scoring engine.
Covers the three tables the reconciliation worker reads and writes.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    ARRAY,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid_str() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class MatchORM(Base):
    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    external_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    series_id: Mapped[Optional[str]] = mapped_column(String(100))
    team1: Mapped[str] = mapped_column(String(200), nullable=False)
    team1_short: Mapped[str] = mapped_column(String(20), nullable=False)
    team1_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#333333")
    team2: Mapped[str] = mapped_column(String(200), nullable=False)
    team2_short: Mapped[str] = mapped_column(String(20), nullable=False)
    team2_color: Mapped[str] = mapped_column(String(20), nullable=False, default="#333333")
    venue: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="upcoming")
    status_note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    playing_xi_manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    players: Mapped[list["PlayerORM"]] = relationship(back_populates="match")
    teams: Mapped[list["UserTeamORM"]] = relationship(back_populates="match")


class PlayerORM(Base):
    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("match_id", "external_id", name="uq_player_match_external"),
        Index("ix_players_match_id", "match_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    match_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    external_id: Mapped[Optional[str]] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    api_name: Mapped[Optional[str]] = mapped_column(String(200))
    team: Mapped[str] = mapped_column(String(200), nullable=False)
    team_short: Mapped[str] = mapped_column(String(20), nullable=False)
    role: Mapped[str] = mapped_column(String(4), nullable=False, default="BAT")
    credits: Mapped[float] = mapped_column(Float, nullable=False, default=8.0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_playing_xi: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    match: Mapped["MatchORM"] = relationship(back_populates="players")


class UserTeamORM(Base):
    __tablename__ = "user_teams"
    __table_args__ = (Index("ix_user_teams_match_id", "match_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    match_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    player_ids: Mapped[list[str]] = mapped_column(ARRAY(String(36)), nullable=False)
    captain_id: Mapped[str] = mapped_column(String(36), nullable=False)
    vice_captain_id: Mapped[str] = mapped_column(String(36), nullable=False)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    match: Mapped["MatchORM"] = relationship(back_populates="teams")
