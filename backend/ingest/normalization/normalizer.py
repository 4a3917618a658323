"""
Normalization helpers shared by the cricket provider adapters.

Providers send numbers as ints, floats, numeric strings, "-" or nothing at
all. Everything here degrades to a default instead of raising, and logs the
substitution so schema drift is visible.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from shared.models.domain import BattingRow, BowlingRow, FieldingEvent
from shared.models.enums import FieldingKind, MatchStatus, PlayerRole
from shared.utils.logging import get_logger

from ingest.normalization.dismissal import parse_dismissal

logger = get_logger(__name__)


# ── Scalar coercion ─────────────────────────────────────────────────────

def safe_float(value: Any, default: float = 0.0, field: str = "") -> float:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return float(value)
    try:
        result = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except (TypeError, ValueError):
        logger.debug("field_defaulted", field=field, raw=repr(value)[:40], default=default)
        return default
    if math.isnan(result) or math.isinf(result):
        logger.debug("field_defaulted", field=field, raw=repr(value)[:40], default=default)
        return default
    return result


def safe_int(value: Any, default: int = 0, field: str = "") -> int:
    """Integer from int/float/numeric string; truncates "12.0" style values."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    result = safe_float(value, float("nan"), field)
    if math.isnan(result):
        return default
    return int(result)


def safe_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()


def overs_to_balls(value: Any, field: str = "overs") -> int:
    """Cricket overs notation to legal balls: 3.4 overs is 3*6 + 4 = 22 balls."""
    overs = safe_float(value, 0.0, field)
    if overs <= 0:
        return 0
    whole = int(overs)
    partial = round((overs - whole) * 10)
    if partial > 5:
        logger.debug("overs_partial_clamped", raw=value, partial=partial)
        partial = 5
    return whole * 6 + partial


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 strings (with or without zone) or epoch milliseconds, as aware UTC."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        ms = safe_int(value)
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc) if ms else None
    raw = str(value).strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        logger.debug("timestamp_unparseable", raw=raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ── Scorecard rows ──────────────────────────────────────────────────────

def build_batting(
    name: str,
    provider_player_id: Optional[str],
    runs: Any,
    balls: Any,
    fours: Any,
    sixes: Any,
    strike_rate: Any,
    dismissal: Any,
) -> tuple[BattingRow, list[FieldingEvent]]:
    """A batting row plus the fielding credits its dismissal text implies."""
    text = safe_str(dismissal)
    parsed = parse_dismissal(text)
    row = BattingRow(
        player_name=safe_str(name),
        provider_player_id=provider_player_id or None,
        runs=max(0, safe_int(runs, field="runs")),
        balls=max(0, safe_int(balls, field="balls")),
        fours=max(0, safe_int(fours, field="fours")),
        sixes=max(0, safe_int(sixes, field="sixes")),
        strike_rate=safe_float(strike_rate, field="strike_rate"),
        dismissal=text,
        dismissal_kind=parsed.kind,
        bowler_name=parsed.bowler,
    )
    return row, parsed.fielding_events()


def build_bowling(
    name: str,
    provider_player_id: Optional[str],
    overs: Any,
    maidens: Any,
    runs: Any,
    wickets: Any,
    economy: Any,
) -> BowlingRow:
    return BowlingRow(
        player_name=safe_str(name),
        provider_player_id=provider_player_id or None,
        legal_balls=overs_to_balls(overs),
        maidens=max(0, safe_int(maidens, field="maidens")),
        runs_conceded=max(0, safe_int(runs, field="runs_conceded")),
        wickets=max(0, safe_int(wickets, field="wickets")),
        economy=safe_float(economy, field="economy"),
    )


def catches_from_counts(
    counts: Iterable[tuple[str, Optional[str], int]],
) -> list[FieldingEvent]:
    """Expand (name, id, catches) tallies into one CATCH event per catch."""
    events: list[FieldingEvent] = []
    for name, pid, n in counts:
        for _ in range(max(0, n)):
            events.append(FieldingEvent(kind=FieldingKind.CATCH, player_name=name, provider_player_id=pid))
    return events


# ── Teams ───────────────────────────────────────────────────────────────

TEAM_ALIASES: dict[str, tuple[str, ...]] = {
    "IND": ("india",),
    "PAK": ("pakistan",),
    "AUS": ("australia",),
    "ENG": ("england",),
    "SA": ("south africa",),
    "NZ": ("new zealand",),
    "WI": ("west indies",),
    "SL": ("sri lanka",),
    "BAN": ("bangladesh",),
    "AFG": ("afghanistan",),
    "ZIM": ("zimbabwe",),
    "IRE": ("ireland",),
    "SCO": ("scotland",),
    "NED": ("netherlands",),
    "NAM": ("namibia",),
    "UAE": ("united arab emirates", "uae"),
    "USA": ("united states", "u.s.a"),
    "NEP": ("nepal",),
    "CAN": ("canada",),
    "ITA": ("italy",),
    "MI": ("mumbai indians",),
    "CSK": ("chennai super kings",),
    "RCB": ("royal challengers bengaluru", "royal challengers bangalore"),
    "KKR": ("kolkata knight riders",),
    "DC": ("delhi capitals",),
    "RR": ("rajasthan royals",),
    "SRH": ("sunrisers hyderabad",),
    "PBKS": ("punjab kings",),
    "GT": ("gujarat titans",),
    "LSG": ("lucknow super giants",),
}

_SHORT_BY_NAME = {alias: short for short, names in TEAM_ALIASES.items() for alias in names}


def team_short_for(full_name: str) -> str:
    """Short code for a team name: known alias, else initials (or first 3 letters)."""
    name = safe_str(full_name)
    known = _SHORT_BY_NAME.get(name.lower())
    if known:
        return known
    words = name.split()
    if not words:
        return ""
    if len(words) == 1:
        return name[:3].upper()
    return "".join(w[0] for w in words).upper()[:4]


def team_matches(provider_team: str, short: str, full_name: str = "") -> bool:
    """True when a provider's team label refers to the team (short code, alias or name)."""
    label = safe_str(provider_team).lower()
    if not label:
        return False
    short_up = short.upper()
    needles = {short.lower(), *TEAM_ALIASES.get(short_up, ())}
    if full_name:
        needles.add(full_name.lower())
    needles.discard("")
    if label == short.lower():
        return True
    # Short codes are only trusted as whole words ("SA" must not hit "USA")
    words = set(re.split(r"[^a-z.]+", label))
    for needle in needles:
        if len(needle) <= 4 and " " not in needle:
            if needle in words:
                return True
        elif needle in label:
            return True
    return False


def fixture_matches(home: str, away: str, t1: tuple[str, str], t2: tuple[str, str]) -> bool:
    """Both teams of (short, name) pairs appear among home/away, in either order."""
    return (team_matches(home, *t1) and team_matches(away, *t2)) or (
        team_matches(home, *t2) and team_matches(away, *t1)
    )


# ── Status ──────────────────────────────────────────────────────────────

DELAY_KEYWORDS = (
    "rain", "delay", "delayed", "no result", "abandoned", "postponed",
    "wet outfield", "weather", "inspection", "covers", "drizzle",
    "toss yet", "start delayed", "play yet to", "yet to begin",
)


def is_delay_text(status_text: str) -> bool:
    lower = (status_text or "").lower()
    return any(kw in lower for kw in DELAY_KEYWORDS)


def determine_match_status(
    started: bool, ended: bool, status_text: str, has_score: bool
) -> tuple[MatchStatus, str]:
    """Map provider live-state hints to a lifecycle status and a display note."""
    note = status_text or ""
    if ended:
        return MatchStatus.COMPLETED, note
    if is_delay_text(note):
        return MatchStatus.DELAYED, note
    if started and has_score:
        return MatchStatus.LIVE, note
    if started:
        return MatchStatus.DELAYED, note or "Waiting for play to begin"
    return MatchStatus.UPCOMING, note


# ── Roster ──────────────────────────────────────────────────────────────

ROLE_CREDITS: dict[PlayerRole, float] = {
    PlayerRole.WK: 8.5,
    PlayerRole.BAT: 9.0,
    PlayerRole.AR: 9.0,
    PlayerRole.BOWL: 8.5,
}


def map_role(raw: Any) -> PlayerRole:
    r = safe_str(raw).lower()
    if "wk" in r or "keeper" in r:
        return PlayerRole.WK
    if "allrounder" in r or "all-rounder" in r or "all rounder" in r:
        return PlayerRole.AR
    if "bowl" in r:
        return PlayerRole.BOWL
    return PlayerRole.BAT


def credits_for(role: PlayerRole) -> float:
    return ROLE_CREDITS.get(role, 8.0)
