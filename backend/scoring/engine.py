"""
Fantasy scoring rule engine.

Pure functions: a scorecard snapshot and a roster go in, per-player point
breakdowns come out. Nothing here logs, writes, or keeps state between
calls, so re-running on the same snapshot always gives the same numbers and
a provider correction self-heals on the next pass. Captain and vice-captain
multipliers are not applied here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from shared.models.domain import (
    BattingRow,
    BowlingRow,
    PointsBreakdown,
    ProviderScorecard,
    ScorecardInning,
)
from shared.models.enums import FieldingKind

from lineup.names import RosterIndex, match_names
from scoring import rules


@dataclass
class PlayerMatchStats:
    """Everything one player did across the innings of one snapshot."""
    player_id: str
    batting: list[BattingRow] = field(default_factory=list)
    bowling: list[BowlingRow] = field(default_factory=list)
    catches: int = 0
    stumpings: int = 0
    run_outs_direct: int = 0
    run_outs_shared: int = 0
    lbw_bowled: int = 0


@dataclass
class ScoringResult:
    points: dict[str, PointsBreakdown]
    unmatched: list[str]


# ── Per-line rules ──────────────────────────────────────────────────────

def strike_rate(row: BattingRow) -> float:
    """Provider-reported rate when present, else derived from runs and balls."""
    if row.strike_rate > 0:
        return row.strike_rate
    return row.runs * 100.0 / row.balls if row.balls > 0 else 0.0


def economy_rate(row: BowlingRow) -> float:
    if row.economy > 0:
        return row.economy
    return row.runs_conceded * 6.0 / row.legal_balls if row.legal_balls > 0 else 0.0


def batting_points(row: BattingRow) -> int:
    pts = row.runs * rules.RUN + row.fours * rules.FOUR_BONUS + row.sixes * rules.SIX_BONUS
    pts += sum(bonus for threshold, bonus in rules.RUN_MILESTONES if row.runs >= threshold)
    if row.runs == 0 and row.balls >= 1 and row.dismissal_kind.is_out:
        pts += rules.DUCK
    if row.balls >= rules.STRIKE_RATE_MIN_BALLS:
        pts += rules.band_points(rules.STRIKE_RATE_BANDS, strike_rate(row))
    return pts


def bowling_points(row: BowlingRow) -> int:
    pts = row.wickets * rules.WICKET + row.maidens * rules.MAIDEN
    pts += sum(bonus for threshold, bonus in rules.WICKET_MILESTONES if row.wickets >= threshold)
    if row.legal_balls >= rules.ECONOMY_MIN_BALLS:
        pts += rules.band_points(rules.ECONOMY_BANDS, economy_rate(row))
    return pts


def fielding_points(stats: PlayerMatchStats) -> int:
    pts = stats.catches * rules.CATCH
    if stats.catches >= rules.CATCH_HAUL_THRESHOLD:
        pts += rules.CATCH_HAUL_BONUS
    pts += stats.stumpings * rules.STUMPING
    pts += stats.run_outs_direct * rules.RUN_OUT_DIRECT
    pts += stats.run_outs_shared * rules.RUN_OUT_SHARED
    return pts


def score_player(stats: PlayerMatchStats) -> PointsBreakdown:
    return PointsBreakdown(
        batting=sum(batting_points(r) for r in stats.batting),
        bowling=sum(bowling_points(r) for r in stats.bowling)
        + stats.lbw_bowled * rules.LBW_BOWLED_BONUS,
        fielding=fielding_points(stats),
    )


# ── Snapshot → per-player stats ─────────────────────────────────────────

def _bowler_for(inning: ScorecardInning, name: str, roster: RosterIndex) -> Optional[str]:
    """Resolve a dismissal's bowler, preferring someone who bowled in this innings."""
    for row in inning.bowling:
        if match_names(name, row.player_name):
            player = roster.resolve(row.player_name, row.provider_player_id)
            if player:
                return player.id
    player = roster.resolve(name)
    return player.id if player else None


def collect_stats(
    scorecard: ProviderScorecard, roster: RosterIndex
) -> tuple[dict[str, PlayerMatchStats], list[str]]:
    stats: dict[str, PlayerMatchStats] = {}
    unmatched: list[str] = []

    def for_player(name: str, pid: Optional[str]) -> Optional[PlayerMatchStats]:
        player = roster.resolve(name, pid)
        if player is None:
            if name:
                unmatched.append(name)
            return None
        return stats.setdefault(player.id, PlayerMatchStats(player_id=player.id))

    for inning in scorecard.innings:
        # A provider occasionally repeats a row; keep the one covering more play
        batting: dict[str, BattingRow] = {}
        for row in inning.batting:
            s = for_player(row.player_name, row.provider_player_id)
            if s is None:
                continue
            prev = batting.get(s.player_id)
            if prev is None or row.balls > prev.balls:
                batting[s.player_id] = row

        for row in batting.values():
            if row.dismissal_kind.earns_bowler_bonus and row.bowler_name:
                bowler_id = _bowler_for(inning, row.bowler_name, roster)
                if bowler_id:
                    stats.setdefault(bowler_id, PlayerMatchStats(player_id=bowler_id)).lbw_bowled += 1
                else:
                    unmatched.append(row.bowler_name)

        bowling: dict[str, BowlingRow] = {}
        for row in inning.bowling:
            s = for_player(row.player_name, row.provider_player_id)
            if s is None:
                continue
            prev = bowling.get(s.player_id)
            if prev is None or row.legal_balls > prev.legal_balls:
                bowling[s.player_id] = row

        for pid, row in batting.items():
            stats[pid].batting.append(row)
        for pid, row in bowling.items():
            stats[pid].bowling.append(row)

        for event in inning.fielding:
            s = for_player(event.player_name, event.provider_player_id)
            if s is None:
                continue
            if event.kind == FieldingKind.CATCH:
                s.catches += 1
            elif event.kind == FieldingKind.STUMPING:
                s.stumpings += 1
            elif event.kind == FieldingKind.RUN_OUT_DIRECT:
                s.run_outs_direct += 1
            else:
                s.run_outs_shared += 1

    return stats, unmatched


def score_scorecard(scorecard: ProviderScorecard, roster: RosterIndex) -> ScoringResult:
    """Points for every roster player the snapshot mentions. Unresolved names score nothing."""
    stats, unmatched = collect_stats(scorecard, roster)
    return ScoringResult(
        points={pid: score_player(s) for pid, s in stats.items()},
        unmatched=sorted(set(unmatched)),
    )
