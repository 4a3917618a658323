"""Domain enumerations for the fantasy scoring engine."""
from __future__ import annotations

from enum import Enum


class MatchStatus(str, Enum):
    UPCOMING = "upcoming"
    DELAYED = "delayed"
    LIVE = "live"
    COMPLETED = "completed"

    @property
    def is_in_play(self) -> bool:
        return self in (MatchStatus.LIVE, MatchStatus.DELAYED)

    @property
    def is_terminal(self) -> bool:
        return self == MatchStatus.COMPLETED

    @property
    def _rank(self) -> int:
        # upcoming and delayed share a rank so weather can move either way
        return {
            MatchStatus.UPCOMING: 0,
            MatchStatus.DELAYED: 0,
            MatchStatus.LIVE: 1,
            MatchStatus.COMPLETED: 2,
        }[self]

    def can_transition_to(self, target: "MatchStatus") -> bool:
        """Forward-only lifecycle, except upcoming<->delayed. Completed is terminal."""
        if self == target:
            return True
        if self.is_terminal:
            return False
        return target._rank >= self._rank


class PlayerRole(str, Enum):
    WK = "WK"
    BAT = "BAT"
    AR = "AR"
    BOWL = "BOWL"


class ProviderName(str, Enum):
    CRICAPI = "cricapi"
    CRICBUZZ = "cricbuzz"
    API_CRICKET = "api_cricket"


class FetchOutcome(str, Enum):
    """Result class of one adapter operation."""
    OK = "ok"
    NO_DATA = "no_data"
    UNAVAILABLE = "unavailable"
    QUOTA_EXHAUSTED = "quota_exhausted"
    NO_CREDENTIAL = "no_credential"


class DismissalKind(str, Enum):
    NOT_OUT = "not_out"
    CAUGHT = "caught"
    CAUGHT_AND_BOWLED = "caught_and_bowled"
    BOWLED = "bowled"
    LBW = "lbw"
    STUMPED = "stumped"
    RUN_OUT = "run_out"
    HIT_WICKET = "hit_wicket"
    RETIRED = "retired"
    OTHER = "other"

    @property
    def is_out(self) -> bool:
        return self not in (DismissalKind.NOT_OUT, DismissalKind.RETIRED)

    @property
    def earns_bowler_bonus(self) -> bool:
        return self in (DismissalKind.BOWLED, DismissalKind.LBW)


class FieldingKind(str, Enum):
    CATCH = "catch"
    STUMPING = "stumping"
    RUN_OUT_DIRECT = "run_out_direct"
    RUN_OUT_THROWER = "run_out_thrower"
    RUN_OUT_RECEIVER = "run_out_receiver"
