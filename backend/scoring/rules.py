"""
Canonical fantasy point table.

Bands are checked top to bottom and the first band whose predicate holds
applies; a value between the bonus and penalty bands earns nothing.
"""
from __future__ import annotations

from typing import Callable

Band = tuple[Callable[[float], bool], int]

# ── Batting ─────────────────────────────────────────────────────────────
RUN = 1
FOUR_BONUS = 1
SIX_BONUS = 2
DUCK = -2

# Cumulative: a century earns all three
RUN_MILESTONES: tuple[tuple[int, int], ...] = ((30, 4), (50, 8), (100, 16))

STRIKE_RATE_MIN_BALLS = 10
STRIKE_RATE_BANDS: tuple[Band, ...] = (
    (lambda sr: sr > 170, 6),
    (lambda sr: sr >= 150, 4),
    (lambda sr: sr >= 130, 2),
    (lambda sr: sr >= 70, 0),
    (lambda sr: sr >= 60, -2),
    (lambda sr: sr >= 50, -4),
    (lambda sr: True, -6),
)

# ── Bowling ─────────────────────────────────────────────────────────────
WICKET = 30
MAIDEN = 12
LBW_BOWLED_BONUS = 8

# Each threshold is checked on its own: five wickets earn 4 + 8 + 16
WICKET_MILESTONES: tuple[tuple[int, int], ...] = ((3, 4), (4, 8), (5, 16))

ECONOMY_MIN_BALLS = 12
ECONOMY_BANDS: tuple[Band, ...] = (
    (lambda eco: eco < 5, 6),
    (lambda eco: eco < 6, 4),
    (lambda eco: eco <= 7, 2),
    (lambda eco: eco < 10, 0),
    (lambda eco: eco <= 11, -2),
    (lambda eco: eco <= 12, -4),
    (lambda eco: True, -6),
)

# ── Fielding ────────────────────────────────────────────────────────────
CATCH = 8
CATCH_HAUL_THRESHOLD = 3
CATCH_HAUL_BONUS = 4
STUMPING = 12
RUN_OUT_DIRECT = 12
RUN_OUT_SHARED = 6

# ── Team multipliers ────────────────────────────────────────────────────
CAPTAIN_MULTIPLIER = 2.0
VICE_CAPTAIN_MULTIPLIER = 1.5


def band_points(bands: tuple[Band, ...], value: float) -> int:
    for predicate, points in bands:
        if predicate(value):
            return points
    return 0
