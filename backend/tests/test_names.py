"""
Unit tests for the player name reconciler.

Run: pytest backend/tests/test_names.py -v
"""
from __future__ import annotations

import pytest

from lineup.names import CONTAINS, EXACT, SURNAME_INITIAL, RosterIndex, match_names, match_tier, normalize_name

from conftest import make_player


# ── normalize_name ──────────────────────────────────────────────────────

def test_normalize_strips_punctuation_and_case() -> None:
    assert normalize_name("  M.S.  Dhoni (c)") == "ms dhoni c"


def test_normalize_none_is_empty() -> None:
    assert normalize_name(None) == ""


# ── match_names / match_tier ────────────────────────────────────────────

def test_initial_and_surname_match() -> None:
    assert match_names("V Kohli", "Virat Kohli") is True


def test_different_first_initials_do_not_match() -> None:
    assert match_names("R Sharma", "I Sharma") is False


@pytest.mark.parametrize(
    "external, canonical, tier",
    [
        ("Virat Kohli", "virat  kohli", EXACT),
        ("V Kohli", "Virat Kohli", SURNAME_INITIAL),
        ("Kohli", "Virat Kohli", CONTAINS),
        ("Jasprit Bumrah", "Mohammed Siraj", None),
    ],
)
def test_match_tier(external: str, canonical: str, tier: int | None) -> None:
    assert match_tier(external, canonical) == tier


def test_short_surnames_need_a_closer_match() -> None:
    # Two-letter surnames are too common to trust on their own
    assert match_tier("J Li", "James Li") is None


def test_empty_names_never_match() -> None:
    assert match_names("", "Virat Kohli") is False
    assert match_names("Virat Kohli", "") is False


# ── RosterIndex ─────────────────────────────────────────────────────────

def test_provider_id_wins_over_name() -> None:
    index = RosterIndex([
        make_player("p1", "Rohit Sharma", external_id="c-1"),
        make_player("p2", "Ishant Sharma", external_id="c-2"),
    ])
    assert index.resolve("Totally Different", "c-2").id == "p2"


def test_same_tier_tie_is_ambiguous() -> None:
    index = RosterIndex([
        make_player("p1", "Rohit Sharma"),
        make_player("p2", "Rahul Sharma"),
    ])
    assert index.resolve("R Sharma") is None


def test_stronger_tier_breaks_tie() -> None:
    index = RosterIndex([
        make_player("p1", "Rohit Sharma"),
        make_player("p2", "Rahul Sharma"),
    ])
    assert index.resolve("Rohit Sharma").id == "p1"


def test_provider_alias_is_matched() -> None:
    index = RosterIndex([make_player("p1", "Mohammed Siraj", api_name="Mohd Siraj")])
    assert index.resolve("Mohd Siraj").id == "p1"


def test_resolve_all_dedupes_and_reports_unmatched() -> None:
    index = RosterIndex([
        make_player("p1", "Virat Kohli"),
        make_player("p2", "Jasprit Bumrah"),
    ])
    players, unmatched = index.resolve_all([
        ("Virat Kohli", None),
        ("V Kohli", None),
        ("JJ Bumrah", None),
        ("Mitchell Starc", None),
    ])
    assert [p.id for p in players] == ["p1", "p2"]
    assert unmatched == ["Mitchell Starc"]
