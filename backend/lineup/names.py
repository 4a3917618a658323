"""
Player name reconciler.

Matching is deliberately conservative: a false positive credits the wrong
player, while a false negative only leaves a player unscored until the next
cycle. Three tiers, first hit wins:

  1. normalized names are equal
  2. surnames equal (longer than 2 letters) and first initials equal
  3. one normalized name contains the other
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

from shared.models.domain import Player
from shared.utils.logging import get_logger

logger = get_logger(__name__)

_NON_LETTERS = re.compile(r"[^a-z\s]")
_SPACES = re.compile(r"\s+")

EXACT = 1
SURNAME_INITIAL = 2
CONTAINS = 3


def normalize_name(name: Optional[str]) -> str:
    lowered = _NON_LETTERS.sub("", (name or "").lower())
    return _SPACES.sub(" ", lowered).strip()


def match_tier(external_name: str, canonical_name: str) -> Optional[int]:
    """Tier (1 strongest) at which two names match, or None."""
    a = normalize_name(external_name)
    b = normalize_name(canonical_name)
    if not a or not b:
        return None
    if a == b:
        return EXACT

    pa, pb = a.split(" "), b.split(" ")
    if pa[-1] == pb[-1] and len(pa[-1]) > 2 and pa[0][0] == pb[0][0]:
        return SURNAME_INITIAL

    if a in b or b in a:
        return CONTAINS
    return None


def match_names(external_name: str, canonical_name: str) -> bool:
    return match_tier(external_name, canonical_name) is not None


class RosterIndex:
    """
    Resolves provider-reported players to roster players of one match.

    A provider player id equal to a roster player's external id wins outright.
    Otherwise the name is matched against each player's canonical name and
    provider alias; only the strongest tier counts, and a tie at that tier is
    ambiguous and resolves to nothing.
    """

    def __init__(self, players: Iterable[Player]) -> None:
        self._players = list(players)
        self._by_external = {p.external_id: p for p in self._players if p.external_id}

    def __len__(self) -> int:
        return len(self._players)

    @property
    def players(self) -> list[Player]:
        return self._players

    def resolve(self, name: Optional[str], provider_player_id: Optional[str] = None) -> Optional[Player]:
        if provider_player_id and provider_player_id in self._by_external:
            return self._by_external[provider_player_id]
        if not name:
            return None

        best_tier: Optional[int] = None
        best: list[Player] = []
        for p in self._players:
            tiers = [t for t in (match_tier(name, p.name), match_tier(name, p.api_name or "")) if t]
            if not tiers:
                continue
            tier = min(tiers)
            if best_tier is None or tier < best_tier:
                best_tier, best = tier, [p]
            elif tier == best_tier:
                best.append(p)

        if len(best) == 1:
            return best[0]
        if len(best) > 1:
            logger.debug(
                "player_name_ambiguous",
                name=name,
                tier=best_tier,
                candidates=[p.name for p in best],
            )
        return None

    def resolve_all(
        self, entries: Iterable[tuple[Optional[str], Optional[str]]]
    ) -> tuple[list[Player], list[str]]:
        """Resolve (name, provider_id) pairs; returns (distinct players, unmatched names)."""
        found: dict[str, Player] = {}
        unmatched: list[str] = []
        for name, pid in entries:
            player = self.resolve(name, pid)
            if player is None:
                if name:
                    unmatched.append(name)
                continue
            found.setdefault(player.id, player)
        return list(found.values()), unmatched
