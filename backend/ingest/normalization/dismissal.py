"""
Dismissal-text parser.

Turns scorecard dismissal strings ("c Smith b Jones", "st †Pant b Kuldeep",
"run out (Jadeja/Pant)", "lbw b Bumrah") into a dismissal kind, the credited
bowler, and the fielders involved. Names come back as printed; resolving them
to roster players is the name reconciler's job.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from shared.models.domain import FieldingEvent
from shared.models.enums import DismissalKind, FieldingKind

_NOT_OUT = re.compile(r"^(not out|batting|dnb|did not bat|yet to bat|-)?$", re.I)
_RETIRED = re.compile(r"^(retired|absent)\b", re.I)
_RUN_OUT = re.compile(r"^run out\s*(?:\(([^)]*)\))?", re.I)
_STUMPED = re.compile(r"^st\s+(.+?)\s+b\s+(.+)$", re.I)
_CAUGHT_AND_BOWLED = re.compile(r"^c\s*(?:&|and\b)\s*b\s+(.+)$", re.I)
_CAUGHT = re.compile(r"^c\s+(.+?)\s+b\s+(.+)$", re.I)
_LBW = re.compile(r"^lbw\s+b\s+(.+)$", re.I)
_HIT_WICKET = re.compile(r"^hit\s*(?:wicket|wkt)\s+b\s+(.+)$", re.I)
_BOWLED = re.compile(r"^b\s+(.+)$", re.I)

_SUB_WRAPPED = re.compile(r"^sub\s*[\(\[]([^)\]]+)[\)\]]$", re.I)
_SUB_MARKER = re.compile(r"[\(\[]\s*sub\s*[\)\]]", re.I)


def clean_fielder_name(raw: str) -> str:
    """Strip keeper daggers and substitute markers: "sub (J Smith)" -> "J Smith"."""
    name = raw.replace("†", "").replace("(wk)", "").strip()
    wrapped = _SUB_WRAPPED.match(name)
    if wrapped:
        name = wrapped.group(1)
    name = _SUB_MARKER.sub("", name)
    return " ".join(name.split())


@dataclass(frozen=True)
class ParsedDismissal:
    kind: DismissalKind
    bowler: Optional[str] = None
    fielders: tuple[str, ...] = field(default_factory=tuple)

    def fielding_events(self) -> list[FieldingEvent]:
        """Fielding credits implied by this dismissal."""
        if self.kind in (DismissalKind.CAUGHT, DismissalKind.CAUGHT_AND_BOWLED) and self.fielders:
            return [FieldingEvent(kind=FieldingKind.CATCH, player_name=self.fielders[0])]
        if self.kind == DismissalKind.STUMPED and self.fielders:
            return [FieldingEvent(kind=FieldingKind.STUMPING, player_name=self.fielders[0])]
        if self.kind == DismissalKind.RUN_OUT:
            if len(self.fielders) == 1:
                return [FieldingEvent(kind=FieldingKind.RUN_OUT_DIRECT, player_name=self.fielders[0])]
            if len(self.fielders) >= 2:
                return [
                    FieldingEvent(kind=FieldingKind.RUN_OUT_THROWER, player_name=self.fielders[0]),
                    FieldingEvent(kind=FieldingKind.RUN_OUT_RECEIVER, player_name=self.fielders[-1]),
                ]
        return []


def parse_dismissal(text: Optional[str]) -> ParsedDismissal:
    raw = " ".join((text or "").split())

    if _NOT_OUT.match(raw):
        return ParsedDismissal(DismissalKind.NOT_OUT)
    if _RETIRED.match(raw):
        return ParsedDismissal(DismissalKind.RETIRED)

    m = _RUN_OUT.match(raw)
    if m:
        names = [clean_fielder_name(n) for n in (m.group(1) or "").split("/")]
        return ParsedDismissal(DismissalKind.RUN_OUT, fielders=tuple(n for n in names if n))

    m = _STUMPED.match(raw)
    if m:
        return ParsedDismissal(
            DismissalKind.STUMPED,
            bowler=clean_fielder_name(m.group(2)),
            fielders=(clean_fielder_name(m.group(1)),),
        )

    m = _CAUGHT_AND_BOWLED.match(raw)
    if m:
        bowler = clean_fielder_name(m.group(1))
        return ParsedDismissal(DismissalKind.CAUGHT_AND_BOWLED, bowler=bowler, fielders=(bowler,))

    m = _CAUGHT.match(raw)
    if m:
        return ParsedDismissal(
            DismissalKind.CAUGHT,
            bowler=clean_fielder_name(m.group(2)),
            fielders=(clean_fielder_name(m.group(1)),),
        )

    m = _LBW.match(raw)
    if m:
        return ParsedDismissal(DismissalKind.LBW, bowler=clean_fielder_name(m.group(1)))

    m = _HIT_WICKET.match(raw)
    if m:
        return ParsedDismissal(DismissalKind.HIT_WICKET, bowler=clean_fielder_name(m.group(1)))

    m = _BOWLED.match(raw)
    if m:
        return ParsedDismissal(DismissalKind.BOWLED, bowler=clean_fielder_name(m.group(1)))

    return ParsedDismissal(DismissalKind.OTHER)
