"""
Playing XI reconciliation: name matching against the match roster, the ordered
source strategies, the resolver that writes the XI, and the secondary-provider
corroboration pass.
"""
from lineup.names import RosterIndex, match_names, normalize_name
from lineup.resolver import PlayingXIResolver, ResolutionOutcome

__all__ = [
    "PlayingXIResolver",
    "ResolutionOutcome",
    "RosterIndex",
    "match_names",
    "normalize_name",
]
