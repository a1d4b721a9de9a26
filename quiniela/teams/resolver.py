"""
Feed team name -> internal team id resolution.

The lookup is built explicitly for each sync cycle from the current teams
table and the static alias table, then passed to the reconciler. Nothing is
cached at module level, so concurrent cycles never share mutable state.

Resolution order:
1. Exact match of the normalized name against canonical names, short names
   and alias-table entries.
2. Bidirectional substring containment against the same keys. Accepted only
   when every containing key points to the same team; anything else is
   reported as unresolved instead of guessing.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Optional, Protocol

from quiniela.etl.name_normalization import normalize_team_name
from quiniela.teams.aliases import AliasTable

logger = logging.getLogger(__name__)

# Keys/names shorter than this never take part in containment ("ame", "pue").
MIN_CONTAINMENT_LENGTH = 4


class TeamLike(Protocol):
    id: Optional[int]
    name: str
    short_name: str


class Resolution(NamedTuple):
    team_id: Optional[int]
    method: str  # exact, containment, ambiguous, no_match, empty


@dataclass
class TeamLookup:
    """Normalized name -> team id table for one sync cycle."""

    exact: dict[str, int] = field(default_factory=dict)
    team_names: dict[int, str] = field(default_factory=dict)
    ambiguous_keys: frozenset[str] = frozenset()
    alias_version: Optional[int] = None

    @classmethod
    def build(cls, teams: Iterable[TeamLike], alias_table: AliasTable) -> "TeamLookup":
        claims: dict[str, set[int]] = {}
        team_names: dict[int, str] = {}
        by_canonical: dict[str, int] = {}

        def claim(raw: str, team_id: int) -> None:
            key = normalize_team_name(raw)
            if key:
                claims.setdefault(key, set()).add(team_id)

        for team in teams:
            if team.id is None:
                continue
            team_names[team.id] = team.name
            by_canonical[normalize_team_name(team.name)] = team.id
            claim(team.name, team.id)
            if team.short_name:
                claim(team.short_name, team.id)

        for canonical, names in alias_table.aliases.items():
            team_id = by_canonical.get(normalize_team_name(canonical))
            if team_id is None:
                logger.debug(f"[TEAM_LOOKUP] Alias entry for unknown team {canonical!r} ignored")
                continue
            for name in names:
                claim(name, team_id)

        exact = {key: next(iter(ids)) for key, ids in claims.items() if len(ids) == 1}
        ambiguous = frozenset(key for key, ids in claims.items() if len(ids) > 1)
        for key in sorted(ambiguous):
            owners = sorted(team_names[i] for i in claims[key])
            logger.warning(f"[TEAM_LOOKUP] Alias {key!r} claimed by several teams {owners}, dropped")

        return cls(
            exact=exact,
            team_names=team_names,
            ambiguous_keys=ambiguous,
            alias_version=alias_table.version,
        )


def resolve_team_detail(name: str, lookup: TeamLookup) -> Resolution:
    """Resolve a feed team name and report how it was resolved."""
    normalized = normalize_team_name(name)
    if not normalized:
        return Resolution(None, "empty")

    team_id = lookup.exact.get(normalized)
    if team_id is not None:
        return Resolution(team_id, "exact")
    if normalized in lookup.ambiguous_keys:
        return Resolution(None, "ambiguous")

    if len(normalized) < MIN_CONTAINMENT_LENGTH:
        return Resolution(None, "no_match")

    candidates = {
        tid
        for key, tid in lookup.exact.items()
        if len(key) >= MIN_CONTAINMENT_LENGTH and (key in normalized or normalized in key)
    }
    if len(candidates) == 1:
        return Resolution(candidates.pop(), "containment")
    if candidates:
        names = sorted(lookup.team_names.get(c, str(c)) for c in candidates)
        logger.warning(f"[TEAM_LOOKUP] {name!r} is ambiguous between {names}, left unresolved")
        return Resolution(None, "ambiguous")
    return Resolution(None, "no_match")


def resolve_team(name: str, lookup: TeamLookup) -> Optional[int]:
    """Map a feed team name to exactly one team id, or None when unresolved."""
    return resolve_team_detail(name, lookup).team_id
