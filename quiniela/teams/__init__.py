"""Team identity resolution utilities."""

from quiniela.teams.aliases import AliasTable, load_alias_table
from quiniela.teams.resolver import TeamLookup, resolve_team, resolve_team_detail

__all__ = [
    "AliasTable",
    "TeamLookup",
    "load_alias_table",
    "resolve_team",
    "resolve_team_detail",
]
