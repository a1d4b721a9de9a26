"""
Static alias table for feed team names.

Aliases live in versioned JSON (quiniela/data/team_aliases.json) keyed by
canonical team name, so supporting a new feed spelling is a data change.

Usage:
    from quiniela.teams.aliases import load_alias_table

    table = load_alias_table()
    table.aliases["Club América"]  # ("America", "Club America", ...)
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from quiniela.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_ALIASES_PATH = Path(__file__).parent.parent / "data" / "team_aliases.json"


@dataclass(frozen=True)
class AliasTable:
    """Canonical team name -> feed spellings."""

    version: Optional[int] = None
    aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)


def parse_alias_table(payload: dict) -> AliasTable:
    """Build an AliasTable from the decoded JSON document."""
    meta = payload.get("_meta") or {}
    teams = payload.get("teams") or {}

    aliases: dict[str, tuple[str, ...]] = {}
    for canonical, names in teams.items():
        if not isinstance(names, list):
            logger.warning(f"[TEAM_ALIASES] Ignoring non-list aliases for {canonical!r}")
            continue
        aliases[canonical] = tuple(n for n in names if isinstance(n, str) and n.strip())

    version = meta.get("version")
    return AliasTable(version=version if isinstance(version, int) else None, aliases=aliases)


def load_alias_table(path: Optional[str] = None) -> AliasTable:
    """
    Load the alias table from disk.

    A missing or malformed file yields an empty table: resolution then relies
    on canonical names, short names and containment only.
    """
    settings = get_settings()
    alias_path = Path(path or settings.TEAM_ALIASES_PATH or DEFAULT_ALIASES_PATH)

    try:
        with open(alias_path, encoding="utf-8") as f:
            payload = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        logger.warning("[TEAM_ALIASES] Failed to load %s: %s", alias_path, e)
        return AliasTable()

    table = parse_alias_table(payload)
    logger.debug(
        "[TEAM_ALIASES] Loaded alias table v%s: %d teams",
        table.version,
        len(table.aliases),
    )
    return table
