"""
Shared team name normalization for feed-to-team matching.

Single source of truth: the alias table, the resolver and the tests all
import from here.
"""

import re
import unicodedata


_SAFE_ORG_TOKENS = [
    r"\bfc\b", r"\bcf\b", r"\bsc\b", r"\bafc\b", r"\bac\b",
    r"\bcd\b", r"\bca\b", r"\bud\b", r"\bclub\b",
]


def normalize_team_name(name: str) -> str:
    """
    Normalize team name for alias lookup and containment matching.

    Steps:
    1. Lowercase + trim
    2. Strip diacritics (NFKD)
    3. Replace punctuation/hyphens/slashes with space (not delete)
    4. Remove ONLY juridical/organizational tokens (NOT semantic ones)
    5. Collapse whitespace

    Semantic tokens such as 'real', 'atletico', 'deportivo', 'united' are
    kept because they distinguish teams.

    Examples:
        "Club América"       -> "america"
        "CF Monterrey"       -> "monterrey"
        "Querétaro FC"       -> "queretaro"
        "Atlético San Luis"  -> "atletico san luis"
        "Tigres U.A.N.L."    -> "tigres u a n l"
        "Bodø/Glimt"         -> "bodo glimt"
    """
    if not name:
        return ""

    name = name.lower().strip()

    # Manual replacements for chars NFKD doesn't decompose (Nordic letters)
    name = name.replace("ø", "o").replace("æ", "ae").replace("ð", "d")
    name = unicodedata.normalize("NFKD", name)
    name = "".join(c for c in name if not unicodedata.combining(c))

    # Replace punctuation with space (preserve word boundaries)
    name = re.sub(r"[^\w\s]", " ", name)

    for token in _SAFE_ORG_TOKENS:
        name = re.sub(token, "", name)

    return " ".join(name.split())
