"""Points for a single prediction."""

EXACT_POINTS = 2
OUTCOME_POINTS = 1


def outcome(home: int, away: int) -> int:
    """1 home win, 0 draw, -1 away win."""
    if home > away:
        return 1
    if home < away:
        return -1
    return 0


def calculate_points(pred_home: int, pred_away: int, real_home: int, real_away: int) -> int:
    """
    Score a prediction against the final result.

    2 for the exact score, 1 for the right outcome (home win / draw / away
    win), 0 otherwise.
    """
    if pred_home == real_home and pred_away == real_away:
        return EXACT_POINTS
    if outcome(pred_home, pred_away) == outcome(real_home, real_away):
        return OUTCOME_POINTS
    return 0
