"""
Scoring constants for scramble golf.

This module is the single source of truth for hole score classification
and game setup defaults. Defaults come from config.py (environment-aware).

Hole score classification (strokes relative to par):
    - Hole in one: 1 stroke, regardless of par
    - Albatross: -3 (or better)
    - Eagle: -2
    - Birdie: -1
    - Par: 0
    - Bogey: +1
    - Double bogey or worse: +2 and above
"""

from config import config


# =============================================================================
# Game Setup Defaults
# =============================================================================

DEFAULT_HOLE_COUNT: int = config.game_defaults.hole_count
MIN_PLAYERS: int = config.game_defaults.min_players

# Course API tees are grouped by gender; male tees are preferred
TEE_GROUPS: tuple[str, ...] = ("male", "female")
PREFERRED_TEE_HOLES: int = 18


# =============================================================================
# Hole Score Classification
# =============================================================================

HOLE_IN_ONE = "hole_in_one"
ALBATROSS = "albatross"
EAGLE = "eagle"
BIRDIE = "birdie"
PAR = "par"
BOGEY = "bogey"
DOUBLE_BOGEY_PLUS = "double_bogey_plus"

# Strokes relative to par -> label (values outside this map are clamped)
RELATIVE_SCORE_LABELS: dict[int, str] = {
    -3: ALBATROSS,
    -2: EAGLE,
    -1: BIRDIE,
    0: PAR,
    1: BOGEY,
    2: DOUBLE_BOGEY_PLUS,
}

SCORE_LABEL_SYMBOLS: dict[str, str] = {
    HOLE_IN_ONE: "🎯",
    ALBATROSS: "🦅🦅",
    EAGLE: "🦅",
    BIRDIE: "🐦",
    PAR: "✅",
    BOGEY: "🟧",
    DOUBLE_BOGEY_PLUS: "❌",
}


# =============================================================================
# Helper Functions
# =============================================================================

def classify_hole_score(strokes: int, par: int) -> str:
    """
    Classify a hole result against its par.

    Args:
        strokes: Total team strokes on the hole.
        par: Par for the hole.

    Returns:
        One of the score label constants defined above.
    """
    if strokes == 1:
        return HOLE_IN_ONE
    relative = max(-3, min(2, strokes - par))
    return RELATIVE_SCORE_LABELS[relative]
