from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .achievements import ACHIEVEMENTS_CATEGORY
from .rules import DEFAULT_RULES, ProgressionRules

if TYPE_CHECKING:  # pragma: no cover
    from ..state.models import GameState

logger = logging.getLogger(__name__)


class EndingType(str, Enum):
    TRUE = "TRUE"
    SECRET = "SECRET"
    NORMAL = "NORMAL"
    BAD = "BAD"


def is_true_ending(state: "GameState", rules: ProgressionRules = DEFAULT_RULES) -> bool:
    chars = state.characters.values()
    return (
        all(c.equipment_level == rules.max_equipment_level for c in chars)
        and all(c.intimacy == rules.max_intimacy for c in chars)
        and state.player.total_score >= rules.true_ending_score
    )


def is_secret_ending(state: "GameState", rules: ProgressionRules = DEFAULT_RULES) -> bool:
    return (
        state.player.perfect_game_count >= rules.secret_ending_perfect_games
        and all(c.victories >= c.battle_count for c in state.characters.values())
        and state.unlocks.has(ACHIEVEMENTS_CATEGORY, "all_max_equipment")
    )


def is_normal_ending(state: "GameState", rules: ProgressionRules = DEFAULT_RULES) -> bool:
    chars = list(state.characters.values())
    return all(c.battle_count > 0 for c in chars) and any(c.victories > 0 for c in chars)


# Most exclusive first; the first match wins
_ENDING_ORDER = (
    (EndingType.TRUE, is_true_ending),
    (EndingType.SECRET, is_secret_ending),
    (EndingType.NORMAL, is_normal_ending),
)


def resolve_ending(state: "GameState", rules: Optional[ProgressionRules] = None) -> EndingType:
    """Resolve the ending reachable from ``state``.

    Predicates are checked in the fixed order TRUE, SECRET, NORMAL; BAD is the
    fallback when none hold.
    """
    rules = rules or DEFAULT_RULES
    for ending, predicate in _ENDING_ORDER:
        if predicate(state, rules):
            logger.debug("Resolved ending %s", ending.value)
            return ending
    logger.debug("Resolved ending %s", EndingType.BAD.value)
    return EndingType.BAD
