"""Achievement rules evaluated against player statistics and character progress.

Evaluation is pure: it reports which achievements are newly satisfied and
leaves unlocking to the caller (GameStateStore.check_achievements).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from .rules import DEFAULT_RULES, ProgressionRules

if TYPE_CHECKING:  # pragma: no cover
    from ..state.models import GameState

logger = logging.getLogger(__name__)

ACHIEVEMENTS_CATEGORY = "achievements"


@dataclass(frozen=True)
class AchievementRule:
    id: str
    description: str
    predicate: Callable[["GameState", ProgressionRules], bool]


def _won_ten(state: "GameState", rules: ProgressionRules) -> bool:
    return state.player.games_won >= rules.wins_for_win_10


def _first_perfect(state: "GameState", rules: ProgressionRules) -> bool:
    return state.player.perfect_game_count >= rules.perfects_for_perfect_1


def _all_max_equipment(state: "GameState", rules: ProgressionRules) -> bool:
    return all(c.equipment_level >= rules.max_equipment_level for c in state.characters.values())


# Order is stable; newly earned ids are reported in this order
ACHIEVEMENT_RULES: Tuple[AchievementRule, ...] = (
    AchievementRule("win_10", "Win 10 games", _won_ten),
    AchievementRule("perfect_1", "Finish a game without a mistake", _first_perfect),
    AchievementRule("all_max_equipment", "Raise every character's equipment to the top level", _all_max_equipment),
)


def evaluate_achievements(state: "GameState", rules: Optional[ProgressionRules] = None) -> List[str]:
    """Return achievement ids that are satisfied now but not yet unlocked."""
    rules = rules or DEFAULT_RULES
    earned = [
        rule.id
        for rule in ACHIEVEMENT_RULES
        if not state.unlocks.has(ACHIEVEMENTS_CATEGORY, rule.id) and rule.predicate(state, rules)
    ]
    if earned:
        logger.debug("Newly satisfied achievements: %s", ", ".join(earned))
    return earned
