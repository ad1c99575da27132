from .achievements import ACHIEVEMENT_RULES, AchievementRule, evaluate_achievements
from .endings import EndingType, resolve_ending
from .rules import ProgressionRules

__all__ = [
    "ACHIEVEMENT_RULES",
    "AchievementRule",
    "EndingType",
    "ProgressionRules",
    "evaluate_achievements",
    "resolve_ending",
]
