from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressionRules:
    """Thresholds used by achievement and ending evaluation."""

    wins_for_win_10: int = 10
    perfects_for_perfect_1: int = 1
    max_equipment_level: int = 5
    max_intimacy: int = 100
    true_ending_score: int = 500_000
    secret_ending_perfect_games: int = 3


DEFAULT_RULES = ProgressionRules()
