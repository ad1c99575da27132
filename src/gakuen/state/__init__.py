from .models import (
    SCHEMA_VERSION,
    CharacterState,
    GameState,
    PlayerStatistics,
    Settings,
    UnlockTable,
)
from .defaults import build_initial_state
from .store import BattleResult, GameStateStore

__all__ = [
    "SCHEMA_VERSION",
    "BattleResult",
    "CharacterState",
    "GameState",
    "GameStateStore",
    "PlayerStatistics",
    "Settings",
    "UnlockTable",
    "build_initial_state",
]
