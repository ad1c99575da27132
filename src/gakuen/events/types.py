from __future__ import annotations

from typing import Any, Dict, Optional, TypedDict


class EventType:
    """Centralized event names published by the game-state store."""

    SCENE_CHANGED = "scene_changed"
    CHARACTER_UPDATED = "character_updated"
    EQUIPMENT_UPGRADED = "equipment_upgraded"
    INTIMACY_CHANGED = "intimacy_changed"
    BATTLE_RECORDED = "battle_recorded"
    SCORE_UPDATED = "score_updated"
    FLAG_CHANGED = "flag_changed"
    UNLOCKED = "unlocked"
    SETTINGS_CHANGED = "settings_changed"
    PLAY_TIME_UPDATED = "play_time_updated"
    DIALOGUE_ADVANCED = "dialogue_advanced"
    GAME_RESET = "game_reset"
    STATE_LOADED = "state_loaded"
    STATE_SAVED = "state_saved"


class SceneChangedPayload(TypedDict):
    previous: Optional[str]
    current: str
    data: Dict[str, Any]


class CharacterUpdatedPayload(TypedDict):
    char_id: int
    old_state: Dict[str, Any]
    new_state: Dict[str, Any]


class EquipmentUpgradedPayload(TypedDict):
    char_id: int
    old_level: int
    new_level: int
    equipment_name: str


class IntimacyChangedPayload(TypedDict):
    char_id: int
    old_value: int
    new_value: int


class BattleRecordedPayload(TypedDict):
    char_id: int
    result: str
    score: int
    old_victories: int
    new_victories: int
    old_battle_count: int
    new_battle_count: int
    total_score: int


class ScoreUpdatedPayload(TypedDict):
    points: int
    old_total: int
    total_score: int


class FlagChangedPayload(TypedDict):
    name: str
    old_value: Any
    new_value: Any


class UnlockedPayload(TypedDict):
    category: str
    item: Any


class SettingsChangedPayload(TypedDict):
    old_settings: Dict[str, Any]
    settings: Dict[str, Any]


class PlayTimeUpdatedPayload(TypedDict):
    seconds: float
    old_total: float
    total: float


class DialogueAdvancedPayload(TypedDict):
    scene: str
    old_index: int
    index: int


class GameResetPayload(TypedDict):
    player_id: str


class StateLoadedPayload(TypedDict):
    state: Any  # GameState; typed loosely to avoid an import cycle
    migrated: bool
    from_version: Optional[str]


class StateSavedPayload(TypedDict):
    slot: str
    path: str


# Event name -> payload shape
EVENT_PAYLOADS: Dict[str, type] = {
    EventType.SCENE_CHANGED: SceneChangedPayload,
    EventType.CHARACTER_UPDATED: CharacterUpdatedPayload,
    EventType.EQUIPMENT_UPGRADED: EquipmentUpgradedPayload,
    EventType.INTIMACY_CHANGED: IntimacyChangedPayload,
    EventType.BATTLE_RECORDED: BattleRecordedPayload,
    EventType.SCORE_UPDATED: ScoreUpdatedPayload,
    EventType.FLAG_CHANGED: FlagChangedPayload,
    EventType.UNLOCKED: UnlockedPayload,
    EventType.SETTINGS_CHANGED: SettingsChangedPayload,
    EventType.PLAY_TIME_UPDATED: PlayTimeUpdatedPayload,
    EventType.DIALOGUE_ADVANCED: DialogueAdvancedPayload,
    EventType.GAME_RESET: GameResetPayload,
    EventType.STATE_LOADED: StateLoadedPayload,
    EventType.STATE_SAVED: StateSavedPayload,
}
