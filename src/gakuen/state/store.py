from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

from ..errors import LoadError
from ..events import EventBus, EventType, Handler
from ..progression import EndingType, ProgressionRules, evaluate_achievements, resolve_ending
from ..save.codec import deserialize_state, serialize_state
from ..save.migrations import detect_version, migrate
from .defaults import build_initial_state
from .models import (
    MAX_EQUIPMENT_LEVEL,
    MAX_INTIMACY,
    MIN_EQUIPMENT_LEVEL,
    MIN_INTIMACY,
    SCHEMA_VERSION,
    CharacterState,
    GameState,
    Settings,
    clamp_int,
    utcnow,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..equipment import EquipmentBonusApplier

logger = logging.getLogger(__name__)


class BattleResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    PERFECT_WIN = "perfect_win"

    @property
    def is_victory(self) -> bool:
        return self is not BattleResult.LOSS


class GameStateStore:
    """Owns the live GameState and every mutation applied to it.

    Each mutation clamps its inputs to the state invariants, applies the
    change, marks the state dirty, and publishes one event on the bus.
    References to unknown characters or unlock categories are logged as
    warnings and ignored; they never raise.

    The store is single-writer: call it from the game loop thread only.
    """

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        *,
        bonus_applier: Optional["EquipmentBonusApplier"] = None,
        rules: Optional[ProgressionRules] = None,
    ) -> None:
        self._bus = bus if bus is not None else EventBus()
        self._bonus_applier = bonus_applier
        self._rules = rules or ProgressionRules()
        self._state: GameState = build_initial_state()
        self.last_saved_at: Optional[str] = None
        logger.info("Initialized game state for %s", self._state.player_id)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def rules(self) -> ProgressionRules:
        return self._rules

    @property
    def state(self) -> GameState:
        """A deep copy of the live tree. Mutate through the store, not this copy."""
        return self._state.clone()

    @property
    def current_scene(self) -> str:
        return self._state.current_scene

    @property
    def has_unsaved_progress(self) -> bool:
        return self._state.has_unsaved_progress

    def on(self, event: str, handler: Handler) -> None:
        self._bus.on(event, handler)

    def off(self, event: str, handler: Handler) -> bool:
        return self._bus.off(event, handler)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _character(self, char_id: int, operation: str) -> Optional[CharacterState]:
        char = self._state.characters.get(char_id)
        if char is None:
            logger.warning("%s: character %r not found; ignoring", operation, char_id)
        return char

    def _commit(self, event: str, payload: Any) -> None:
        self._state.mark_dirty()
        self._bus.emit(event, payload)

    # ------------------------------------------------------------------
    # Scenes and dialogue
    # ------------------------------------------------------------------

    def change_scene(self, name: str, data: Optional[Mapping[str, Any]] = None) -> None:
        """Switch to ``name``, recording the scene being left as completed."""
        previous = self._state.current_scene
        if previous and previous not in self._state.completed_scenes:
            self._state.completed_scenes.append(previous)
        self._state.current_scene = name
        self._state.current_dialogue_index = 0
        self._commit(EventType.SCENE_CHANGED, {"previous": previous, "current": name, "data": dict(data or {})})
        logger.info("Scene changed: %s -> %s", previous, name)

    def advance_dialogue(self, index: Optional[int] = None) -> int:
        """Move to the next dialogue line (or to ``index``) and mark it read."""
        old_index = self._state.current_dialogue_index
        new_index = old_index + 1 if index is None else max(0, int(index))
        self._state.current_dialogue_index = new_index
        key = _dialogue_key(self._state.current_scene, new_index)
        if key not in self._state.read_dialogues:
            self._state.read_dialogues.append(key)
        self._commit(
            EventType.DIALOGUE_ADVANCED,
            {"scene": self._state.current_scene, "old_index": old_index, "index": new_index},
        )
        return new_index

    def is_dialogue_read(self, scene: str, index: int) -> bool:
        return _dialogue_key(scene, index) in self._state.read_dialogues

    # ------------------------------------------------------------------
    # Characters
    # ------------------------------------------------------------------

    def update_character(self, char_id: int, updates: Mapping[str, Any]) -> bool:
        """Shallow-merge ``updates`` into a character, then re-clamp its invariants."""
        char = self._character(char_id, "update_character")
        if char is None:
            return False
        known = CharacterState.field_names()
        unknown = sorted(set(updates) - known)
        if unknown:
            logger.warning("update_character: ignoring unknown fields %s", ", ".join(unknown))
        old_state = char.to_dict()
        updated = char.clone()
        for key, value in updates.items():
            if key in known:
                setattr(updated, key, value)
        try:
            updated.normalize()
        except (TypeError, ValueError) as e:
            logger.warning("update_character: rejecting updates for %s: %s", char.display_name, e)
            return False
        self._state.characters[char_id] = updated
        self._commit(
            EventType.CHARACTER_UPDATED,
            {"char_id": char_id, "old_state": old_state, "new_state": updated.to_dict()},
        )
        return True

    def upgrade_equipment(self, char_id: int, new_level: int, equipment_name: str) -> bool:
        """Set a character's equipment level and name, then apply level bonuses.

        Levels outside [1, 5] are clamped. A level below the current one is
        refused so equipment never goes down.
        """
        char = self._character(char_id, "upgrade_equipment")
        if char is None:
            return False
        level = clamp_int(new_level, MIN_EQUIPMENT_LEVEL, MAX_EQUIPMENT_LEVEL)
        if level != new_level:
            logger.warning("upgrade_equipment: level %r out of range, clamped to %d", new_level, level)
        old_level = char.equipment_level
        if level < old_level:
            logger.warning(
                "upgrade_equipment: refusing to lower %s from level %d to %d", char.display_name, old_level, level
            )
            return False

        # Work on a copy so a failing bonus rule leaves the character as it was
        upgraded = char.clone()
        upgraded.equipment_level = level
        upgraded.equipment_name = str(equipment_name)
        if self._bonus_applier is not None:
            self._bonus_applier.apply(char_id, upgraded, level)
        upgraded.normalize()
        self._state.characters[char_id] = upgraded

        self._commit(
            EventType.EQUIPMENT_UPGRADED,
            {"char_id": char_id, "old_level": old_level, "new_level": level, "equipment_name": upgraded.equipment_name},
        )
        logger.info("Equipment upgraded: %s Lv%d -> Lv%d", upgraded.display_name, old_level, level)
        self.check_achievements()
        return True

    def upgrade_character_equipment(self, char_id: int, equipment_name: Optional[str] = None) -> bool:
        """Raise equipment by one level. Returns False at the cap or for an unknown id."""
        char = self._character(char_id, "upgrade_character_equipment")
        if char is None or char.equipment_level >= MAX_EQUIPMENT_LEVEL:
            return False
        name = char.equipment_name if equipment_name is None else equipment_name
        return self.upgrade_equipment(char_id, char.equipment_level + 1, name)

    def update_intimacy(self, char_id: int, delta: int) -> Optional[int]:
        """Add ``delta`` (any sign) to intimacy, clamped to [0, 100]. Returns the new value."""
        char = self._character(char_id, "update_intimacy")
        if char is None:
            return None
        old_value = char.intimacy
        char.intimacy = clamp_int(old_value + int(delta), MIN_INTIMACY, MAX_INTIMACY)
        self._commit(
            EventType.INTIMACY_CHANGED,
            {"char_id": char_id, "old_value": old_value, "new_value": char.intimacy},
        )
        return char.intimacy

    def increase_intimacy(self, char_id: int, amount: int) -> Optional[int]:
        return self.update_intimacy(char_id, amount)

    def record_battle_result(
        self,
        char_id: int,
        result: Union[BattleResult, str],
        score: int,
        *,
        tiles_cleared: int = 0,
        combo: int = 0,
    ) -> List[str]:
        """Record a finished match against ``char_id``.

        Returns the achievement ids newly earned by this result.
        Raises ValueError (TypeError for non-numeric types) if ``result`` is not a
        BattleResult value or a count is not an integer; nothing is recorded then.
        """
        outcome = BattleResult(result)
        score, tiles_cleared, combo = int(score), int(tiles_cleared), int(combo)
        char = self._character(char_id, "record_battle_result")
        if char is None:
            return []

        stats = self._state.player
        old_victories, old_battles = char.victories, char.battle_count
        char.battle_count += 1
        char.cumulative_score += score
        stats.games_played += 1
        stats.total_score += score
        if outcome.is_victory:
            char.victories += 1
            stats.games_won += 1
        if outcome is BattleResult.PERFECT_WIN:
            stats.perfect_game_count += 1
        stats.total_tiles_cleared += max(0, tiles_cleared)
        stats.max_combo_observed = max(stats.max_combo_observed, combo)

        self._commit(
            EventType.BATTLE_RECORDED,
            {
                "char_id": char_id,
                "result": outcome.value,
                "score": score,
                "old_victories": old_victories,
                "new_victories": char.victories,
                "old_battle_count": old_battles,
                "new_battle_count": char.battle_count,
                "total_score": stats.total_score,
            },
        )
        logger.info("Battle vs %s: %s (+%d)", char.display_name, outcome.value, score)
        return self.check_achievements()

    # ------------------------------------------------------------------
    # Player-wide progress
    # ------------------------------------------------------------------

    def update_score(self, points: int) -> int:
        """Add ``points`` to the total score and count one game played."""
        stats = self._state.player
        old_total = stats.total_score
        stats.total_score += int(points)
        stats.games_played += 1
        self._commit(
            EventType.SCORE_UPDATED,
            {"points": int(points), "old_total": old_total, "total_score": stats.total_score},
        )
        return stats.total_score

    def update_play_time(self, seconds: float) -> None:
        if seconds < 0:
            logger.warning("update_play_time: ignoring negative duration %r", seconds)
            return
        stats = self._state.player
        old_total = stats.total_play_time_seconds
        stats.total_play_time_seconds += float(seconds)
        self._commit(
            EventType.PLAY_TIME_UPDATED,
            {"seconds": float(seconds), "old_total": old_total, "total": stats.total_play_time_seconds},
        )

    def update_settings(self, **changes: Any) -> Settings:
        known = Settings.field_names()
        unknown = sorted(set(changes) - known)
        if unknown:
            logger.warning("update_settings: ignoring unknown settings %s", ", ".join(unknown))
        old_settings = self._state.settings.to_dict()
        merged = {**old_settings, **{k: v for k, v in changes.items() if k in known}}
        self._state.settings = Settings.from_dict(merged)
        self._commit(
            EventType.SETTINGS_CHANGED,
            {"old_settings": old_settings, "settings": self._state.settings.to_dict()},
        )
        return self._state.settings.clone()

    # ------------------------------------------------------------------
    # Flags and unlocks
    # ------------------------------------------------------------------

    def set_flag(self, name: str, value: Any) -> None:
        old_value = self._state.flags.get(name)
        self._state.flags[name] = value
        self._commit(EventType.FLAG_CHANGED, {"name": name, "old_value": old_value, "new_value": value})

    def get_flag(self, name: str, default: Any = False) -> Any:
        return self._state.flags.get(name, default)

    def unlock(self, category: str, item: Any) -> bool:
        """Unlock ``item`` in ``category``. Returns True only on first insertion.

        Repeat calls are harmless no-ops and publish nothing.
        """
        if not self._state.unlocks.has_category(category):
            logger.warning("unlock: unknown category %r; ignoring %r", category, item)
            return False
        if not self._state.unlocks.add(category, item):
            logger.debug("unlock: %s/%s already unlocked", category, item)
            return False
        self._commit(EventType.UNLOCKED, {"category": category, "item": item})
        logger.info("Unlocked: %s/%s", category, item)
        return True

    def is_unlocked(self, category: str, item: Any) -> bool:
        return self._state.unlocks.has(category, item)

    def unlock_ending(self, ending: Union[EndingType, str]) -> bool:
        return self.unlock("endings", EndingType(ending).value)

    # ------------------------------------------------------------------
    # Derived progress
    # ------------------------------------------------------------------

    def check_achievements(self) -> List[str]:
        """Unlock every achievement that is newly satisfied and return their ids."""
        earned = evaluate_achievements(self._state, self._rules)
        for achievement in earned:
            self.unlock("achievements", achievement)
        return earned

    def resolve_ending(self) -> EndingType:
        return resolve_ending(self._state, self._rules)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset_game(self) -> None:
        """Start over from defaults, keeping settings and the player id."""
        settings = self._state.settings.clone()
        player_id = self._state.player_id
        fresh = build_initial_state()
        fresh.settings = settings
        fresh.player_id = player_id
        self._state = fresh
        self._commit(EventType.GAME_RESET, {"player_id": player_id})
        logger.info("Game state reset")

    def serialize(self) -> Dict[str, Any]:
        """Produce a storage-ready snapshot sharing nothing with the live tree."""
        return serialize_state(self._state)

    def migrate(self, snapshot: Mapping[str, Any]) -> Dict[str, Any]:
        return migrate(snapshot)

    def load(self, snapshot: Mapping[str, Any]) -> GameState:
        """Adopt ``snapshot`` as the live state, migrating it if its version differs.

        Raises LoadError (cause attached) and leaves the live state untouched
        if the snapshot is malformed or migration fails.
        """
        try:
            if not isinstance(snapshot, Mapping):
                raise TypeError(f"snapshot must be a mapping, got {type(snapshot).__name__}")
            from_version = detect_version(snapshot)
            migrated = from_version != SCHEMA_VERSION
            if migrated:
                logger.warning("Save data version mismatch (%s != %s), applying migration", from_version, SCHEMA_VERSION)
                snapshot = migrate(snapshot)
            new_state = deserialize_state(snapshot)
        except LoadError:
            logger.error("Failed to load game state", exc_info=True)
            raise
        except Exception as e:
            logger.error("Failed to load game state", exc_info=True)
            raise LoadError(f"Failed to load game state: {e}", cause=e) from e

        new_state.schema_version = SCHEMA_VERSION
        new_state.has_unsaved_progress = False
        new_state.touch()
        self._state = new_state
        self._bus.emit(
            EventType.STATE_LOADED,
            {"state": new_state.clone(), "migrated": migrated, "from_version": from_version},
        )
        logger.info("Game state loaded (schema %s)", from_version)
        return new_state.clone()

    def mark_saved(self) -> None:
        self._state.has_unsaved_progress = False
        self.last_saved_at = utcnow()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_character(self, char_id: int) -> Optional[CharacterState]:
        char = self._state.characters.get(char_id)
        return char.clone() if char is not None else None

    def character_ids(self) -> List[int]:
        return sorted(self._state.characters)

    def get_flags(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state.flags)

    def get_unlocked(self, category: str) -> List[Any]:
        return self._state.unlocks.items(category)

    def get_completed_scenes(self) -> List[str]:
        return list(self._state.completed_scenes)

    def get_character_stats(self, char_id: int) -> Dict[str, int]:
        char = self._state.characters.get(char_id)
        if char is None:
            return {"wins": 0, "total_score": 0, "battles": 0, "defeats": 0}
        return {
            "wins": char.victories,
            "total_score": char.cumulative_score,
            "battles": char.battle_count,
            "defeats": char.defeats,
        }

    def get_intimacy(self, char_id: int) -> int:
        char = self._state.characters.get(char_id)
        return char.intimacy if char is not None else 0

    def get_character_level(self, char_id: int) -> int:
        char = self._state.characters.get(char_id)
        return char.equipment_level if char is not None else MIN_EQUIPMENT_LEVEL

    def get_defeated_characters(self) -> List[int]:
        """Ids of characters the player has beaten at least once."""
        return [cid for cid, c in sorted(self._state.characters.items()) if c.victories > 0]

    def get_game_stats(self) -> Dict[str, Any]:
        stats = self._state.player
        return {
            "play_time": stats.total_play_time_seconds,
            "total_score": stats.total_score,
            "wins": stats.games_won,
            "defeats": stats.games_played - stats.games_won,
            "perfect_wins": stats.perfect_game_count,
            "max_combo": stats.max_combo_observed,
            "tiles_cleared": stats.total_tiles_cleared,
        }

    def are_all_characters_max_level(self) -> bool:
        return all(c.equipment_level >= self._rules.max_equipment_level for c in self._state.characters.values())

    def are_all_characters_max_intimacy(self) -> bool:
        return all(c.intimacy >= self._rules.max_intimacy for c in self._state.characters.values())

    def get_debug_info(self) -> Dict[str, Any]:
        s = self._state
        return {
            "player_id": s.player_id,
            "current_scene": s.current_scene,
            "completed_scenes": len(s.completed_scenes),
            "total_score": s.player.total_score,
            "play_time": s.player.total_play_time_seconds,
            "has_unsaved_progress": s.has_unsaved_progress,
            "characters": {
                cid: {
                    "level": c.equipment_level,
                    "intimacy": c.intimacy,
                    "victories": c.victories,
                    "battles": c.battle_count,
                }
                for cid, c in sorted(s.characters.items())
            },
            "achievements": s.unlocks.items("achievements"),
        }


def _dialogue_key(scene: str, index: int) -> str:
    return f"{scene}:{int(index)}"
