from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set


# Bump when the snapshot layout changes; see gakuen.save.migrations
SCHEMA_VERSION = "1.1.0"

MIN_EQUIPMENT_LEVEL = 1
MAX_EQUIPMENT_LEVEL = 5
MIN_INTIMACY = 0
MAX_INTIMACY = 100
MIN_TEXT_SPEED = 0.25
MAX_TEXT_SPEED = 4.0

UNLOCK_CATEGORIES = ("characters", "scenes", "endings", "gallery", "achievements")


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_player_id() -> str:
    return f"player_{uuid.uuid4().hex}"


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def clamp_int(value: Any, lo: int, hi: int) -> int:
    return int(clamp(int(value), lo, hi))


@dataclass
class Settings:
    """Player preferences. Independent of progress and kept across a reset."""

    bgm_volume: float = 0.7  # 0..1
    se_volume: float = 0.8  # 0..1
    voice_volume: float = 0.8  # 0..1
    text_speed: float = 1.0  # multiplier
    auto_mode: bool = False
    fullscreen: bool = False
    language: str = "ja"

    def normalize(self) -> None:
        self.bgm_volume = clamp(float(self.bgm_volume), 0.0, 1.0)
        self.se_volume = clamp(float(self.se_volume), 0.0, 1.0)
        self.voice_volume = clamp(float(self.voice_volume), 0.0, 1.0)
        self.text_speed = clamp(float(self.text_speed), MIN_TEXT_SPEED, MAX_TEXT_SPEED)
        self.auto_mode = bool(self.auto_mode)
        self.fullscreen = bool(self.fullscreen)
        self.language = str(self.language)

    @classmethod
    def field_names(cls) -> Set[str]:
        return {f.name for f in fields(cls)}

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.field_names())}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        s = cls(**{k: v for k, v in data.items() if k in cls.field_names()})
        s.normalize()
        return s

    def clone(self) -> "Settings":
        return Settings(**self.to_dict())


@dataclass
class CharacterState:
    """Progress for one playable character.

    Invariants (re-established by normalize()):
    - 1 <= equipment_level <= 5
    - 0 <= intimacy <= 100
    - 0 <= victories <= battle_count
    """

    display_name: str
    equipment_level: int = MIN_EQUIPMENT_LEVEL
    equipment_name: str = ""
    intimacy: int = MIN_INTIMACY
    battle_count: int = 0
    victories: int = 0
    cumulative_score: int = 0
    hp: int = 100
    max_hp: int = 100

    def normalize(self) -> None:
        self.display_name = str(self.display_name)
        self.equipment_name = str(self.equipment_name)
        self.equipment_level = clamp_int(self.equipment_level, MIN_EQUIPMENT_LEVEL, MAX_EQUIPMENT_LEVEL)
        self.intimacy = clamp_int(self.intimacy, MIN_INTIMACY, MAX_INTIMACY)
        self.battle_count = max(0, int(self.battle_count))
        self.victories = clamp_int(self.victories, 0, self.battle_count)
        self.cumulative_score = int(self.cumulative_score)
        self.max_hp = max(1, int(self.max_hp))
        self.hp = clamp_int(self.hp, 0, self.max_hp)

    @property
    def defeats(self) -> int:
        return self.battle_count - self.victories

    @classmethod
    def field_names(cls) -> Set[str]:
        return {f.name for f in fields(cls)}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "equipment_level": self.equipment_level,
            "equipment_name": self.equipment_name,
            "intimacy": self.intimacy,
            "battle_count": self.battle_count,
            "victories": self.victories,
            "cumulative_score": self.cumulative_score,
            "hp": self.hp,
            "max_hp": self.max_hp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["CharacterState"] = None) -> "CharacterState":
        """Build from a snapshot dict; ``base`` fills fields the snapshot lacks."""
        values = base.to_dict() if base is not None else {}
        values.update({k: v for k, v in data.items() if k in cls.field_names()})
        if "display_name" not in values:
            raise ValueError("CharacterState requires a display_name")
        c = cls(**values)
        c.normalize()
        return c

    def clone(self) -> "CharacterState":
        return CharacterState(**self.to_dict())


@dataclass
class PlayerStatistics:
    """Aggregate counters across all battles. games_won <= games_played."""

    name: str = "Protagonist"
    total_score: int = 0
    total_play_time_seconds: float = 0.0
    games_played: int = 0
    games_won: int = 0
    total_tiles_cleared: int = 0
    max_combo_observed: int = 0
    perfect_game_count: int = 0

    def normalize(self) -> None:
        self.name = str(self.name)
        self.total_score = int(self.total_score)
        self.total_play_time_seconds = max(0.0, float(self.total_play_time_seconds))
        self.games_played = max(0, int(self.games_played))
        self.games_won = clamp_int(self.games_won, 0, self.games_played)
        self.total_tiles_cleared = max(0, int(self.total_tiles_cleared))
        self.max_combo_observed = max(0, int(self.max_combo_observed))
        self.perfect_game_count = max(0, int(self.perfect_game_count))

    @classmethod
    def field_names(cls) -> Set[str]:
        return {f.name for f in fields(cls)}

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.field_names())}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerStatistics":
        p = cls(**{k: v for k, v in data.items() if k in cls.field_names()})
        p.normalize()
        return p

    def clone(self) -> "PlayerStatistics":
        return PlayerStatistics(**self.to_dict())


class UnlockTable:
    """Category -> ordered, duplicate-free set of unlocked item ids.

    Membership is monotone: items are never removed.
    """

    def __init__(self, categories: Iterable[str] = UNLOCK_CATEGORIES) -> None:
        # dict preserves insertion order and gives O(1) membership
        self._buckets: Dict[str, Dict[Any, None]] = {c: {} for c in categories}

    def categories(self) -> List[str]:
        return list(self._buckets)

    def has_category(self, category: str) -> bool:
        return category in self._buckets

    def add(self, category: str, item: Any) -> bool:
        """Insert ``item``; returns True only on first insertion.

        Raises KeyError for an unknown category.
        """
        bucket = self._buckets[category]
        if item in bucket:
            return False
        bucket[item] = None
        return True

    def has(self, category: str, item: Any) -> bool:
        return item in self._buckets.get(category, ())

    def items(self, category: str) -> List[Any]:
        return list(self._buckets.get(category, ()))

    def __iter__(self) -> Iterator[str]:
        return iter(self._buckets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnlockTable):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"UnlockTable({self.to_dict()!r})"

    def to_dict(self) -> Dict[str, List[Any]]:
        return {c: list(bucket) for c, bucket in self._buckets.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Iterable[Any]]) -> "UnlockTable":
        # Unknown categories from newer saves are kept rather than dropped
        table = cls(categories=list(UNLOCK_CATEGORIES) + [c for c in data if c not in UNLOCK_CATEGORIES])
        for category, items in data.items():
            for item in items:
                table.add(category, item)
        return table

    def clone(self) -> "UnlockTable":
        return UnlockTable.from_dict(self.to_dict())


@dataclass
class GameState:
    """Root of the save state. One live instance per session, owned by the store."""

    characters: Dict[int, CharacterState]
    schema_version: str = SCHEMA_VERSION
    player_id: str = field(default_factory=generate_player_id)
    created_at: str = field(default_factory=utcnow)
    last_played_at: str = field(default_factory=utcnow)
    current_scene: str = "title"
    current_dialogue_index: int = 0
    completed_scenes: List[str] = field(default_factory=list)
    read_dialogues: List[str] = field(default_factory=list)
    flags: Dict[str, Any] = field(default_factory=dict)
    player: PlayerStatistics = field(default_factory=PlayerStatistics)
    settings: Settings = field(default_factory=Settings)
    unlocks: UnlockTable = field(default_factory=UnlockTable)
    has_unsaved_progress: bool = False

    def touch(self) -> None:
        self.last_played_at = utcnow()

    def mark_dirty(self) -> None:
        self.has_unsaved_progress = True
        self.touch()

    def clone(self) -> "GameState":
        """Deep, schema-aware copy sharing no mutable containers with ``self``."""
        return GameState(
            characters={cid: c.clone() for cid, c in self.characters.items()},
            schema_version=self.schema_version,
            player_id=self.player_id,
            created_at=self.created_at,
            last_played_at=self.last_played_at,
            current_scene=self.current_scene,
            current_dialogue_index=self.current_dialogue_index,
            completed_scenes=list(self.completed_scenes),
            read_dialogues=list(self.read_dialogues),
            # Flag values are arbitrary, so they get a generic deep copy
            flags=copy.deepcopy(self.flags),
            player=self.player.clone(),
            settings=self.settings.clone(),
            unlocks=self.unlocks.clone(),
            has_unsaved_progress=self.has_unsaved_progress,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "player_id": self.player_id,
            "created_at": self.created_at,
            "last_played_at": self.last_played_at,
            "current_scene": self.current_scene,
            "current_dialogue_index": self.current_dialogue_index,
            "completed_scenes": list(self.completed_scenes),
            "read_dialogues": list(self.read_dialogues),
            "flags": copy.deepcopy(self.flags),
            "characters": {str(cid): c.to_dict() for cid, c in sorted(self.characters.items())},
            "player": self.player.to_dict(),
            "settings": self.settings.to_dict(),
            "unlocks": self.unlocks.to_dict(),
            "has_unsaved_progress": self.has_unsaved_progress,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: Optional["GameState"] = None) -> "GameState":
        """Build a state tree from a snapshot dict.

        Fields missing from ``data`` come from ``defaults`` (a fresh default
        tree is expected); characters present in ``defaults`` but not in the
        snapshot are kept, and per-character gaps are filled from the default
        character with the same id.
        """
        if defaults is None:
            from .defaults import build_initial_state

            defaults = build_initial_state()
        base = defaults.clone()

        characters = dict(base.characters)
        for raw_id, raw_char in (data.get("characters") or {}).items():
            cid = int(raw_id)
            characters[cid] = CharacterState.from_dict(raw_char, base=base.characters.get(cid))

        state = cls(
            characters=characters,
            schema_version=str(data.get("schema_version", base.schema_version)),
            player_id=str(data.get("player_id") or base.player_id),
            created_at=str(data.get("created_at") or base.created_at),
            last_played_at=str(data.get("last_played_at") or base.last_played_at),
            current_scene=str(data.get("current_scene", base.current_scene)),
            current_dialogue_index=max(0, int(data.get("current_dialogue_index", base.current_dialogue_index))),
            completed_scenes=_dedupe(data.get("completed_scenes", base.completed_scenes)),
            read_dialogues=_dedupe(data.get("read_dialogues", base.read_dialogues)),
            flags=copy.deepcopy(dict(data.get("flags", base.flags))),
            player=PlayerStatistics.from_dict({**base.player.to_dict(), **(data.get("player") or {})}),
            settings=Settings.from_dict({**base.settings.to_dict(), **(data.get("settings") or {})}),
            unlocks=base.unlocks if "unlocks" not in data else UnlockTable.from_dict(data["unlocks"] or {}),
            has_unsaved_progress=bool(data.get("has_unsaved_progress", False)),
        )
        return state


def _dedupe(items: Iterable[Any]) -> List[Any]:
    return list(dict.fromkeys(items))
