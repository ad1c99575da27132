from __future__ import annotations

from typing import Dict

from .models import CharacterState, GameState, PlayerStatistics, Settings, UnlockTable

# Playable cast; ids match the content tables
DEFAULT_CHARACTERS: Dict[int, Dict[str, object]] = {
    1: {"display_name": "Misaki Amano", "equipment_name": "Basic Gear", "hp": 100, "max_hp": 100},
    2: {"display_name": "Rena Himuro", "equipment_name": "School Uniform", "hp": 120, "max_hp": 120},
    3: {"display_name": "Yo Kouzuki", "equipment_name": "Student Council Uniform", "hp": 150, "max_hp": 150},
}

INITIAL_SCENE = "title"
INITIAL_UNLOCKS = {
    "characters": [1],  # only Misaki at the start
    "scenes": ["title", "scene_1"],
}


def build_initial_state() -> GameState:
    """Return a fresh state tree matching the start of a new game."""
    unlocks = UnlockTable()
    for category, items in INITIAL_UNLOCKS.items():
        for item in items:
            unlocks.add(category, item)
    return GameState(
        characters={cid: CharacterState(**fields) for cid, fields in DEFAULT_CHARACTERS.items()},  # type: ignore[arg-type]
        current_scene=INITIAL_SCENE,
        player=PlayerStatistics(),
        settings=Settings(),
        unlocks=unlocks,
    )
