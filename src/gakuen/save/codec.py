from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping

from jsonschema import Draft202012Validator, exceptions as js_exceptions

from ..errors import SnapshotFormatError
from ..state.defaults import build_initial_state
from ..state.models import GameState

logger = logging.getLogger(__name__)

_INT = {"type": "integer"}
_NON_NEG_INT = {"type": "integer", "minimum": 0}
_NUMBER = {"type": "number"}

# Shape check only: every property is optional (defaults fill gaps) and
# unknown properties are tolerated.
SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": {
        "schema_version": {"type": ["string", "number"]},
        "player_id": {"type": "string"},
        "created_at": {"type": ["string", "number"]},
        "last_played_at": {"type": ["string", "number"]},
        "current_scene": {"type": "string"},
        "current_dialogue_index": _NON_NEG_INT,
        "completed_scenes": {"type": "array", "items": {"type": "string"}},
        "read_dialogues": {"type": "array", "items": {"type": "string"}},
        "flags": {"type": "object"},
        "characters": {
            "type": "object",
            "propertyNames": {"pattern": "^[0-9]+$"},
            "additionalProperties": {"$ref": "#/$defs/character"},
        },
        "player": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "total_score": _INT,
                "total_play_time_seconds": _NUMBER,
                "games_played": _NON_NEG_INT,
                "games_won": _NON_NEG_INT,
                "total_tiles_cleared": _NON_NEG_INT,
                "max_combo_observed": _NON_NEG_INT,
                "perfect_game_count": _NON_NEG_INT,
            },
        },
        "settings": {
            "type": "object",
            "properties": {
                "bgm_volume": _NUMBER,
                "se_volume": _NUMBER,
                "voice_volume": _NUMBER,
                "text_speed": _NUMBER,
                "auto_mode": {"type": "boolean"},
                "fullscreen": {"type": "boolean"},
                "language": {"type": "string"},
            },
        },
        "unlocks": {"type": "object", "additionalProperties": {"type": "array"}},
        "has_unsaved_progress": {"type": "boolean"},
    },
    "$defs": {
        "character": {
            "type": "object",
            "properties": {
                "display_name": {"type": "string"},
                "equipment_level": _INT,
                "equipment_name": {"type": "string"},
                "intimacy": _INT,
                "battle_count": _NON_NEG_INT,
                "victories": _NON_NEG_INT,
                "cumulative_score": _INT,
                "hp": _INT,
                "max_hp": _INT,
            },
        },
    },
}

_VALIDATOR = Draft202012Validator(SNAPSHOT_SCHEMA)


def _format_errors(errors: List[js_exceptions.ValidationError]) -> str:
    lines = ["Snapshot does not match the save schema:"]
    for err in errors:
        where = ".".join(str(p) for p in err.absolute_path) or "root"
        lines.append(f" - At {where}: {err.message}")
    return "\n".join(lines)


def validate_snapshot(data: Any) -> None:
    """Raise SnapshotFormatError if ``data`` is not shaped like a snapshot."""
    if not isinstance(data, Mapping):
        raise SnapshotFormatError(f"Snapshot must be an object, got {type(data).__name__}")
    errors = sorted(_VALIDATOR.iter_errors(dict(data)), key=lambda e: list(e.absolute_path))
    if errors:
        exc = SnapshotFormatError(_format_errors(errors), cause=errors[0])
        raise exc from errors[0]


def serialize_state(state: GameState) -> Dict[str, Any]:
    """Deep, self-contained snapshot of ``state`` made of JSON-friendly values."""
    return state.to_dict()


def deserialize_state(data: Mapping[str, Any]) -> GameState:
    """Validate and build a GameState; gaps are filled from a fresh default tree."""
    validate_snapshot(data)
    try:
        return GameState.from_dict(dict(data), defaults=build_initial_state())
    except (TypeError, ValueError, KeyError) as e:
        raise SnapshotFormatError(f"Snapshot could not be converted: {e}", cause=e) from e


def encode_snapshot(data: Mapping[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, sort_keys=True, indent=2)


def decode_snapshot(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotFormatError(f"Invalid JSON: {e}", cause=e) from e
    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot JSON root must be an object")
    return data
