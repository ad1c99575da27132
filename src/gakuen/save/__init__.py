"""Snapshot persistence for the game state.

- codec: snapshot <-> GameState, with jsonschema shape validation
- migrations: stepwise upgrades plus overlay onto current defaults
- storage: one JSON file per save slot with atomic writes and a backup
"""
from .codec import (
    SNAPSHOT_SCHEMA,
    decode_snapshot,
    deserialize_state,
    encode_snapshot,
    serialize_state,
    validate_snapshot,
)
from .migrations import LEGACY_VERSION, MIGRATIONS, detect_version, is_newer, migrate
from .storage import SaveStorage

__all__ = [
    "LEGACY_VERSION",
    "MIGRATIONS",
    "SNAPSHOT_SCHEMA",
    "SaveStorage",
    "decode_snapshot",
    "deserialize_state",
    "detect_version",
    "encode_snapshot",
    "is_newer",
    "migrate",
    "serialize_state",
    "validate_snapshot",
]
