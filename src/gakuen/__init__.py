"""
Mahjong Gakuen progression and persistence engine.

This package provides the headless game-state core:
- The authoritative save state and its mutation API (GameStateStore)
- A synchronous event bus for UI/audio collaborators
- Achievement and ending evaluation over the current state
- Snapshot serialization, schema migration, and slot storage

Rendering, audio, and the tile-matching puzzle live elsewhere and talk to
this package through the store's mutation API and the event bus.
"""
from importlib.metadata import version, PackageNotFoundError

from .errors import GakuenError, HandlerError, LoadError, SnapshotFormatError, StorageError
from .events import EventBus, EventType
from .progression import EndingType, ProgressionRules
from .state import GameState, GameStateStore

try:
    __version__ = version("mahjong-gakuen")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "EndingType",
    "EventBus",
    "EventType",
    "GakuenError",
    "GameState",
    "GameStateStore",
    "HandlerError",
    "LoadError",
    "ProgressionRules",
    "SnapshotFormatError",
    "StorageError",
]
