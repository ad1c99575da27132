"""Snapshot migration for older (or newer) schema versions.

Migration runs any registered stepwise upgrades first, then overlays every
top-level field of the result onto a fresh default tree: the snapshot wins on
conflict and defaults fill fields introduced since the snapshot was written.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..state.defaults import build_initial_state
from ..state.models import SCHEMA_VERSION

logger = logging.getLogger(__name__)

LEGACY_VERSION = "1.0.0"

Migration = Callable[[Dict[str, Any]], Dict[str, Any]]


def _migrate_1_0_0_to_1_1_0(payload: Dict[str, Any]) -> Dict[str, Any]:
    # 1.0.0 kept a never-read achievements list on the player block
    upgraded = dict(payload)
    player = upgraded.get("player")
    if isinstance(player, dict) and "achievements" in player:
        player = dict(player)
        legacy = player.pop("achievements") or []
        unlocks = dict(upgraded.get("unlocks") or {})
        merged = list(unlocks.get("achievements") or [])
        merged.extend(a for a in legacy if a not in merged)
        unlocks["achievements"] = merged
        upgraded["unlocks"] = unlocks
        upgraded["player"] = player
    upgraded.setdefault("read_dialogues", [])
    upgraded["schema_version"] = "1.1.0"
    return upgraded


# from-version -> upgrade to the next version
MIGRATIONS: Dict[str, Migration] = {
    "1.0.0": _migrate_1_0_0_to_1_1_0,
}


def detect_version(snapshot: Mapping[str, Any]) -> Optional[str]:
    """Return the snapshot's schema version, accepting the legacy ``version`` key."""
    version = snapshot.get("schema_version", snapshot.get("version"))
    return None if version is None else str(version)


def parse_version(version: str) -> Tuple[int, ...]:
    try:
        return tuple(int(part) for part in version.split("."))
    except (AttributeError, ValueError):
        return ()


def is_newer(version: Optional[str], than: str = SCHEMA_VERSION) -> bool:
    parsed = parse_version(version or "")
    return bool(parsed) and parsed > parse_version(than)


def migrate(snapshot: Mapping[str, Any], target_version: str = SCHEMA_VERSION) -> Dict[str, Any]:
    """Reconcile ``snapshot`` with the current schema; returns a new dict.

    The input is not modified.
    """
    payload: Dict[str, Any] = copy.deepcopy(dict(snapshot))
    version = detect_version(payload) or LEGACY_VERSION
    payload.pop("version", None)
    logger.info("Migrating snapshot from schema %s to %s", version, target_version)

    if is_newer(version, target_version):
        logger.warning(
            "Snapshot schema %s is newer than supported %s; unknown fields will be ignored",
            version,
            target_version,
        )

    seen = set()
    while version in MIGRATIONS and version != target_version and version not in seen:
        seen.add(version)
        payload = MIGRATIONS[version](payload)
        version = str(payload["schema_version"])
        logger.debug("Applied migration step to %s", version)

    merged = build_initial_state().to_dict()
    for key, value in payload.items():
        merged[key] = value
    merged["schema_version"] = target_version
    return merged
