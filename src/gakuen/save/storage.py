from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..config import EngineConfig
from ..errors import LoadError, SnapshotFormatError, StorageError
from ..events import EventType
from .codec import decode_snapshot, encode_snapshot

if TYPE_CHECKING:  # pragma: no cover
    from ..state.store import GameStateStore

logger = logging.getLogger(__name__)


def _atomic_write_text(path: Path, text: str) -> None:
    """Write via a temp file and replace so a crash never leaves a half-written save."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)


class SaveStorage:
    """Reads and writes store snapshots as JSON, one file per slot.

    The previous save is kept as ``<slot>.save.json.bak`` and used as a
    fallback when the primary file is unreadable.
    """

    def __init__(
        self,
        save_dir: Optional[Path] = None,
        slot: str = "main",
        *,
        keep_backup: bool = True,
    ) -> None:
        self.save_dir = Path(save_dir) if save_dir is not None else EngineConfig.from_env().resolved_save_dir()
        self.slot = slot
        self.keep_backup = keep_backup
        self.path = self.save_dir / f"{slot}.save.json"
        self.backup_path = self.path.with_suffix(self.path.suffix + ".bak")

    @classmethod
    def from_config(cls, config: EngineConfig) -> "SaveStorage":
        return cls(config.resolved_save_dir(), config.slot, keep_backup=config.keep_backup)

    def has_save(self) -> bool:
        return self.path.exists()

    # Raw snapshot I/O

    def write_snapshot(self, data: Dict[str, Any]) -> Path:
        text = encode_snapshot(data)
        try:
            if self.keep_backup and self._primary_is_readable():
                shutil.copy2(self.path, self.backup_path)
            _atomic_write_text(self.path, text)
        except OSError as e:
            logger.exception("Failed to write save file %s", self.path)
            raise StorageError(f"Failed to write save file {self.path}: {e}") from e
        logger.info("Saved slot '%s' to %s", self.slot, self.path)
        return self.path

    def _read(self, path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StorageError(f"Save file not found: {path}") from e
        except UnicodeDecodeError as e:
            raise SnapshotFormatError(f"Save file {path} is not valid UTF-8: {e}", cause=e) from e
        except OSError as e:
            raise StorageError(f"Failed to read save file {path}: {e}") from e
        return decode_snapshot(text)

    def _primary_is_readable(self) -> bool:
        # An unreadable primary must not replace the last good backup
        if not self.path.exists():
            return False
        try:
            self._read(self.path)
        except (SnapshotFormatError, StorageError):
            logger.warning("Save file %s is unreadable; keeping existing backup", self.path)
            return False
        return True

    def read_snapshot(self) -> Dict[str, Any]:
        """Read the slot, falling back to the backup if the primary is corrupt."""
        try:
            return self._read(self.path)
        except (SnapshotFormatError, StorageError):
            if not self.backup_path.exists():
                raise
            logger.warning("Save file %s is unreadable; trying backup %s", self.path, self.backup_path)
            return self._read(self.backup_path)

    # Store integration

    def save(self, store: "GameStateStore") -> Path:
        path = self.write_snapshot(store.serialize())
        store.mark_saved()
        store.bus.emit(EventType.STATE_SAVED, {"slot": self.slot, "path": str(path)})
        return path

    def flush(self, store: "GameStateStore") -> Optional[Path]:
        """Save only if the store has unsaved progress."""
        if not store.has_unsaved_progress:
            return None
        return self.save(store)

    def load_into(self, store: "GameStateStore", *, discard_corrupt: bool = True) -> bool:
        """Adopt the saved snapshot into ``store``.

        Returns False when there is no save. If neither the slot nor its backup
        can be adopted, the corrupt files are moved aside (when
        ``discard_corrupt``) and LoadError is raised; the store keeps its state.
        """
        if not self.has_save() and not self.backup_path.exists():
            return False
        try:
            try:
                store.load(self.read_snapshot())
            except LoadError:
                if not self.backup_path.exists():
                    raise
                logger.warning("Primary save for slot '%s' rejected; trying backup", self.slot)
                store.load(self._read(self.backup_path))
            return True
        except (LoadError, StorageError) as e:
            if discard_corrupt:
                self._quarantine()
            if isinstance(e, LoadError):
                raise
            raise LoadError(f"Failed to read save slot '{self.slot}': {e}", cause=e) from e

    def _quarantine(self) -> None:
        for p in (self.path, self.backup_path):
            if p.exists():
                target = p.with_suffix(p.suffix + ".corrupt")
                try:
                    os.replace(p, target)
                    logger.warning("Moved unreadable save %s to %s", p, target)
                except OSError:
                    logger.warning("Failed to move unreadable save %s", p, exc_info=True)

    def delete(self) -> None:
        for p in (self.path, self.backup_path):
            try:
                if p.exists():
                    p.unlink()
            except OSError:
                logger.warning("Failed to remove save file %s", p, exc_info=True)
