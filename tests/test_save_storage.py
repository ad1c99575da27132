from __future__ import annotations

import json
from pathlib import Path

import pytest

from gakuen.config import EngineConfig
from gakuen.errors import LoadError, StorageError
from gakuen.events import EventType
from gakuen.save import SaveStorage
from gakuen.state import GameStateStore


@pytest.fixture
def storage(tmp_path: Path) -> SaveStorage:
    return SaveStorage(tmp_path / "saves", slot="test")


def test_save_then_load_into_fresh_store(storage, store):
    store.change_scene("scene_1")
    store.record_battle_result(2, "win", 800)
    path = storage.save(store)

    assert path == storage.path
    assert path.exists()
    assert store.has_unsaved_progress is False
    assert store.last_saved_at is not None

    other = GameStateStore()
    assert storage.load_into(other) is True
    assert other.current_scene == "scene_1"
    assert other.get_character(2).victories == 1
    assert other.state.player_id == store.state.player_id


def test_save_emits_state_saved(storage, store, bus, recorder):
    rec = recorder(bus, EventType.STATE_SAVED)
    storage.save(store)
    assert rec.payloads == [{"slot": "test", "path": str(storage.path)}]


def test_saved_file_is_plain_json(storage, store):
    storage.save(store)
    data = json.loads(storage.path.read_text(encoding="utf-8"))
    assert data["schema_version"] == store.state.schema_version
    assert set(data["characters"]) == {"1", "2", "3"}


def test_load_into_without_save_returns_false(storage, store):
    assert storage.has_save() is False
    assert storage.load_into(store) is False


def test_second_save_keeps_backup(storage, store):
    storage.save(store)
    first = storage.path.read_text(encoding="utf-8")
    store.set_flag("chapter_2", True)
    storage.save(store)

    assert storage.backup_path.read_text(encoding="utf-8") == first
    assert json.loads(storage.path.read_text(encoding="utf-8"))["flags"] == {"chapter_2": True}


def test_corrupt_primary_falls_back_to_backup(storage, store):
    store.set_flag("from_backup", True)
    storage.save(store)
    storage.save(store)
    storage.path.write_text("{ truncated", encoding="utf-8")

    other = GameStateStore()
    assert storage.load_into(other) is True
    assert other.get_flag("from_backup") is True


def test_unreadable_save_is_quarantined(storage, store):
    storage.save_dir.mkdir(parents=True)
    storage.path.write_text('{"characters": {"x": {}}}', encoding="utf-8")
    store.change_scene("scene_9")

    with pytest.raises(LoadError):
        storage.load_into(store)

    assert store.current_scene == "scene_9"
    assert not storage.path.exists()
    assert storage.path.with_suffix(storage.path.suffix + ".corrupt").exists()


def test_flush_only_writes_when_dirty(storage, store):
    assert storage.flush(store) is None
    assert not storage.path.exists()

    store.update_play_time(30)
    assert storage.flush(store) == storage.path
    assert storage.flush(store) is None


def test_write_failure_raises_storage_error(tmp_path, store):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")
    storage = SaveStorage(blocker, slot="main")
    with pytest.raises(StorageError):
        storage.save(store)
    assert store.last_saved_at is None


def test_delete_removes_slot_and_backup(storage, store):
    storage.save(store)
    storage.save(store)
    storage.delete()
    assert not storage.path.exists()
    assert not storage.backup_path.exists()


def test_from_config_uses_slot_and_dir(tmp_path):
    cfg = EngineConfig(save_dir=tmp_path, slot="alt", keep_backup=False)
    storage = SaveStorage.from_config(cfg)
    assert storage.path == tmp_path / "alt.save.json"
    assert storage.keep_backup is False


def test_default_dir_honours_env(monkeypatch, tmp_path):
    monkeypatch.setenv("GAKUEN_SAVE_DIR", str(tmp_path / "env_saves"))
    assert SaveStorage().save_dir == tmp_path / "env_saves"


def test_non_utf8_primary_falls_back_to_backup(storage, store):
    store.set_flag("from_backup", True)
    storage.save(store)
    storage.save(store)
    storage.path.write_bytes(b"\xff\xfe\x00garbage")

    other = GameStateStore()
    assert storage.load_into(other) is True
    assert other.get_flag("from_backup") is True


def test_non_utf8_save_without_backup_raises_load_error(storage, store):
    storage.save_dir.mkdir(parents=True)
    storage.path.write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(LoadError):
        storage.load_into(store)
    assert storage.path.with_suffix(storage.path.suffix + ".corrupt").exists()


def test_corrupt_primary_does_not_replace_backup(storage, store):
    store.set_flag("good", True)
    storage.save(store)
    storage.save(store)
    good_backup = storage.backup_path.read_text(encoding="utf-8")
    storage.path.write_text("{ truncated", encoding="utf-8")

    store.set_flag("newer", True)
    storage.save(store)

    assert storage.backup_path.read_text(encoding="utf-8") == good_backup
    assert json.loads(storage.path.read_text(encoding="utf-8"))["flags"] == {"good": True, "newer": True}
