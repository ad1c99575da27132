from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from gakuen.config import EngineConfig, default_save_dir


def test_defaults():
    cfg = EngineConfig()
    assert cfg.slot == "main"
    assert cfg.keep_backup is True
    assert cfg.progression.wins_for_win_10 == 10
    assert cfg.resolved_save_dir() == default_save_dir()
    assert cfg.resolved_save_dir().name == "saves"


def test_from_json_overrides_and_merges(tmp_path: Path, caplog):
    path = tmp_path / "engine.json"
    path.write_text(
        json.dumps(
            {
                "save_dir": str(tmp_path / "s"),
                "slot": "second",
                "progression": {"true_ending_score": 1000, "mystery": 1},
            }
        ),
        encoding="utf-8",
    )
    with caplog.at_level(logging.WARNING):
        cfg = EngineConfig.from_json(path)

    assert cfg.save_dir == tmp_path / "s"
    assert cfg.slot == "second"
    assert cfg.progression.true_ending_score == 1000
    assert cfg.progression.max_intimacy == 100
    assert "mystery" in caplog.text


def test_from_json_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        EngineConfig.from_json(tmp_path / "nope.json")


def test_round_trip_dict(tmp_path):
    cfg = EngineConfig(save_dir=tmp_path, slot="x", keep_backup=False)
    again = EngineConfig.from_dict(cfg.to_dict())
    assert again == cfg


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.delenv("GAKUEN_SAVE_DIR", raising=False)
    assert EngineConfig.from_env().save_dir is None
    monkeypatch.setenv("GAKUEN_SAVE_DIR", str(tmp_path))
    assert EngineConfig.from_env().resolved_save_dir() == tmp_path
