from __future__ import annotations

import pytest

from gakuen.events import EventType
from gakuen.state import BattleResult, GameStateStore


def test_perfect_win_scenario(store: GameStateStore):
    first = store.record_battle_result(1, "perfect_win", 1000)
    second = store.record_battle_result(1, "perfect_win", 1000)
    third = store.record_battle_result(1, "perfect_win", 1000)
    store.record_battle_result(2, "win", 500)
    store.record_battle_result(3, "win", 500)

    stats = store.state.player
    assert first == ["perfect_1"]
    assert second == []
    assert third == []
    assert stats.perfect_game_count == 3
    assert stats.games_won == 5
    assert stats.games_played == 5
    assert stats.total_score == 4000
    assert store.get_character(1).victories == 3
    assert store.get_character(1).cumulative_score == 3000
    assert store.get_unlocked("achievements") == ["perfect_1"]


def test_loss_counts_battle_but_not_victory(store):
    store.record_battle_result(2, BattleResult.LOSS, 50)
    char = store.get_character(2)
    assert char.battle_count == 1
    assert char.victories == 0
    assert char.cumulative_score == 50
    stats = store.state.player
    assert stats.games_played == 1
    assert stats.games_won == 0
    assert stats.perfect_game_count == 0


def test_invariants_hold_over_mixed_results(store):
    results = ["win", "loss", "perfect_win", "loss", "win", "perfect_win", "loss"]
    for i, result in enumerate(results):
        store.record_battle_result((i % 3) + 1, result, 100)
    state = store.state
    assert state.player.games_won <= state.player.games_played
    for char in state.characters.values():
        assert char.victories <= char.battle_count


def test_tiles_and_combo_are_tracked(store):
    store.record_battle_result(1, "win", 100, tiles_cleared=40, combo=6)
    store.record_battle_result(1, "win", 100, tiles_cleared=22, combo=3)
    stats = store.state.player
    assert stats.total_tiles_cleared == 62
    assert stats.max_combo_observed == 6


def test_win_10_achievement(store):
    earned = []
    for i in range(10):
        earned.extend(store.record_battle_result((i % 3) + 1, "win", 10))
    assert earned == ["win_10"]


def test_battle_emits_recorded_then_unlocked(store, bus):
    order = []
    bus.on(EventType.BATTLE_RECORDED, lambda p: order.append(("battle", p["result"], p["new_victories"])))
    bus.on(EventType.UNLOCKED, lambda p: order.append(("unlocked", p["item"])))

    store.record_battle_result(1, "perfect_win", 1000)

    assert order == [("battle", "perfect_win", 1), ("unlocked", "perfect_1")]


def test_unknown_result_rejected(store):
    with pytest.raises(ValueError):
        store.record_battle_result(1, "draw", 0)
    assert store.state.player.games_played == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"score": "n/a"},
        {"score": 100, "tiles_cleared": "many"},
        {"score": 100, "combo": None},
    ],
)
def test_unconvertible_counts_record_nothing(store, bus, recorder, kwargs):
    events = recorder(bus, EventType.BATTLE_RECORDED)
    kwargs = dict(kwargs)
    score = kwargs.pop("score")

    with pytest.raises((TypeError, ValueError)):
        store.record_battle_result(1, "win", score, **kwargs)

    char = store.get_character(1)
    assert char.battle_count == 0
    assert char.victories == 0
    assert store.state.player.games_played == 0
    assert events.payloads == []
    assert store.has_unsaved_progress is False
