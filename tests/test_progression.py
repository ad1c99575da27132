from __future__ import annotations

from gakuen.progression import EndingType, ProgressionRules, evaluate_achievements, resolve_ending
from gakuen.state import build_initial_state


def _maxed_state(total_score: int = 500_000):
    state = build_initial_state()
    for char in state.characters.values():
        char.equipment_level = 5
        char.intimacy = 100
        char.battle_count = 4
        char.victories = 4
    state.player.total_score = total_score
    state.player.perfect_game_count = 3
    state.unlocks.add("achievements", "all_max_equipment")
    return state


def test_default_state_resolves_bad():
    assert resolve_ending(build_initial_state()) is EndingType.BAD


def test_true_wins_over_secret_when_both_hold():
    state = _maxed_state()
    # Secret predicate holds on its own as well
    state_secret_only = _maxed_state(total_score=0)
    assert resolve_ending(state_secret_only) is EndingType.SECRET

    assert resolve_ending(state) is EndingType.TRUE


def test_resolution_is_deterministic():
    state = _maxed_state(total_score=10)
    results = {resolve_ending(state) for _ in range(20)}
    assert results == {EndingType.SECRET}


def test_true_requires_every_character_maxed():
    state = _maxed_state()
    state.characters[2].intimacy = 99
    assert resolve_ending(state) is EndingType.SECRET


def test_secret_requires_no_losses_and_achievement():
    state = _maxed_state(total_score=0)
    state.characters[3].battle_count = 5  # one loss
    assert resolve_ending(state) is EndingType.NORMAL

    state = _maxed_state(total_score=0)
    state.unlocks = build_initial_state().unlocks
    assert resolve_ending(state) is EndingType.NORMAL


def test_normal_requires_all_challenged_and_some_victory():
    state = build_initial_state()
    for char in state.characters.values():
        char.battle_count = 1
    assert resolve_ending(state) is EndingType.BAD

    state.characters[2].victories = 1
    assert resolve_ending(state) is EndingType.NORMAL

    state.characters[3].battle_count = 0
    assert resolve_ending(state) is EndingType.BAD


def test_custom_rules_change_thresholds():
    state = _maxed_state(total_score=1000)
    assert resolve_ending(state, ProgressionRules(true_ending_score=1000)) is EndingType.TRUE


def test_achievements_reported_only_when_not_unlocked():
    state = build_initial_state()
    state.player.games_won = 10
    state.player.games_played = 10
    state.player.perfect_game_count = 1
    for char in state.characters.values():
        char.equipment_level = 5

    assert evaluate_achievements(state) == ["win_10", "perfect_1", "all_max_equipment"]

    state.unlocks.add("achievements", "perfect_1")
    assert evaluate_achievements(state) == ["win_10", "all_max_equipment"]


def test_evaluation_does_not_mutate_state():
    state = build_initial_state()
    state.player.perfect_game_count = 1
    before = state.to_dict()
    evaluate_achievements(state)
    resolve_ending(state)
    assert state.to_dict() == before


def test_store_resolve_ending_matches_evaluator(store):
    for cid in (1, 2, 3):
        store.record_battle_result(cid, "win", 100)
    assert store.resolve_ending() is EndingType.NORMAL
