from __future__ import annotations

import logging

from gakuen.errors import HandlerError
from gakuen.events import EventBus


def test_handlers_run_in_registration_order():
    bus = EventBus()
    calls = []
    bus.on("ping", lambda p: calls.append(("a", p)))
    bus.on("ping", lambda p: calls.append(("b", p)))
    bus.on("other", lambda p: calls.append(("other", p)))

    failures = bus.emit("ping", {"n": 1})

    assert failures == []
    assert calls == [("a", {"n": 1}), ("b", {"n": 1})]


def test_failing_handler_does_not_stop_siblings(caplog):
    bus = EventBus()
    calls = []

    def boom(_payload):
        raise RuntimeError("handler exploded")

    bus.on("ping", boom)
    bus.on("ping", lambda p: calls.append(p))

    with caplog.at_level(logging.ERROR):
        failures = bus.emit("ping", 42)

    assert calls == [42]
    assert len(failures) == 1
    assert isinstance(failures[0], HandlerError)
    assert failures[0].event == "ping"
    assert isinstance(failures[0].cause, RuntimeError)
    assert "Error in event handler" in caplog.text


def test_off_removes_first_matching_registration_only():
    bus = EventBus()
    calls = []

    def handler(p):
        calls.append(p)

    bus.on("ping", handler)
    bus.on("ping", handler)
    assert bus.listener_count("ping") == 2

    assert bus.off("ping", handler) is True
    bus.emit("ping", "x")
    assert calls == ["x"]

    assert bus.off("ping", handler) is True
    assert bus.off("ping", handler) is False
    assert bus.off("never-registered", handler) is False


def test_emit_without_handlers_is_noop():
    assert EventBus().emit("nobody-listens", {}) == []


def test_nested_emission_is_depth_first():
    bus = EventBus()
    order = []

    def outer_first(_p):
        order.append("outer-1")
        bus.emit("inner", None)

    bus.on("outer", outer_first)
    bus.on("outer", lambda _p: order.append("outer-2"))
    bus.on("inner", lambda _p: order.append("inner"))

    bus.emit("outer", None)

    assert order == ["outer-1", "inner", "outer-2"]


def test_subscribing_during_dispatch_affects_next_emit_only():
    bus = EventBus()
    calls = []

    def late(p):
        calls.append(("late", p))

    def registers_late(p):
        calls.append(("first", p))
        bus.on("ping", late)

    bus.on("ping", registers_late)
    bus.emit("ping", 1)
    assert calls == [("first", 1)]


def test_non_callable_handler_rejected():
    bus = EventBus()
    try:
        bus.on("ping", "not callable")  # type: ignore[arg-type]
        assert False, "Expected TypeError"
    except TypeError:
        pass


def test_store_payloads_match_declared_shapes(tmp_path):
    from gakuen.events import EVENT_PAYLOADS
    from gakuen.save import SaveStorage
    from gakuen.state import GameStateStore

    bus = EventBus()
    seen = {}
    for name in EVENT_PAYLOADS:
        bus.on(name, lambda payload, name=name: seen.setdefault(name, payload))

    store = GameStateStore(bus)
    store.change_scene("scene_1")
    store.advance_dialogue()
    store.update_character(1, {"equipment_name": "Festival Yukata"})
    store.upgrade_equipment(1, 2, "Training Gear")
    store.update_intimacy(2, 10)
    store.record_battle_result(1, "perfect_win", 900)
    store.update_score(100)
    store.update_play_time(5)
    store.update_settings(bgm_volume=0.4)
    store.set_flag("route", "rena")
    storage = SaveStorage(tmp_path, slot="shapes")
    storage.save(store)
    storage.load_into(store)
    store.reset_game()

    assert set(seen) == set(EVENT_PAYLOADS)
    for name, payload in seen.items():
        assert set(payload) == set(EVENT_PAYLOADS[name].__annotations__), name
