import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from gakuen.events import EventBus  # noqa: E402
from gakuen.state import GameStateStore  # noqa: E402


class Recorder:
    """Collects payloads published for one event name."""

    def __init__(self) -> None:
        self.payloads = []

    def __call__(self, payload) -> None:
        self.payloads.append(payload)


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def store(bus: EventBus) -> GameStateStore:
    return GameStateStore(bus)


@pytest.fixture()
def recorder():
    def _make(bus: EventBus, event: str) -> Recorder:
        rec = Recorder()
        bus.on(event, rec)
        return rec

    return _make
