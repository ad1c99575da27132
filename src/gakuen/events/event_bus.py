import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

from ..errors import HandlerError

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)


class EventBus:
    """A minimal synchronous publish/subscribe event bus.

    Handlers registered for an event name are invoked in registration order
    with the payload as their only argument. A failing handler is isolated:
    the error is logged, captured as a HandlerError, and the remaining
    handlers still run.

    Emission happens on the caller's thread and completes before ``emit``
    returns. Handlers may emit further events; nested emissions run
    depth-first inside the outer dispatch.
    """

    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def on(self, event: str, handler: Handler) -> None:
        """Register a handler for an event name."""
        if not callable(handler):
            raise TypeError("handler must be callable")
        self._handlers[event].append(handler)
        logger.debug("Subscribed %s to '%s'", _handler_name(handler), event)

    def off(self, event: str, handler: Handler) -> bool:
        """Remove the first registration of ``handler`` for ``event``.

        Returns True if a registration was removed. Silently ignores unknown handlers.
        """
        handlers = self._handlers.get(event)
        if not handlers:
            return False
        for i, registered in enumerate(handlers):
            if registered == handler:
                del handlers[i]
                logger.debug("Unsubscribed %s from '%s'", _handler_name(handler), event)
                return True
        return False

    def emit(self, event: str, payload: Any = None) -> List[HandlerError]:
        """Deliver ``payload`` to every handler currently registered for ``event``.

        Returns the errors raised by handlers during this dispatch (empty when
        every handler succeeded).
        """
        # Snapshot so handlers that (un)subscribe during dispatch don't affect this emission
        handlers = list(self._handlers.get(event, ()))
        logger.debug("Emitting '%s' to %d handlers", event, len(handlers))
        failures: List[HandlerError] = []
        for handler in handlers:
            try:
                handler(payload)
            except Exception as exc:  # noqa: BLE001 - any handler failure is contained
                name = _handler_name(handler)
                logger.exception("Error in event handler %s for '%s'", name, event)
                failures.append(HandlerError(event, name, exc))
        return failures

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def clear(self) -> None:
        self._handlers.clear()
