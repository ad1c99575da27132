from __future__ import annotations

from typing import Optional


class GakuenError(Exception):
    """Base error for game-state engine exceptions."""


class LoadError(GakuenError):
    """Raised when a snapshot cannot be adopted; the live state is left untouched."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class SnapshotFormatError(LoadError):
    """Raised when a snapshot does not have the expected shape."""


class StorageError(GakuenError):
    """Raised when a save slot cannot be written or read."""


class ContentError(GakuenError):
    """Raised when a static content row fails validation."""


class HandlerError(GakuenError):
    """A failure raised by an event handler during dispatch.

    These are captured by the bus and returned from ``emit``; they are never
    propagated to the code that emitted the event.
    """

    def __init__(self, event: str, handler_name: str, cause: BaseException) -> None:
        super().__init__(f"Handler {handler_name} failed for '{event}': {cause!r}")
        self.event = event
        self.handler_name = handler_name
        self.cause = cause
