"""Exception types raised by vocabquest."""
from typing import Iterable


class VocabQuestError(Exception):
    """Base class for all vocabquest errors."""


class UnknownSessionType(VocabQuestError):
    """A caller asked for a challenge type that is not registered."""

    def __init__(self, session_id: str, supported: Iterable[str] = ()):
        self.session_id = session_id
        self.supported = list(supported)
        super().__init__(
            f"Unknown session type: {session_id}. "
            f"Supported types: {', '.join(self.supported)}"
        )


class EmptyResult(VocabQuestError):
    """A challenge adapter returned no word."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"{session_id} service returned no word")


class AdapterCallError(VocabQuestError):
    """A challenge adapter raised while handling a call."""

    def __init__(self, session_id: str, operation: str, cause: Exception):
        self.session_id = session_id
        self.operation = operation
        self.cause = cause
        super().__init__(f"{session_id}.{operation} failed: {cause}")


class StorageError(VocabQuestError):
    """The key-value storage could not complete an operation."""


class InvalidStateTransition(VocabQuestError):
    """A session step was requested from a state that does not allow it."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move session from {current} to {requested}")
