"""Error taxonomy shared by the store, the controller and the creation flow."""

from __future__ import annotations


class MemoryGlobeError(Exception):
    """Base class for every error raised by memoryglobe."""


class ValidationError(MemoryGlobeError, ValueError):
    """Bad field values. Recoverable; the collection is left unchanged."""


class NotFoundError(MemoryGlobeError, LookupError):
    """An identifier that is not (or no longer) in the collection."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Memory not found: {identifier}")
        self.identifier = identifier


class StorageError(MemoryGlobeError):
    """Raised by storage collaborators when a read or write fails."""


class PersistenceError(MemoryGlobeError):
    """A storage read/write failed; in-memory state was rolled back."""


class DataCorruptionError(MemoryGlobeError):
    """The persisted payload could not be parsed or validated."""


class EngineInitError(MemoryGlobeError):
    """The render engine failed to start."""


class ReentrantMutationError(MemoryGlobeError, RuntimeError):
    """The store was mutated from inside one of its own change notifications."""


class FlowStateError(MemoryGlobeError, RuntimeError):
    """A creation-flow operation was called in the wrong state."""
