"""Authoritative collection of memories.

The store is the only writer of the collection. Every mutation follows the
same order: change the in-memory list, persist it, then notify subscribers.
A failed write restores the previous list before the error propagates, so
subscribers (the marker overlay) never see state that was not stored.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable

from memoryglobe.errors import (
    DataCorruptionError,
    MemoryGlobeError,
    NotFoundError,
    PersistenceError,
    ReentrantMutationError,
    StorageError,
    ValidationError,
)
from memoryglobe.memory.models import Memory
from memoryglobe.memory.storage import Storage

logger = logging.getLogger(__name__)

# Typical browser key-value quota; embedded image data URIs are the usual culprit.
DEFAULT_MAX_PAYLOAD_BYTES = 5 * 1024 * 1024

ChangeListener = Callable[[tuple[Memory, ...]], None]


class MemoryStore:
    """Create/update/delete memories and keep storage in step."""

    def __init__(
        self,
        storage: Storage,
        *,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    ) -> None:
        self.storage = storage
        self.max_payload_bytes = max_payload_bytes
        self.last_load_error: MemoryGlobeError | None = None
        self._memories: list[Memory] = []
        self._listeners: list[ChangeListener] = []
        self._notifying = False

    # ── Subscription ──────────────────────────────────────────

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        self._notifying = True
        try:
            for listener in list(self._listeners):
                try:
                    listener(snapshot)
                except Exception:
                    # One broken subscriber must not starve the others
                    logger.exception("Change listener %r failed", listener)
        finally:
            self._notifying = False

    def _check_reentrancy(self, operation: str) -> None:
        if self._notifying:
            raise ReentrantMutationError(
                f"MemoryStore.{operation}() called from inside a change notification"
            )

    # ── Reads ─────────────────────────────────────────────────

    def snapshot(self) -> tuple[Memory, ...]:
        """Current collection in insertion order. Immutable."""
        return tuple(self._memories)

    def get(self, identifier: str) -> Memory:
        for memory in self._memories:
            if memory.identifier == identifier:
                return memory
        raise NotFoundError(identifier)

    def __contains__(self, identifier: object) -> bool:
        return any(m.identifier == identifier for m in self._memories)

    def __len__(self) -> int:
        return len(self._memories)

    # ── Load ──────────────────────────────────────────────────

    def load(self) -> MemoryGlobeError | None:
        """Restore the collection from storage.

        Never raises for bad data: an unreadable store or a corrupt payload
        leaves an empty collection, and the error is logged and returned
        (also kept in ``last_load_error``). Subscribers are notified once.
        """
        self._check_reentrancy("load")
        error: MemoryGlobeError | None = None
        memories: list[Memory] = []

        try:
            payload = self.storage.read_all()
        except (StorageError, OSError) as e:
            error = PersistenceError(f"Failed to read stored memories: {e}")
            logger.error("%s; starting with an empty collection", error)
            payload = None

        if payload is not None and payload.strip():
            try:
                memories = self._decode(payload)
            except DataCorruptionError as e:
                error = e
                logger.warning("Stored memories are corrupt (%s); starting empty", e)
                self._quarantine(payload)

        self._memories = memories
        self.last_load_error = error
        logger.info("Loaded %d memories", len(memories))
        self._notify()
        return error

    def _quarantine(self, payload: str) -> None:
        quarantine = getattr(self.storage, "quarantine", None)
        if not quarantine or not callable(quarantine):
            return
        try:
            quarantine(payload)
        except OSError as e:
            logger.warning("Failed to preserve corrupt payload: %s", e)

    # ── Mutations ─────────────────────────────────────────────

    def create(self, memory: Memory) -> Memory:
        """Append a new memory. Raises ValidationError or PersistenceError."""
        self._check_reentrancy("create")
        memory.validate()
        if memory.identifier in self:
            raise ValidationError(f"Memory identifier already exists: {memory.identifier}")

        self._commit([*self._memories, memory])
        logger.info("Created memory %s (%s)", memory.identifier, memory.title)
        return memory

    def update(self, memory: Memory) -> Memory:
        """Replace the memory with the same identifier, keeping its position in order."""
        self._check_reentrancy("update")
        index = self._index_of(memory.identifier)
        if index is None:
            raise NotFoundError(memory.identifier)
        memory.validate()

        memories = list(self._memories)
        memories[index] = memory
        self._commit(memories)
        logger.info("Updated memory %s", memory.identifier)
        return memory

    def delete(self, identifier: str) -> None:
        """Remove a memory. Deleting an unknown identifier is a no-op."""
        self._check_reentrancy("delete")
        index = self._index_of(identifier)
        if index is None:
            logger.debug("Delete of unknown memory %s ignored", identifier)
            return

        memories = list(self._memories)
        del memories[index]
        self._commit(memories)
        logger.info("Deleted memory %s", identifier)

    def _index_of(self, identifier: str) -> int | None:
        for i, memory in enumerate(self._memories):
            if memory.identifier == identifier:
                return i
        return None

    def _commit(self, memories: list[Memory]) -> None:
        """Swap in ``memories``, persist, notify. Roll back if the write fails."""
        payload = self._encode(memories)
        size = len(payload.encode("utf-8"))
        if size > self.max_payload_bytes:
            logger.warning(
                "Stored payload is %d bytes (limit %d); consider linking images instead of embedding them",
                size,
                self.max_payload_bytes,
            )

        previous = self._memories
        self._memories = memories
        try:
            self.storage.write_all(payload)
        except (StorageError, OSError) as e:
            self._memories = previous
            logger.error("Failed to persist memories, change rolled back: %s", e)
            raise PersistenceError(f"Failed to persist memories: {e}") from e
        except Exception:
            self._memories = previous
            logger.exception("Storage %r failed unexpectedly, change rolled back", self.storage)
            raise

        self._notify()

    # ── Serialization ─────────────────────────────────────────

    @staticmethod
    def _encode(memories: list[Memory]) -> str:
        return json.dumps([m.to_dict() for m in memories], ensure_ascii=False, indent=2)

    @staticmethod
    def _decode(payload: str) -> list[Memory]:
        try:
            raw = json.loads(payload)
        except (ValueError, RecursionError) as e:
            # JSONDecodeError is a ValueError; so are over-long integer literals
            raise DataCorruptionError(f"Invalid JSON: {e}") from e
        if not isinstance(raw, list):
            raise DataCorruptionError(f"Expected a list of memories, got {type(raw).__name__}")

        memories: list[Memory] = []
        seen: set[str] = set()
        for i, item in enumerate(raw):
            try:
                memory = Memory.from_dict(item)
            except ValidationError as e:
                raise DataCorruptionError(f"Record {i}: {e}") from e
            if memory.identifier in seen:
                raise DataCorruptionError(f"Record {i}: duplicate identifier {memory.identifier}")
            seen.add(memory.identifier)
            memories.append(memory)
        return memories
