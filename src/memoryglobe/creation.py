"""Memory creation flow: terrain click → form → commit or cancel."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum

from memoryglobe.errors import FlowStateError, MemoryGlobeError
from memoryglobe.memory.models import GeoPosition, Memory, new_memory_id, parse_date, parse_tags
from memoryglobe.memory.store import MemoryStore

logger = logging.getLogger(__name__)

CreationRequestedHandler = Callable[[GeoPosition], None]
CreationCompletedHandler = Callable[["Memory | MemoryGlobeError"], None]


class FlowState(Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


@dataclass(frozen=True)
class PendingCreation:
    """A picked position waiting for the user to fill in the form."""

    position: GeoPosition


@dataclass
class MemoryDraft:
    """User-supplied form fields. Only ``title`` is required."""

    title: str
    description: str = ""
    date: date | str | None = None
    image_reference: str = ""
    tags: str = ""


class MemoryCreationFlow:
    """Single-slot state machine: Idle → AwaitingConfirmation → Idle."""

    def __init__(
        self,
        store: MemoryStore,
        *,
        on_creation_requested: CreationRequestedHandler | None = None,
        on_creation_completed: CreationCompletedHandler | None = None,
        tag_delimiter: str = ",",
        id_factory: Callable[[], str] = new_memory_id,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.on_creation_requested = on_creation_requested
        self.on_creation_completed = on_creation_completed
        self.tag_delimiter = tag_delimiter
        self._id_factory = id_factory
        self._today = today
        self._pending: PendingCreation | None = None

    @property
    def state(self) -> FlowState:
        return FlowState.IDLE if self._pending is None else FlowState.AWAITING_CONFIRMATION

    @property
    def pending(self) -> PendingCreation | None:
        return self._pending

    def begin(self, position: GeoPosition) -> None:
        """Hold ``position`` for a new memory. A second click replaces the first."""
        if self._pending is not None:
            logger.debug("Replacing pending position %s", self._pending.position)
        self._pending = PendingCreation(position)
        if self.on_creation_requested:
            self.on_creation_requested(position)

    def commit(self, draft: MemoryDraft) -> Memory:
        """Create the memory at the held position.

        The flow returns to Idle whatever the outcome. Store errors
        (ValidationError, PersistenceError) are reported through
        ``on_creation_completed`` and then re-raised for the caller.
        """
        pending = self._require_pending("commit")
        self._pending = None

        try:
            memory = self._build(pending.position, draft)
            self.store.create(memory)
        except MemoryGlobeError as e:
            logger.info("Memory creation failed: %s", e)
            if self.on_creation_completed:
                self.on_creation_completed(e)
            raise

        if self.on_creation_completed:
            self.on_creation_completed(memory)
        return memory

    def cancel(self) -> None:
        self._require_pending("cancel")
        self._pending = None

    def _require_pending(self, operation: str) -> PendingCreation:
        if self._pending is None:
            raise FlowStateError(f"Cannot {operation}: no position is awaiting confirmation")
        return self._pending

    def _build(self, position: GeoPosition, draft: MemoryDraft) -> Memory:
        when = self._today() if draft.date in (None, "") else parse_date(draft.date)
        return Memory(
            identifier=self._id_factory(),
            title=draft.title,
            latitude=position.latitude,
            longitude=position.longitude,
            date=when,
            description=draft.description or "",
            image_reference=draft.image_reference or "",
            tags=parse_tags(draft.tags or "", self.tag_delimiter),
        )
