"""Host UI protocol — the three events the core emits outward."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from memoryglobe.errors import MemoryGlobeError
    from memoryglobe.memory.models import GeoPosition, Memory


@runtime_checkable
class HostUI(Protocol):
    """Protocol that every host user interface must implement."""

    def memory_selected(self, memory: Memory) -> None:
        """A marker was clicked; show this memory."""
        ...

    def creation_requested(self, position: GeoPosition) -> None:
        """Bare terrain was clicked; show the creation form for this position."""
        ...

    def creation_completed(self, result: Memory | MemoryGlobeError) -> None:
        """A commit finished, with the new memory or the error that stopped it."""
        ...
