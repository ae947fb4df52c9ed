"""Console host — prints globe events to stdout for the CLI viewer."""

from __future__ import annotations

from typing import TYPE_CHECKING

from memoryglobe.geodesy import format_coordinates

if TYPE_CHECKING:
    from memoryglobe.errors import MemoryGlobeError
    from memoryglobe.memory.models import GeoPosition, Memory


class ConsoleHost:
    """Writes each host event as a line of text."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def memory_selected(self, memory: Memory) -> None:
        self.events.append(("memory_selected", memory))
        print(f"\n{memory.title} — {memory.date.isoformat()}")
        print(f"  {format_coordinates(memory.latitude, memory.longitude)}")
        if memory.description:
            print(f"  {memory.description}")
        if memory.tags:
            print(f"  tags: {', '.join(memory.tags)}")

    def creation_requested(self, position: GeoPosition) -> None:
        self.events.append(("creation_requested", position))
        print(
            f"\nNew memory at {format_coordinates(position.latitude, position.longitude)}: "
            f"memoryglobe add TITLE --lat {position.latitude:.4f} --lon {position.longitude:.4f}"
        )

    def creation_completed(self, result: Memory | MemoryGlobeError) -> None:
        self.events.append(("creation_completed", result))
        if isinstance(result, Exception):
            print(f"Could not save memory: {result}")
        else:
            print(f"Saved '{result.title}' ({result.identifier})")
