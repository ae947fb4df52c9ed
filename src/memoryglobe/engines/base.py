"""Render engine protocol and shared types."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from memoryglobe.memory.models import GeoPosition


@dataclass(frozen=True)
class MarkerGlyph:
    """How a marker looks: a letter badge on a glowing disc.

    Each backend draws this its own way; the core never renders it.
    """

    letter: str
    fill: str = "#0ea5e9"
    glow: str = "#0284c7"
    text_color: str = "#ffffff"
    scale: float = 0.5


@dataclass(frozen=True)
class ClickEvent:
    """A click as classified by the engine's picking.

    Both fields may be set when the click landed on a marker drawn over
    terrain; both are None when the click missed the globe.
    """

    hit_marker_id: str | None = None
    hit_terrain_position: GeoPosition | None = None


@dataclass(frozen=True)
class FlyToOptions:
    """Camera options for ``RenderEngine.fly_to``."""

    altitude_km: float | None = None
    duration: float | None = None


@dataclass
class EngineHandle:
    """Returned by a successful ``initialize``."""

    engine_name: str
    container: Any = None


ClickCallback = Callable[[ClickEvent], None]


@runtime_checkable
class RenderEngine(Protocol):
    """Protocol that all globe backends must implement."""

    @property
    def name(self) -> str: ...

    async def initialize(self, container: Any = None) -> EngineHandle:
        """Start the backend. Raises EngineInitError on failure."""
        ...

    def add_marker(self, marker_id: str, latitude: float, longitude: float, glyph: MarkerGlyph) -> None:
        """Draw one marker, tagged with ``marker_id`` for picking."""
        ...

    def clear_markers(self) -> None:
        """Remove every marker from the overlay."""
        ...

    def on_click(self, callback: ClickCallback) -> None:
        """Register the callback that receives every pick event."""
        ...

    def fly_to(self, latitude: float, longitude: float, options: FlyToOptions | None = None) -> None:
        """Move the camera to look down on a position."""
        ...
