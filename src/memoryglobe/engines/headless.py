"""Headless globe — an in-process overlay with no window.

Used by the CLI and the test-suite. Clicks are injected with ``click_at``
(a surface position), ``click_sky`` (a miss) or ``dispatch`` (a raw event).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from memoryglobe.engines.base import (
    ClickCallback,
    ClickEvent,
    EngineHandle,
    FlyToOptions,
    MarkerGlyph,
)
from memoryglobe.engines.picking import classify_surface_pick
from memoryglobe.errors import EngineInitError
from memoryglobe.memory.models import GeoPosition

logger = logging.getLogger(__name__)


@dataclass
class HeadlessGlobe:
    """Globe backend that keeps its overlay in a dict."""

    pick_tolerance_deg: float = 1.0
    startup_delay: float = 0.0
    fail_with: Exception | None = None
    markers: dict[str, GeoPosition] = field(default_factory=dict)
    glyphs: dict[str, MarkerGlyph] = field(default_factory=dict)
    camera: tuple[float, float, FlyToOptions | None] | None = None

    def __post_init__(self) -> None:
        self._callbacks: list[ClickCallback] = []
        self.initialized = False

    @property
    def name(self) -> str:
        return "headless"

    async def initialize(self, container: Any = None) -> EngineHandle:
        await asyncio.sleep(self.startup_delay)
        if self.fail_with is not None:
            raise EngineInitError(f"Headless globe failed to start: {self.fail_with}") from self.fail_with
        self.initialized = True
        logger.debug("Headless globe ready")
        return EngineHandle(engine_name=self.name, container=container)

    def add_marker(self, marker_id: str, latitude: float, longitude: float, glyph: MarkerGlyph) -> None:
        if marker_id in self.markers:
            raise ValueError(f"Duplicate marker id: {marker_id}")
        self.markers[marker_id] = GeoPosition(latitude, longitude)
        self.glyphs[marker_id] = glyph

    def clear_markers(self) -> None:
        self.markers.clear()
        self.glyphs.clear()

    def on_click(self, callback: ClickCallback) -> None:
        self._callbacks.append(callback)

    def fly_to(self, latitude: float, longitude: float, options: FlyToOptions | None = None) -> None:
        self.camera = (latitude, longitude, options)

    # ── Event injection ───────────────────────────────────────

    def dispatch(self, event: ClickEvent) -> None:
        for callback in list(self._callbacks):
            callback(event)

    def click_at(self, latitude: float, longitude: float) -> ClickEvent:
        """Click the surface; a marker within tolerance is hit as well."""
        event = classify_surface_pick(
            self.markers, GeoPosition(latitude, longitude), self.pick_tolerance_deg
        )
        self.dispatch(event)
        return event

    def click_sky(self) -> ClickEvent:
        event = ClickEvent()
        self.dispatch(event)
        return event
