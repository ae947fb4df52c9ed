"""Marker synchronization — keeps the globe overlay equal to the memory collection.

The overlay is always rebuilt in full from a store snapshot: clear every
marker, then add one per memory tagged with its identifier. Pick events
coming back from the engine are turned into domain actions: a marker hit
selects that memory, a terrain hit proposes a position for a new one.

The engine starts asynchronously. Until it is ready, snapshots and camera
requests are held back and replayed; if it fails to start, the controller
stays usable as a marker-less map.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from memoryglobe.engines.base import ClickEvent, FlyToOptions, MarkerGlyph, RenderEngine
from memoryglobe.errors import NotFoundError
from memoryglobe.memory.models import GeoPosition, Memory
from memoryglobe.memory.store import MemoryStore

logger = logging.getLogger(__name__)

SelectionHandler = Callable[[Memory], None]
CandidateHandler = Callable[[GeoPosition], None]


@dataclass(frozen=True)
class GlyphStyle:
    """Colours shared by every marker glyph."""

    fill: str = "#0ea5e9"
    glow: str = "#0284c7"
    text_color: str = "#ffffff"
    scale: float = 0.5

    def glyph_for(self, memory: Memory) -> MarkerGlyph:
        letter = memory.title.strip()[:1].upper() or "?"
        return MarkerGlyph(
            letter=letter,
            fill=self.fill,
            glow=self.glow,
            text_color=self.text_color,
            scale=self.scale,
        )


@dataclass(frozen=True)
class Marker:
    """Derived view of one memory on the overlay."""

    memory_id: str
    position: GeoPosition
    glyph: MarkerGlyph


def project_markers(memories: Iterable[Memory], style: GlyphStyle) -> tuple[Marker, ...]:
    """One marker per memory, same order."""
    return tuple(
        Marker(memory_id=m.identifier, position=m.position, glyph=style.glyph_for(m))
        for m in memories
    )


class EngineState(Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class MarkerSyncController:
    """Reconciles the engine overlay with a MemoryStore."""

    def __init__(
        self,
        engine: RenderEngine,
        store: MemoryStore,
        *,
        on_selected: SelectionHandler | None = None,
        on_candidate: CandidateHandler | None = None,
        style: GlyphStyle | None = None,
    ) -> None:
        self.engine = engine
        self.store = store
        self.on_selected = on_selected
        self.on_candidate = on_candidate
        self.style = style or GlyphStyle()
        self.state = EngineState.PENDING
        self.init_error: Exception | None = None
        self._markers: tuple[Marker, ...] = ()
        self._deferred_snapshot: tuple[Memory, ...] | None = None
        self._deferred_fly_to: tuple[float, float, FlyToOptions | None] | None = None
        store.subscribe(self.on_store_changed)

    @property
    def ready(self) -> bool:
        return self.state is EngineState.READY

    @property
    def markers(self) -> tuple[Marker, ...]:
        """Markers currently on the overlay (empty unless the engine is ready)."""
        return self._markers if self.ready else ()

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self, container: Any = None) -> bool:
        """Initialize the engine. Returns False (and logs) if it failed to start."""
        if self.state is not EngineState.PENDING:
            return self.ready
        try:
            await self.engine.initialize(container)
        except Exception as e:
            self.state = EngineState.FAILED
            self.init_error = e
            self._deferred_snapshot = None
            self._deferred_fly_to = None
            logger.error("Render engine %s failed to initialize: %s", self.engine.name, e)
            return False

        self.engine.on_click(self.on_overlay_clicked)
        self.state = EngineState.READY
        logger.info("Render engine %s ready", self.engine.name)

        snapshot = self._deferred_snapshot
        if snapshot is None:
            snapshot = self.store.snapshot()
        self._deferred_snapshot = None
        self._rebuild(snapshot)

        if self._deferred_fly_to is not None:
            latitude, longitude, options = self._deferred_fly_to
            self._deferred_fly_to = None
            self.fly_to(latitude, longitude, options)
        return True

    def close(self) -> None:
        self.store.unsubscribe(self.on_store_changed)

    # ── Store → overlay ───────────────────────────────────────

    def on_store_changed(self, memories: tuple[Memory, ...]) -> None:
        if self.state is EngineState.PENDING:
            self._deferred_snapshot = memories
            return
        if self.state is EngineState.FAILED:
            # Marker-less map: the engine is not touched again
            return
        self._rebuild(memories)

    def _rebuild(self, memories: tuple[Memory, ...]) -> None:
        markers = project_markers(memories, self.style)
        try:
            self.engine.clear_markers()
            for marker in markers:
                self.engine.add_marker(
                    marker.memory_id,
                    marker.position.latitude,
                    marker.position.longitude,
                    marker.glyph,
                )
        except Exception:
            logger.exception("Render engine %s failed while drawing markers", self.engine.name)
            self._degrade()
            return
        self._markers = markers
        logger.debug("Overlay rebuilt with %d markers", len(markers))

    def _degrade(self) -> None:
        """Drop to a marker-less map rather than show a partial overlay."""
        self.state = EngineState.FAILED
        self._markers = ()
        try:
            self.engine.clear_markers()
        except Exception:
            logger.exception("Render engine %s failed to clear markers", self.engine.name)

    # ── Overlay → domain ──────────────────────────────────────

    def on_overlay_clicked(self, event: ClickEvent) -> None:
        if event.hit_marker_id is not None:
            try:
                memory = self.store.get(event.hit_marker_id)
            except NotFoundError:
                logger.warning("Click on stale marker %s ignored", event.hit_marker_id)
                return
            logger.debug("Marker %s selected", memory.identifier)
            if self.on_selected:
                self.on_selected(memory)
            return

        if event.hit_terrain_position is not None:
            logger.debug("Terrain picked at %s", event.hit_terrain_position)
            if self.on_candidate:
                self.on_candidate(event.hit_terrain_position)
            return

        logger.debug("Click missed the globe")

    # ── Camera ────────────────────────────────────────────────

    def fly_to(self, latitude: float, longitude: float, options: FlyToOptions | None = None) -> None:
        """Move the camera; held until the engine is ready, dropped if it failed."""
        if self.state is EngineState.PENDING:
            self._deferred_fly_to = (latitude, longitude, options)
        elif self.state is EngineState.READY:
            self.engine.fly_to(latitude, longitude, options)
