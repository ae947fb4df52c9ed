"""Memory Globe orchestrator — wires store, overlay and creation flow together.

Responsibilities:
1. Own the single MemoryStore and hand it to the components that need it
2. Route overlay picks: marker → host selection, terrain → creation flow
3. Forward creation-flow events to the host UI
4. Expose the inbound calls (create/update/delete, begin/commit/cancel)
5. Fly the camera between memories along great-circle arcs
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from memoryglobe.animation import FlightAnimator
from memoryglobe.config import GlobeConfig
from memoryglobe.creation import MemoryCreationFlow, MemoryDraft
from memoryglobe.engines.headless import HeadlessGlobe
from memoryglobe.memory.models import GeoPosition, Memory
from memoryglobe.memory.storage import FileStorage, Storage
from memoryglobe.memory.store import MemoryStore
from memoryglobe.sync import GlyphStyle, MarkerSyncController

if TYPE_CHECKING:
    from memoryglobe.engines.base import RenderEngine
    from memoryglobe.errors import MemoryGlobeError
    from memoryglobe.hosts.base import HostUI

logger = logging.getLogger(__name__)


def build_engine(config: GlobeConfig) -> RenderEngine:
    """Instantiate the configured render engine backend."""
    name = config.engine.name
    if name == "headless":
        return HeadlessGlobe(pick_tolerance_deg=config.engine.pick_tolerance_deg)
    if name == "pyvista":
        from memoryglobe.engines.pyvista_globe import PyVistaGlobe

        return PyVistaGlobe(
            radius=config.engine.globe_radius,
            camera_distance=config.engine.camera_distance,
            pick_tolerance_deg=config.engine.pick_tolerance_deg,
        )
    raise ValueError(f"Unknown render engine: {name}")


class MemoryGlobe:
    """Core facade — the host UI talks to this, the engine talks back through it."""

    def __init__(
        self,
        store: MemoryStore,
        engine: RenderEngine,
        *,
        host: HostUI | None = None,
        config: GlobeConfig | None = None,
    ) -> None:
        self.config = config or GlobeConfig()
        self.store = store
        self.engine = engine
        self.host = host
        markers = self.config.markers
        self.flow = MemoryCreationFlow(
            store,
            on_creation_requested=self._creation_requested,
            on_creation_completed=self._creation_completed,
            tag_delimiter=self.config.creation.tag_delimiter,
        )
        self.controller = MarkerSyncController(
            engine,
            store,
            on_selected=self._memory_selected,
            on_candidate=self.flow.begin,
            style=GlyphStyle(
                fill=markers.fill,
                glow=markers.glow,
                text_color=markers.text_color,
                scale=markers.scale,
            ),
        )
        self.animator = FlightAnimator(
            self.controller,
            steps=self.config.flight.steps,
            step_interval=self.config.flight.step_interval,
            on_step=self._camera_moved,
        )
        self._camera: GeoPosition | None = None

    @classmethod
    def from_config(
        cls,
        config: GlobeConfig,
        *,
        host: HostUI | None = None,
        storage: Storage | None = None,
        engine: RenderEngine | None = None,
    ) -> MemoryGlobe:
        store = MemoryStore(
            storage or FileStorage(config.storage.path),
            max_payload_bytes=config.storage.max_payload_bytes,
        )
        return cls(store, engine or build_engine(config), host=host, config=config)

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self, container: Any = None) -> bool:
        """Load memories and bring up the engine.

        Returns False when the engine failed; the app then runs without markers.
        """
        error = self.store.load()
        if error is not None:
            logger.warning("Started with an empty collection: %s", error)
        return await self.controller.start(container)

    async def stop(self) -> None:
        await self.animator.stop()
        self.controller.close()

    # ── Host events ───────────────────────────────────────────

    def _memory_selected(self, memory: Memory) -> None:
        if self.host:
            self.host.memory_selected(memory)

    def _creation_requested(self, position: GeoPosition) -> None:
        if self.host:
            self.host.creation_requested(position)

    def _creation_completed(self, result: Memory | MemoryGlobeError) -> None:
        if self.host:
            self.host.creation_completed(result)

    # ── Inbound calls ─────────────────────────────────────────

    def create(self, memory: Memory) -> Memory:
        return self.store.create(memory)

    def update(self, memory: Memory) -> Memory:
        return self.store.update(memory)

    def delete(self, identifier: str) -> None:
        self.store.delete(identifier)

    def begin(self, position: GeoPosition) -> None:
        self.flow.begin(position)

    def commit(self, draft: MemoryDraft) -> Memory:
        return self.flow.commit(draft)

    def cancel(self) -> None:
        self.flow.cancel()

    # ── Camera ────────────────────────────────────────────────

    def fly_to_memory(self, identifier: str) -> asyncio.Task | None:
        """Fly from the current camera position to a memory's marker.

        The first flight jumps straight there; later ones follow the arc.
        """
        target = self.store.get(identifier).position
        start = self._camera
        if start is None:
            self._camera = target
            self.controller.fly_to(target.latitude, target.longitude)
            return None
        return self.animator.fly(start, target)

    def _camera_moved(self, position: GeoPosition) -> None:
        # A cancelled flight leaves the camera at its last step
        self._camera = position
