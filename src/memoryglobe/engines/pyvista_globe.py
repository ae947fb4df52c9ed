"""PyVista globe — an interactive VTK sphere with memory markers.

PyVista is imported during ``initialize`` rather than at module import, so
the rest of the application works (with a marker-less map) when the
``globe`` extra is not installed.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
import numpy.typing as npt

from memoryglobe.engines.base import (
    ClickCallback,
    ClickEvent,
    EngineHandle,
    FlyToOptions,
    MarkerGlyph,
)
from memoryglobe.engines.picking import classify_surface_pick
from memoryglobe.errors import EngineInitError, ValidationError
from memoryglobe.geodesy import EARTH_RADIUS_KM
from memoryglobe.memory.models import GeoPosition

logger = logging.getLogger(__name__)

# Markers float slightly above the surface so they are not z-fought by the globe.
_MARKER_LIFT = 1.01
_MARKER_SIZE = 0.02


# ── Scene geometry ────────────────────────────────────────────


def geographic_to_cartesian(latitude: float, longitude: float, radius: float = 1.0) -> npt.NDArray[np.float64]:
    """Scene coordinates of a position; +z is the north pole, +x is (0°, 0°)."""
    phi = np.radians(latitude)
    lam = np.radians(longitude)
    return radius * np.array(
        [np.cos(phi) * np.cos(lam), np.cos(phi) * np.sin(lam), np.sin(phi)],
        dtype=np.float64,
    )


def cartesian_to_geographic(point: npt.ArrayLike) -> tuple[float, float]:
    x, y, z = np.asarray(point, dtype=np.float64)
    latitude = float(np.degrees(np.arctan2(z, np.hypot(x, y))))
    longitude = float(np.degrees(np.arctan2(y, x)))
    return latitude, longitude


def surface_position(
    point: npt.ArrayLike | None,
    radius: float,
    rel_tolerance: float = 0.05,
) -> GeoPosition | None:
    """Geographic position of a picked world point, or None if it is off the globe.

    A world-point picker returns a point on the far clipping plane when the
    click hits the background, so anything far from the sphere shell is a miss.
    """
    if point is None:
        return None
    arr = np.asarray(point, dtype=np.float64)
    if arr.shape != (3,) or not np.all(np.isfinite(arr)):
        return None
    distance = float(np.linalg.norm(arr))
    if abs(distance - radius) > rel_tolerance * radius:
        return None
    latitude, longitude = cartesian_to_geographic(arr)
    try:
        return GeoPosition(latitude, longitude)
    except ValidationError:
        return None


class PyVistaGlobe:
    """Globe backend rendered with PyVista."""

    def __init__(
        self,
        *,
        radius: float = 1.0,
        camera_distance: float = 3.0,
        pick_tolerance_deg: float = 1.0,
        globe_color: str = "#1e3a5f",
        off_screen: bool = False,
    ) -> None:
        self.radius = radius
        self.camera_distance = camera_distance
        self.pick_tolerance_deg = pick_tolerance_deg
        self.globe_color = globe_color
        self.off_screen = off_screen
        self.plotter: Any = None
        self._pv: Any = None
        self._marker_positions: dict[str, GeoPosition] = {}
        self._marker_actors: dict[str, list[Any]] = {}
        self._callbacks: list[ClickCallback] = []

    @property
    def name(self) -> str:
        return "pyvista"

    async def initialize(self, container: Any = None) -> EngineHandle:
        """Load PyVista and build the scene in ``container`` (a Plotter) or a new window."""
        try:
            import pyvista as pv
        except ImportError as e:
            raise EngineInitError(
                "pyvista package required. Install with: pip install 'memoryglobe[globe]'"
            ) from e

        try:
            self._pv = pv
            self.plotter = container if container is not None else pv.Plotter(off_screen=self.off_screen)
            self._init_plotter()
        except Exception as e:
            raise EngineInitError(f"Failed to set up the PyVista globe: {e}") from e

        logger.info("PyVista globe ready (radius=%.2f)", self.radius)
        return EngineHandle(engine_name=self.name, container=self.plotter)

    def _init_plotter(self) -> None:
        pv = self._pv
        self.plotter.set_background("black")
        globe = pv.Sphere(radius=self.radius, theta_resolution=180, phi_resolution=90)
        self.plotter.add_mesh(globe, color=self.globe_color, smooth_shading=True, label="Globe")
        self.plotter.track_click_position(callback=self._handle_click, side="left")
        self.fly_to(0.0, 0.0)

    # ── Markers ───────────────────────────────────────────────

    def add_marker(self, marker_id: str, latitude: float, longitude: float, glyph: MarkerGlyph) -> None:
        pv = self._pv
        center = geographic_to_cartesian(latitude, longitude, self.radius * _MARKER_LIFT)
        size = _MARKER_SIZE * self.radius * (glyph.scale / 0.5)

        badge = self.plotter.add_mesh(
            pv.Sphere(radius=size, center=center),
            color=glyph.fill,
            pickable=False,
            show_scalar_bar=False,
        )
        label = self.plotter.add_point_labels(
            center.reshape(1, 3),
            [glyph.letter],
            text_color=glyph.text_color,
            shape_color=glyph.glow,
            font_size=12,
            always_visible=False,
        )
        self._marker_positions[marker_id] = GeoPosition(latitude, longitude)
        self._marker_actors[marker_id] = [badge, label]

    def clear_markers(self) -> None:
        for actors in self._marker_actors.values():
            for actor in actors:
                self.plotter.remove_actor(actor, render=False)
        self._marker_actors.clear()
        self._marker_positions.clear()
        self.plotter.render()

    # ── Picking ───────────────────────────────────────────────

    def on_click(self, callback: ClickCallback) -> None:
        self._callbacks.append(callback)

    def _handle_click(self, point: Any) -> None:
        event = self.classify(point)
        for callback in list(self._callbacks):
            callback(event)

    def classify(self, point: Any) -> ClickEvent:
        position = surface_position(point, self.radius * _MARKER_LIFT)
        return classify_surface_pick(self._marker_positions, position, self.pick_tolerance_deg)

    # ── Camera ────────────────────────────────────────────────

    def fly_to(self, latitude: float, longitude: float, options: FlyToOptions | None = None) -> None:
        if options is not None and options.altitude_km is not None:
            distance = self.radius * (1 + options.altitude_km / EARTH_RADIUS_KM)
        else:
            distance = self.radius * self.camera_distance

        camera = self.plotter.camera
        camera.position = tuple(geographic_to_cartesian(latitude, longitude, distance))
        camera.focal_point = (0.0, 0.0, 0.0)
        # view-up must not be parallel to the view direction over the poles
        camera.up = (0.0, 1.0, 0.0) if abs(latitude) > 89.0 else (0.0, 0.0, 1.0)
        self.plotter.render()

    def show(self) -> None:
        """Open the interactive window and block until it is closed."""
        self.plotter.show()
