"""Pick classification shared by the globe backends."""

from __future__ import annotations

from collections.abc import Mapping

from memoryglobe.engines.base import ClickEvent
from memoryglobe.geodesy import EARTH_RADIUS_KM, great_circle_distance_km, to_degrees
from memoryglobe.memory.models import GeoPosition


def angular_distance_deg(a: GeoPosition, b: GeoPosition) -> float:
    """Central angle between two positions, in degrees."""
    km = great_circle_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)
    return to_degrees(km / EARTH_RADIUS_KM)


def nearest_marker(
    markers: Mapping[str, GeoPosition],
    position: GeoPosition,
    tolerance_deg: float,
) -> str | None:
    """Identifier of the closest marker within ``tolerance_deg``, if any.

    Ties go to the marker added last, since it is drawn on top.
    """
    best_id: str | None = None
    best_angle = tolerance_deg
    for marker_id, marker_position in markers.items():
        angle = angular_distance_deg(marker_position, position)
        if angle <= best_angle:
            best_id, best_angle = marker_id, angle
    return best_id


def classify_surface_pick(
    markers: Mapping[str, GeoPosition],
    position: GeoPosition | None,
    tolerance_deg: float,
) -> ClickEvent:
    """Turn a surface position (or a miss) into a ClickEvent."""
    if position is None:
        return ClickEvent()
    return ClickEvent(
        hit_marker_id=nearest_marker(markers, position, tolerance_deg),
        hit_terrain_position=position,
    )
