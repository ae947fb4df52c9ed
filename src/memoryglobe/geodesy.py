"""Spherical geometry for placing and connecting markers on the globe.

All functions take and return degrees. Coordinates outside
[-90, 90] x [-180, 180] raise ``ValidationError`` instead of leaking NaN
into a renderer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from memoryglobe.errors import ValidationError

EARTH_RADIUS_KM = 6371.0

# Below this |sin(angle)| two unit vectors are treated as parallel.
_PARALLEL_EPSILON = 1e-12

Vector = tuple[float, float, float]


@dataclass(frozen=True)
class PathPoint:
    """One sample of a great-circle arc, lifted ``height_km`` above the surface."""

    latitude: float
    longitude: float
    height_km: float = 0.0


def to_radians(degrees: float) -> float:
    return math.radians(degrees)


def to_degrees(radians: float) -> float:
    return math.degrees(radians)


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValidationError unless both values are finite and in range."""
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        raise ValidationError(f"Coordinates must be numbers, got ({latitude!r}, {longitude!r})")
    try:
        finite = math.isfinite(latitude) and math.isfinite(longitude)
    except OverflowError:
        raise ValidationError("Coordinates are too large to be a position") from None
    if not finite:
        raise ValidationError(f"Coordinates must be finite, got ({latitude}, {longitude})")
    if not -90.0 <= latitude <= 90.0:
        raise ValidationError(f"Latitude {latitude} outside [-90, 90]")
    if not -180.0 <= longitude <= 180.0:
        raise ValidationError(f"Longitude {longitude} outside [-180, 180]")


def great_circle_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points, in kilometres."""
    validate_coordinates(lat1, lon1)
    validate_coordinates(lat2, lon2)

    d_lat = to_radians(lat2 - lat1)
    d_lon = to_radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_radians(lat1)) * math.cos(to_radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a a hair outside [0, 1] for near-antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_coordinates(latitude: float, longitude: float) -> str:
    """Render ``(-33.8688, 151.2093)`` as ``"33.8688° S, 151.2093° E"``."""
    lat_hemisphere = "N" if latitude >= 0 else "S"
    lon_hemisphere = "E" if longitude >= 0 else "W"
    return (
        f"{abs(latitude):.4f}° {lat_hemisphere}, "
        f"{abs(longitude):.4f}° {lon_hemisphere}"
    )


def friendly_location_name(latitude: float, longitude: float) -> str:
    """Display label for a position. No reverse geocoding is performed."""
    return f"Location at {format_coordinates(latitude, longitude)}"


# ── Unit-sphere vectors ───────────────────────────────────────


def to_unit_vector(latitude: float, longitude: float) -> Vector:
    phi = to_radians(latitude)
    lam = to_radians(longitude)
    return (math.cos(phi) * math.cos(lam), math.cos(phi) * math.sin(lam), math.sin(phi))


def from_unit_vector(vector: Vector) -> tuple[float, float]:
    x, y, z = vector
    latitude = to_degrees(math.atan2(z, math.hypot(x, y)))
    longitude = to_degrees(math.atan2(y, x))
    return latitude, longitude


def _dot(a: Vector, b: Vector) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _cross_norm(a: Vector, b: Vector) -> float:
    return math.sqrt(
        (a[1] * b[2] - a[2] * b[1]) ** 2
        + (a[2] * b[0] - a[0] * b[2]) ** 2
        + (a[0] * b[1] - a[1] * b[0]) ** 2
    )


def _antipodal_axis(latitude: float, longitude: float) -> Vector:
    """Unit tangent used to pick one great circle between antipodes.

    Away from the poles this is the due-north direction at the start point,
    so the arc follows the start point's own meridian over the pole. From a
    pole the arc follows the reference meridian (longitude 0).
    """
    if abs(latitude) == 90.0:
        return (1.0, 0.0, 0.0)
    phi = to_radians(latitude)
    lam = to_radians(longitude)
    return (-math.sin(phi) * math.cos(lam), -math.sin(phi) * math.sin(lam), math.cos(phi))


def interpolate_great_circle_path(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    steps: int,
) -> list[PathPoint]:
    """Sample the great-circle arc from point 1 to point 2.

    Returns ``steps + 1`` points including both endpoints, spaced evenly by
    spherical linear interpolation. Interior points carry an arc height of
    ``sin(fraction * pi) * distance_km / 10`` so a renderer can draw a raised
    flight path; both endpoints sit at height 0 and repeat the inputs exactly.

    Identical endpoints give a path that stays put. Antipodal endpoints use
    the tie-break described in ``_antipodal_axis``.
    """
    if not isinstance(steps, int) or steps < 1:
        raise ValidationError(f"steps must be a positive integer, got {steps!r}")
    distance = great_circle_distance_km(lat1, lon1, lat2, lon2)

    start = to_unit_vector(lat1, lon1)
    end = to_unit_vector(lat2, lon2)
    cos_omega = _dot(start, end)
    sin_omega = _cross_norm(start, end)
    omega = math.atan2(sin_omega, cos_omega)

    if sin_omega < _PARALLEL_EPSILON and cos_omega > 0:
        mode = "identical"
    elif sin_omega < _PARALLEL_EPSILON:
        mode = "antipodal"
        axis = _antipodal_axis(lat1, lon1)
    else:
        mode = "slerp"

    points = [PathPoint(lat1, lon1, 0.0)]
    for i in range(1, steps):
        fraction = i / steps
        if mode == "identical":
            latitude, longitude = lat1, lon1
        else:
            if mode == "antipodal":
                w_start = math.cos(fraction * math.pi)
                w_other = math.sin(fraction * math.pi)
                other = axis
            else:
                w_start = math.sin((1 - fraction) * omega) / sin_omega
                w_other = math.sin(fraction * omega) / sin_omega
                other = end
            vector = (
                w_start * start[0] + w_other * other[0],
                w_start * start[1] + w_other * other[1],
                w_start * start[2] + w_other * other[2],
            )
            latitude, longitude = from_unit_vector(vector)
        height = math.sin(fraction * math.pi) * (distance / 10)
        points.append(PathPoint(latitude, longitude, height))
    points.append(PathPoint(lat2, lon2, 0.0))
    return points
