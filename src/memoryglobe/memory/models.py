"""Memory records and their persisted JSON shape."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from memoryglobe.errors import ValidationError
from memoryglobe.geodesy import validate_coordinates

# Keys written by the original web app, read for compatibility.
_LEGACY_KEYS = {"id": "identifier", "imageUrl": "imageReference"}


@dataclass(frozen=True)
class GeoPosition:
    """A validated latitude/longitude pair in degrees."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        validate_coordinates(self.latitude, self.longitude)


@dataclass(frozen=True, eq=False)
class Memory:
    """A user-authored geotagged record.

    ``tags`` keeps insertion order for display, but two memories whose tags
    differ only in order compare equal.
    """

    identifier: str
    title: str
    latitude: float
    longitude: float
    date: date
    description: str = ""
    image_reference: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def position(self) -> GeoPosition:
        return GeoPosition(self.latitude, self.longitude)

    def _key(self) -> tuple:
        return (
            self.identifier,
            self.title,
            self.description,
            self.latitude,
            self.longitude,
            self.date,
            self.image_reference,
            frozenset(self.tags),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Memory):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def validate(self) -> None:
        """Check the record invariants. Raises ValidationError."""
        if not isinstance(self.identifier, str) or not self.identifier:
            raise ValidationError("Memory identifier must be a non-empty string")
        if not isinstance(self.title, str) or not self.title.strip():
            raise ValidationError("Memory title must not be empty")
        if not isinstance(self.description, str):
            raise ValidationError("Memory description must be text")
        if not isinstance(self.image_reference, str):
            raise ValidationError("Memory image reference must be text")
        if not isinstance(self.date, date):
            raise ValidationError(f"Memory date must be a calendar date, got {self.date!r}")
        validate_coordinates(self.latitude, self.longitude)

        seen: set[str] = set()
        for tag in self.tags:
            if not isinstance(tag, str) or not tag:
                raise ValidationError(f"Tags must be non-empty strings, got {tag!r}")
            if tag in seen:
                raise ValidationError(f"Duplicate tag: {tag}")
            seen.add(tag)

        for text in (self.identifier, self.title, self.description, self.image_reference, *self.tags):
            _check_encodable(text)

    # ── Persisted form ────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "title": self.title,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "date": self.date.isoformat(),
            "imageReference": self.image_reference,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Memory:
        """Build and validate a memory from its persisted form.

        Unknown keys are ignored; description, imageReference and tags may
        be missing.
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Memory record must be an object, got {type(data).__name__}")
        data = dict(data)
        for legacy, current in _LEGACY_KEYS.items():
            if legacy in data and current not in data:
                data[current] = data[legacy]

        for key in ("identifier", "title", "latitude", "longitude", "date"):
            if key not in data:
                raise ValidationError(f"Memory record missing '{key}'")

        tags = data.get("tags", [])
        if not isinstance(tags, list):
            raise ValidationError("Memory tags must be a list")

        memory = cls(
            identifier=data["identifier"],
            title=data["title"],
            latitude=data["latitude"],
            longitude=data["longitude"],
            date=parse_date(data["date"]),
            description=data.get("description", ""),
            image_reference=data.get("imageReference", ""),
            tags=tuple(tags),
        )
        memory.validate()
        return memory


def _check_encodable(text: str) -> None:
    # Lone surrogates survive json.loads but cannot be written back as UTF-8
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(f"Memory text is not valid Unicode: {text[:40]!r}") from e


def new_memory_id() -> str:
    return uuid.uuid4().hex


def parse_date(value: date | str) -> date:
    """Accept a date or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ValidationError(f"Invalid date: {value!r}")


def parse_tags(raw: str, delimiter: str = ",") -> tuple[str, ...]:
    """Split a delimited tag string, trimming whitespace.

    Empty entries are dropped and repeats keep their first occurrence.
    """
    tags: list[str] = []
    for part in raw.split(delimiter):
        tag = part.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)
