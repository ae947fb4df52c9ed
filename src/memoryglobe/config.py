"""Configuration loading from environment variables and memoryglobe.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from memoryglobe.memory.store import DEFAULT_MAX_PAYLOAD_BYTES

_DEFAULT_HOME = Path.home() / ".memoryglobe"
_DEFAULT_STORAGE_PATH = _DEFAULT_HOME / "memories.json"
_CONFIG_FILENAME = "memoryglobe.toml"


@dataclass
class StorageConfig:
    """Where memories are persisted."""

    path: Path = _DEFAULT_STORAGE_PATH
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES


@dataclass
class EngineConfig:
    """Render engine backend selection."""

    name: str = "headless"
    pick_tolerance_deg: float = 1.0
    globe_radius: float = 1.0
    camera_distance: float = 3.0


@dataclass
class MarkerConfig:
    """Marker glyph colours."""

    fill: str = "#0ea5e9"
    glow: str = "#0284c7"
    text_color: str = "#ffffff"
    scale: float = 0.5


@dataclass
class FlightConfig:
    """Camera flight animation."""

    steps: int = 30
    step_interval: float = 0.03


@dataclass
class CreationConfig:
    tag_delimiter: str = ","


@dataclass
class GlobeConfig:
    """Top-level Memory Globe configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    flight: FlightConfig = field(default_factory=FlightConfig)
    creation: CreationConfig = field(default_factory=CreationConfig)
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> GlobeConfig:
    """Load configuration from environment variables and optional memoryglobe.toml.

    Priority: environment variables > memoryglobe.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.memoryglobe/
        for candidate in [Path.cwd() / _CONFIG_FILENAME, _DEFAULT_HOME / _CONFIG_FILENAME]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    storage_data = file_data.get("storage", {})
    engine_data = file_data.get("engine", {})
    marker_data = file_data.get("markers", {})
    flight_data = file_data.get("flight", {})
    creation_data = file_data.get("creation", {})

    config = GlobeConfig(
        storage=StorageConfig(
            path=Path(
                os.getenv("MEMORYGLOBE_STORAGE_PATH", storage_data.get("path", str(_DEFAULT_STORAGE_PATH)))
            ).expanduser(),
            max_payload_bytes=int(storage_data.get("max_payload_bytes", DEFAULT_MAX_PAYLOAD_BYTES)),
        ),
        engine=EngineConfig(
            name=os.getenv("MEMORYGLOBE_ENGINE", engine_data.get("name", "headless")),
            pick_tolerance_deg=float(engine_data.get("pick_tolerance_deg", 1.0)),
            globe_radius=float(engine_data.get("globe_radius", 1.0)),
            camera_distance=float(engine_data.get("camera_distance", 3.0)),
        ),
        markers=MarkerConfig(
            fill=marker_data.get("fill", "#0ea5e9"),
            glow=marker_data.get("glow", "#0284c7"),
            text_color=marker_data.get("text_color", "#ffffff"),
            scale=float(marker_data.get("scale", 0.5)),
        ),
        flight=FlightConfig(
            steps=int(os.getenv("MEMORYGLOBE_FLIGHT_STEPS", flight_data.get("steps", 30))),
            step_interval=float(flight_data.get("step_interval", 0.03)),
        ),
        creation=CreationConfig(
            tag_delimiter=creation_data.get("tag_delimiter", ","),
        ),
        log_level=os.getenv("MEMORYGLOBE_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
