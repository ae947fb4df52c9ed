"""Tests for configuration loading."""

import pytest
from pathlib import Path

from memoryglobe.config import load_config

_ENV_KEYS = ["MEMORYGLOBE_STORAGE_PATH", "MEMORYGLOBE_ENGINE", "MEMORYGLOBE_FLIGHT_STEPS", "MEMORYGLOBE_LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self):
        config = load_config(Path("missing.toml"))
        assert config.engine.name == "headless"
        assert config.storage.path.name == "memories.json"
        assert config.storage.max_payload_bytes == 5 * 1024 * 1024
        assert config.markers.fill == "#0ea5e9"
        assert config.flight.steps == 30
        assert config.creation.tag_delimiter == ","
        assert config.log_level == "INFO"

    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("MEMORYGLOBE_ENGINE", "pyvista")
        monkeypatch.setenv("MEMORYGLOBE_FLIGHT_STEPS", "12")
        monkeypatch.setenv("MEMORYGLOBE_STORAGE_PATH", str(tmp_path / "m.json"))

        config = load_config()
        assert config.engine.name == "pyvista"
        assert config.flight.steps == 12
        assert config.storage.path == tmp_path / "m.json"

    def test_toml_file(self, tmp_path: Path):
        toml_path = tmp_path / "memoryglobe.toml"
        toml_path.write_text("""
log_level = "DEBUG"

[engine]
name = "pyvista"
pick_tolerance_deg = 2.5

[markers]
fill = "#ff0000"

[creation]
tag_delimiter = ";"
""")
        config = load_config(toml_path)
        assert config.engine.name == "pyvista"
        assert config.engine.pick_tolerance_deg == 2.5
        assert config.markers.fill == "#ff0000"
        assert config.markers.glow == "#0284c7"
        assert config.creation.tag_delimiter == ";"
        assert config.log_level == "DEBUG"

    def test_toml_found_in_cwd(self, tmp_path: Path):
        (tmp_path / "memoryglobe.toml").write_text('[flight]\nsteps = 5\n')
        assert load_config().flight.steps == 5

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("MEMORYGLOBE_ENGINE", "headless")

        toml_path = tmp_path / "memoryglobe.toml"
        toml_path.write_text("""
[engine]
name = "pyvista"
""")
        config = load_config(toml_path)
        assert config.engine.name == "headless"  # env wins
