import json
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from sacn_ble_bridge.core.config import COLOR_CHARACTERISTIC_UUID, LightConfig, Settings
from sacn_ble_bridge.core.exceptions import ConfigError, LightConfigError
from sacn_ble_bridge.ui.cli import _validate_startup_config


def test_light_id_is_normalised() -> None:
    assert LightConfig(id="a4:c1:38:0a:0b:0c", universe=1, address=1).id == "A4:C1:38:0A:0B:0C"
    assert LightConfig(id="a4-c1-38-0a-0b-0c", universe=1, address=1).id == "A4:C1:38:0A:0B:0C"


def test_light_id_accepts_platform_uuid() -> None:
    light = LightConfig(id="2f1c8a3e-96a4-4d3b-9f0e-3c2a1b0d9e8f", universe=1, address=1)
    assert light.id == "2F1C8A3E-96A4-4D3B-9F0E-3C2A1B0D9E8F"


@pytest.mark.parametrize(
    "fields",
    [
        {"id": "not-an-address", "universe": 1, "address": 1},
        {"id": "A4:C1:38:00:00:01", "universe": 0, "address": 1},
        {"id": "A4:C1:38:00:00:01", "universe": 64000, "address": 1},
        {"id": "A4:C1:38:00:00:01", "universe": 1, "address": 0},
        {"id": "A4:C1:38:00:00:01", "universe": 1, "address": 511},
    ],
)
def test_light_config_rejects_bad_values(fields: dict) -> None:
    with pytest.raises(ValidationError):
        LightConfig(**fields)


def test_light_config_is_immutable() -> None:
    light = LightConfig(id="A4:C1:38:00:00:01", universe=1, address=1)
    with pytest.raises(ValidationError):
        light.universe = 2


def test_from_json_accepts_bare_light_list(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            [
                {"id": "a4:c1:38:00:00:01", "universe": 2, "address": 1},
                {"id": "a4:c1:38:00:00:02", "universe": 1, "address": 4},
                {"id": "a4:c1:38:00:00:03", "universe": 2, "address": 7},
            ]
        )
    )

    settings = Settings.from_file(path)

    assert [light.id for light in settings.lights] == [
        "A4:C1:38:00:00:01",
        "A4:C1:38:00:00:02",
        "A4:C1:38:00:00:03",
    ]
    assert settings.universes() == [1, 2]
    assert settings.ble.characteristic_uuid == COLOR_CHARACTERISTIC_UUID


def test_from_yaml_reads_nested_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "lights:\n"
        "  - id: A4:C1:38:00:00:01\n"
        "    universe: 3\n"
        "    address: 10\n"
        "    name: Stage left\n"
        "timing:\n"
        "  connect_timeout_s: 4.5\n"
        "sacn:\n"
        "  interface: 192.168.1.20\n"
    )

    settings = Settings.from_file(path)

    assert settings.lights[0].label == "Stage left"
    assert settings.timing.connect_timeout_s == 4.5
    assert settings.timing.stale_after_s == 10.0
    assert settings.sacn.interface == "192.168.1.20"
    assert settings.sacn.port == 5568


def test_invalid_file_contents_raise_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps([{"id": "bogus", "universe": 1, "address": 1}]))
    with pytest.raises(ConfigError):
        Settings.from_file(path)

    broken = tmp_path / "broken.json"
    broken.write_text("{")
    with pytest.raises(ConfigError):
        Settings.from_file(broken)

    with pytest.raises(ConfigError):
        Settings.from_file(tmp_path / "missing.yaml")


def test_startup_validation_rejects_empty_light_list() -> None:
    with pytest.raises(ConfigError):
        _validate_startup_config(Settings(lights=[]))


def test_startup_validation_rejects_duplicate_lights() -> None:
    settings = Settings(
        lights=[
            LightConfig(id="A4:C1:38:00:00:01", universe=1, address=1),
            LightConfig(id="a4:c1:38:00:00:01", universe=2, address=1),
        ]
    )

    with pytest.raises(LightConfigError):
        _validate_startup_config(settings)


def test_startup_validation_allows_valid_config() -> None:
    settings = Settings(lights=[LightConfig(id="A4:C1:38:00:00:01", universe=1, address=510)])
    _validate_startup_config(settings)


def test_log_level_is_validated_and_debug_overrides_it() -> None:
    assert Settings(log_level="warning").effective_log_level() == logging.WARNING
    assert Settings(log_level="warning", debug=True).effective_log_level() == logging.DEBUG

    with pytest.raises(ValidationError):
        Settings(log_level="chatty")
