"""
Configuration Management for the sACN to BLE bridge.

Uses Pydantic Settings for type-safe configuration with environment
variable support and YAML/JSON file loading.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from sacn_ble_bridge.core.exceptions import ConfigError
from sacn_ble_bridge.dmx.universe import DMX_CHANNEL_MAX, DMX_CHANNEL_MIN, RGB_WIDTH

COLOR_CHARACTERISTIC_UUID = "69400002-b5a3-f393-e0a9-e50e24dcca99"

SACN_UNIVERSE_MIN = 1
SACN_UNIVERSE_MAX = 63999

_MAC_PATTERN = re.compile(r"^[0-9A-F]{2}(:[0-9A-F]{2}){5}$")


def normalize_device_id(value: str) -> str:
    """
    Canonicalise a device identifier.

    Linux and Windows report hardware addresses (AA:BB:CC:DD:EE:FF),
    macOS reports a per-host UUID. Both are upper-cased.
    """
    candidate = value.strip().upper()
    if len(candidate) == 17:
        candidate = candidate.replace("-", ":")
    if _MAC_PATTERN.match(candidate):
        return candidate
    try:
        return str(uuid.UUID(value.strip())).upper()
    except ValueError:
        raise ValueError(f"not a Bluetooth address or device UUID: {value!r}") from None


class SacnConfig(BaseModel):
    """sACN receive configuration."""
    bind_address: str = "0.0.0.0"
    interface: str = "0.0.0.0"  # Local interface used for multicast joins
    port: int = 5568
    idle_timeout_s: float = 1.0
    receive_buffer_size: int = 1024


class TimingConfig(BaseModel):
    """Per-fixture loop pacing."""
    discovery_poll_s: float = 0.5
    discovery_max_age_s: float = 30.0  # Forget advertisements older than this
    write_interval_s: float = 0.05
    stale_after_s: float = 10.0  # Re-send colour after this long without a write
    connect_timeout_s: float = 10.0
    liveness_interval_s: float = 1.0


class BleConfig(BaseModel):
    """Bluetooth transport configuration."""
    characteristic_uuid: str = COLOR_CHARACTERISTIC_UUID
    adapter: Optional[str] = None  # None = platform default (e.g. "hci0")

    @field_validator("characteristic_uuid")
    @classmethod
    def _check_uuid(cls, value: str) -> str:
        return str(uuid.UUID(value))


class LightConfig(BaseModel):
    """A single BLE fixture and the DMX window it listens to."""
    id: str
    universe: int = Field(ge=SACN_UNIVERSE_MIN, le=SACN_UNIVERSE_MAX)
    address: int = Field(ge=DMX_CHANNEL_MIN, le=DMX_CHANNEL_MAX - RGB_WIDTH + 1)  # 1-based
    name: Optional[str] = None

    class Config:
        frozen = True

    @field_validator("id")
    @classmethod
    def _check_id(cls, value: str) -> str:
        return normalize_device_id(value)

    @property
    def label(self) -> str:
        return self.name or self.id


class Settings(BaseSettings):
    """
    Main application settings.

    Can be configured via:
    - Environment variables (prefixed with SACN_BLE_)
    - YAML or JSON config file
    - Direct instantiation
    """

    sacn: SacnConfig = Field(default_factory=SacnConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    ble: BleConfig = Field(default_factory=BleConfig)

    lights: List[LightConfig] = Field(default_factory=list)

    # Debug
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_prefix = "SACN_BLE_"
        env_nested_delimiter = "__"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value!r}")
        return level

    def effective_log_level(self) -> int:
        """Numeric level for structlog; ``debug`` wins over ``log_level``."""
        if self.debug:
            return logging.DEBUG
        return logging.getLevelName(self.log_level)

    def universes(self) -> List[int]:
        """Distinct universes referenced by configured lights, sorted."""
        return sorted({light.universe for light in self.lights})

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        return cls._from_data(data, path)

    @classmethod
    def from_json(cls, path: Path) -> "Settings":
        """
        Load settings from a JSON file.

        A bare list is read as the light list, so the older
        ``[{"id": ..., "universe": ..., "address": ...}]`` layout still works.
        """
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        return cls._from_data(data, path)

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a JSON or YAML file, chosen by suffix."""
        path = Path(path)
        if path.suffix == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)

    @classmethod
    def _from_data(cls, data: Any, path: Path) -> "Settings":
        if data is None:
            data = {}
        if isinstance(data, list):
            data = {"lights": data}
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping or a list of lights")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e


def light_summary(lights: List[LightConfig]) -> List[Dict[str, Any]]:
    """Flatten light configs for structured logging."""
    return [
        {"id": light.id, "universe": light.universe, "address": light.address}
        for light in lights
    ]
