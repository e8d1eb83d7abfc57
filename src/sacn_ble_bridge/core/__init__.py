"""Core system components for the sACN to BLE bridge."""

from sacn_ble_bridge.core.config import LightConfig, Settings
from sacn_ble_bridge.core.exceptions import (
    BridgeError,
    ConfigError,
    LightError,
    SacnDecodeError,
    SacnTruncatedError,
)
from sacn_ble_bridge.core.state import BridgeStatus, ConnectionState, DesiredColor, DirtyState

__all__ = [
    "LightConfig",
    "Settings",
    "BridgeError",
    "ConfigError",
    "LightError",
    "SacnDecodeError",
    "SacnTruncatedError",
    "BridgeStatus",
    "ConnectionState",
    "DesiredColor",
    "DirtyState",
]
