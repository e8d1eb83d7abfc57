"""Bridge orchestration."""

from sacn_ble_bridge.bridge.controller import BridgeController

__all__ = [
    "BridgeController",
]
