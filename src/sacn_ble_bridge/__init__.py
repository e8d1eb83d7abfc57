"""
sACN BLE Bridge: sACN (E1.31) to Bluetooth-LE RGB fixture bridge

Receives DMX over UDP multicast and keeps a set of BLE lamps in sync
with their RGB channels, reconnecting to each lamp independently as it
comes and goes.
"""

__version__ = "0.1.0"

from sacn_ble_bridge.core.config import LightConfig, Settings
from sacn_ble_bridge.core.state import BridgeStatus, ConnectionState

__all__ = [
    "LightConfig",
    "Settings",
    "BridgeStatus",
    "ConnectionState",
    "__version__",
]
