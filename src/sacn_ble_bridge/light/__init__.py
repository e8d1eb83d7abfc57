"""BLE fixture side: colour conversion, command framing, discovery and connections."""

from sacn_ble_bridge.light.color import rgb_to_hsv
from sacn_ble_bridge.light.command import checksum, encode, encode_rgb
from sacn_ble_bridge.light.connection import LightConnection
from sacn_ble_bridge.light.discovery import DeviceDiscovery

__all__ = [
    "rgb_to_hsv",
    "checksum",
    "encode",
    "encode_rgb",
    "LightConnection",
    "DeviceDiscovery",
]
