"""
Vendor colour command for the BLE fixtures.

Wire layout (8 bytes, written without response):

    0x78 0x86 0x04 hue_lo hue_hi saturation brightness checksum

The checksum is the 8-bit wraparound sum of the first seven bytes. The
device silently ignores anything else, so the layout is fixed.
"""

from __future__ import annotations

from sacn_ble_bridge.light.color import rgb_to_hsv

COMMAND_PREFIX = bytes([0x78, 0x86, 0x04])
COMMAND_LENGTH = 8


def checksum(data: bytes) -> int:
    """8-bit wraparound sum."""
    return sum(data) & 0xFF


def encode(hue: int, saturation: int, brightness: int) -> bytes:
    """Build the colour command from an HSV triple."""
    if not 0 <= hue <= 0xFFFF:
        raise ValueError(f"hue out of range: {hue}")
    if not 0 <= saturation <= 0xFF:
        raise ValueError(f"saturation out of range: {saturation}")
    if not 0 <= brightness <= 0xFF:
        raise ValueError(f"brightness out of range: {brightness}")

    body = COMMAND_PREFIX + bytes([hue & 0xFF, (hue >> 8) & 0xFF, saturation, brightness])
    return body + bytes([checksum(body)])


def encode_rgb(red: int, green: int, blue: int) -> bytes:
    return encode(*rgb_to_hsv(red, green, blue))
