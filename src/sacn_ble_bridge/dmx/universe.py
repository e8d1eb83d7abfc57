"""Canonical DMX universe sizing and indexing helpers."""

from __future__ import annotations

from typing import Optional, Tuple

DMX_START_CODE = 0x00
DMX_CHANNEL_COUNT = 512
DMX_CHANNEL_MIN = 1
DMX_CHANNEL_MAX = DMX_CHANNEL_COUNT
DMX_UNIVERSE_SIZE = DMX_CHANNEL_COUNT + 1

RGB_WIDTH = 3


def is_valid_dmx_channel(channel: int) -> bool:
    """Return True when a channel index is a valid 1-based DMX slot."""
    return DMX_CHANNEL_MIN <= channel <= DMX_CHANNEL_MAX


def extract_channel_payload(property_values: bytes) -> bytes:
    """Return the channel slots from start code + channel data."""
    return property_values[1:DMX_UNIVERSE_SIZE]


def rgb_window(channels: bytes, start_address: int) -> Optional[Tuple[int, int, int]]:
    """
    Read the R, G, B slots starting at a 1-based DMX address.

    Returns None when the window does not fit in the frame, which is
    normal for sources that send short universes.
    """
    if not is_valid_dmx_channel(start_address):
        return None
    index = start_address - DMX_CHANNEL_MIN
    if index + RGB_WIDTH > len(channels):
        return None
    return channels[index], channels[index + 1], channels[index + 2]
