"""DMX transport helpers."""

from sacn_ble_bridge.dmx.receiver import SacnReceiver
from sacn_ble_bridge.dmx.sacn import (
    SACN_PORT,
    DmxFrame,
    SacnTransmitter,
    build_dmx_data_packet,
    decode,
    is_dmx_data_packet,
    multicast_group,
)
from sacn_ble_bridge.dmx.universe import (
    DMX_CHANNEL_COUNT,
    DMX_CHANNEL_MAX,
    DMX_CHANNEL_MIN,
    DMX_UNIVERSE_SIZE,
    extract_channel_payload,
    is_valid_dmx_channel,
    rgb_window,
)

__all__ = [
    "SACN_PORT",
    "DmxFrame",
    "SacnReceiver",
    "SacnTransmitter",
    "build_dmx_data_packet",
    "decode",
    "is_dmx_data_packet",
    "multicast_group",
    "DMX_CHANNEL_COUNT",
    "DMX_CHANNEL_MIN",
    "DMX_CHANNEL_MAX",
    "DMX_UNIVERSE_SIZE",
    "extract_channel_payload",
    "is_valid_dmx_channel",
    "rgb_window",
]
