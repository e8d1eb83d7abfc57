"""
sACN (E1.31) data packet codec and transmitter.

Only the DMX data packet is handled: root vector 0x00000004, framing
vector 0x00000002, DMP vector 0x02. Synchronization and discovery
packets share the multicast groups and are filtered out by
``is_dmx_data_packet``.
"""

from __future__ import annotations

import socket
import struct
import uuid
from dataclasses import dataclass

from sacn_ble_bridge.core.exceptions import SacnDecodeError, SacnTruncatedError
from sacn_ble_bridge.dmx.universe import (
    DMX_CHANNEL_COUNT,
    DMX_START_CODE,
    DMX_UNIVERSE_SIZE,
    extract_channel_payload,
)

SACN_PORT = 5568
ACN_PACKET_IDENTIFIER = b"ASC-E1.17\x00\x00\x00"

VECTOR_ROOT_E131_DATA = 0x00000004
VECTOR_E131_DATA_PACKET = 0x00000002
VECTOR_DMP_SET_PROPERTY = 0x02

MIN_PACKET_LENGTH = 38
HEADER_LENGTH = 126  # Up to and including the DMX start code
SOURCE_NAME_LENGTH = 64
DEFAULT_PRIORITY = 100

OPTION_PREVIEW_DATA = 0x80
OPTION_STREAM_TERMINATED = 0x40

# Byte offsets within a data packet
_OFFSET_ACN_PID = 4
_OFFSET_ROOT_VECTOR = 18
_OFFSET_CID = 22
_OFFSET_FRAMING_VECTOR = 40
_OFFSET_SOURCE_NAME = 44
_OFFSET_PRIORITY = 108
_OFFSET_SEQUENCE = 111
_OFFSET_OPTIONS = 112
_OFFSET_UNIVERSE = 113
_OFFSET_DMP_VECTOR = 117
_OFFSET_PROPERTY_COUNT = 123
_OFFSET_PROPERTY_VALUES = 125

_ROOT_FLAGS_LENGTH = 16
_FRAMING_FLAGS_LENGTH = 38
_DMP_FLAGS_LENGTH = 115


@dataclass(frozen=True)
class DmxFrame:
    """One decoded DMX data packet."""

    universe: int
    sequence: int
    priority: int
    options: int
    source_name: str
    cid: bytes
    start_code: int
    channels: bytes

    @property
    def preview_data(self) -> bool:
        return bool(self.options & OPTION_PREVIEW_DATA)

    @property
    def stream_terminated(self) -> bool:
        return bool(self.options & OPTION_STREAM_TERMINATED)


def multicast_group(universe: int) -> str:
    """Return the E1.31 multicast group for a universe."""
    return f"239.255.{(universe >> 8) & 0xFF}.{universe & 0xFF}"


def is_dmx_data_packet(data: bytes) -> bool:
    """
    Structural check for an E1.31 DMX data packet.

    Non-matching datagrams are routine on the multicast groups, so this
    returns False rather than raising.
    """
    if len(data) < MIN_PACKET_LENGTH:
        return False
    if data[_OFFSET_ACN_PID:_OFFSET_ACN_PID + len(ACN_PACKET_IDENTIFIER)] != ACN_PACKET_IDENTIFIER:
        return False
    (root_vector,) = struct.unpack_from(">I", data, _OFFSET_ROOT_VECTOR)
    if root_vector != VECTOR_ROOT_E131_DATA:
        return False
    if len(data) < HEADER_LENGTH:
        return False
    (framing_vector,) = struct.unpack_from(">I", data, _OFFSET_FRAMING_VECTOR)
    if framing_vector != VECTOR_E131_DATA_PACKET:
        return False
    return data[_OFFSET_DMP_VECTOR] == VECTOR_DMP_SET_PROPERTY


def decode(data: bytes) -> DmxFrame:
    """
    Decode a packet that passed ``is_dmx_data_packet``.

    Raises:
        SacnTruncatedError: declared property count exceeds the datagram.
        SacnDecodeError: property count is larger than a DMX universe.
    """
    if len(data) < _OFFSET_PROPERTY_VALUES:
        raise SacnTruncatedError(0, len(data))

    (count,) = struct.unpack_from(">H", data, _OFFSET_PROPERTY_COUNT)
    available = len(data) - _OFFSET_PROPERTY_VALUES
    if count > available:
        raise SacnTruncatedError(count, available)
    if count > DMX_UNIVERSE_SIZE:
        raise SacnDecodeError(f"property value count {count} exceeds {DMX_UNIVERSE_SIZE}")

    values = bytes(data[_OFFSET_PROPERTY_VALUES:_OFFSET_PROPERTY_VALUES + count])
    raw_name = data[_OFFSET_SOURCE_NAME:_OFFSET_SOURCE_NAME + SOURCE_NAME_LENGTH]
    (universe,) = struct.unpack_from(">H", data, _OFFSET_UNIVERSE)

    return DmxFrame(
        universe=universe,
        sequence=data[_OFFSET_SEQUENCE],
        priority=data[_OFFSET_PRIORITY],
        options=data[_OFFSET_OPTIONS],
        source_name=bytes(raw_name).rstrip(b"\x00").decode("utf-8", errors="replace"),
        cid=bytes(data[_OFFSET_CID:_OFFSET_CID + 16]),
        start_code=values[0] if values else DMX_START_CODE,
        channels=extract_channel_payload(values),
    )


def build_dmx_data_packet(
    universe: int,
    channels: bytes,
    sequence: int = 0,
    priority: int = DEFAULT_PRIORITY,
    source_name: str = "sacn-ble-bridge",
    cid: bytes | None = None,
    options: int = 0,
) -> bytes:
    """
    Build an E1.31 DMX data packet.

    Expects up to 512 channels of slot data without the DMX start code.
    """
    if len(channels) > DMX_CHANNEL_COUNT:
        raise ValueError(f"DMX payload too large: {len(channels)} bytes")
    if cid is None:
        cid = uuid.uuid4().bytes
    if len(cid) != 16:
        raise ValueError("CID must be 16 bytes")

    name = source_name.encode("utf-8")[:SOURCE_NAME_LENGTH - 1]
    values = bytes([DMX_START_CODE]) + bytes(channels)
    total = _OFFSET_PROPERTY_VALUES + len(values)

    packet = bytearray()
    # Root layer
    packet.extend(struct.pack(">HH", 0x0010, 0x0000))
    packet.extend(ACN_PACKET_IDENTIFIER)
    packet.extend(struct.pack(">H", 0x7000 | (total - _ROOT_FLAGS_LENGTH)))
    packet.extend(struct.pack(">I", VECTOR_ROOT_E131_DATA))
    packet.extend(cid)
    # Framing layer
    packet.extend(struct.pack(">H", 0x7000 | (total - _FRAMING_FLAGS_LENGTH)))
    packet.extend(struct.pack(">I", VECTOR_E131_DATA_PACKET))
    packet.extend(name.ljust(SOURCE_NAME_LENGTH, b"\x00"))
    packet.append(priority & 0xFF)
    packet.extend(struct.pack(">H", 0))  # Synchronization address
    packet.append(sequence & 0xFF)
    packet.append(options & 0xFF)
    packet.extend(struct.pack(">H", universe & 0xFFFF))
    # DMP layer
    packet.extend(struct.pack(">H", 0x7000 | (total - _DMP_FLAGS_LENGTH)))
    packet.append(VECTOR_DMP_SET_PROPERTY)
    packet.append(0xA1)  # Address type & data type
    packet.extend(struct.pack(">HHH", 0x0000, 0x0001, len(values)))
    packet.extend(values)
    return bytes(packet)


class SacnTransmitter:
    """UDP multicast sender for sACN DMX packets."""

    def __init__(
        self,
        port: int = SACN_PORT,
        ttl: int = 1,
        source_name: str = "sacn-ble-bridge",
    ):
        self.port = port
        self.ttl = ttl
        self.source_name = source_name
        self.cid = uuid.uuid4().bytes
        self._socket: socket.socket | None = None
        self._sequence: dict[int, int] = {}

    def open(self) -> None:
        if self._socket is not None:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.ttl)
        self._socket = sock

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def send_dmx(self, universe: int, channels: bytes) -> None:
        if self._socket is None:
            raise RuntimeError("SacnTransmitter is not open")
        sequence = self._sequence.get(universe, 0)
        packet = build_dmx_data_packet(
            universe=universe,
            channels=channels,
            sequence=sequence,
            source_name=self.source_name,
            cid=self.cid,
        )
        self._sequence[universe] = (sequence + 1) & 0xFF
        self._socket.sendto(packet, (multicast_group(universe), self.port))
