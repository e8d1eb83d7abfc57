"""sACN multicast receiver."""

from __future__ import annotations

import asyncio
import socket
from typing import Iterable, List, Optional

import structlog

from sacn_ble_bridge.core.exceptions import SacnDecodeError, SacnSocketError
from sacn_ble_bridge.dmx.sacn import SACN_PORT, DmxFrame, decode, is_dmx_data_packet, multicast_group

logger = structlog.get_logger()


class SacnReceiver:
    """
    Non-blocking UDP socket joined to one multicast group per universe.

    ``receive`` suspends on the event loop until a decodable DMX data
    packet arrives; everything else on the groups is skipped.
    """

    def __init__(
        self,
        universes: Iterable[int],
        port: int = SACN_PORT,
        bind_address: str = "0.0.0.0",
        interface: str = "0.0.0.0",
        buffer_size: int = 1024,
    ):
        self.universes: List[int] = sorted(set(universes))
        self.port = port
        self.bind_address = bind_address
        self.interface = interface
        self.buffer_size = buffer_size
        self._socket: Optional[socket.socket] = None
        self._joined: List[int] = []

        # Stats
        self._datagrams = 0
        self._ignored = 0
        self._dropped = 0

    @property
    def is_open(self) -> bool:
        return self._socket is not None

    def open(self) -> None:
        """Bind the socket and join every universe's multicast group."""
        if self._socket is not None:
            return

        address = f"{self.bind_address}:{self.port}"
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            sock.bind((self.bind_address, self.port))
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise SacnSocketError(address, str(e)) from e

        self._socket = sock
        for universe in self.universes:
            try:
                sock.setsockopt(
                    socket.IPPROTO_IP,
                    socket.IP_ADD_MEMBERSHIP,
                    self._membership(universe),
                )
            except OSError as e:
                self.close()
                raise SacnSocketError(multicast_group(universe), str(e)) from e
            self._joined.append(universe)

        logger.info(
            "sACN receiver listening",
            address=address,
            groups=[multicast_group(u) for u in self.universes],
        )

    def close(self) -> None:
        """Leave joined groups and close the socket. Errors are logged only."""
        if self._socket is None:
            return

        for universe in self._joined:
            try:
                self._socket.setsockopt(
                    socket.IPPROTO_IP,
                    socket.IP_DROP_MEMBERSHIP,
                    self._membership(universe),
                )
            except OSError as e:
                logger.debug("Leaving multicast group failed", group=multicast_group(universe), error=str(e))
        self._joined = []

        self._socket.close()
        self._socket = None
        logger.info("sACN receiver stopped", **self.get_stats())

    def _membership(self, universe: int) -> bytes:
        return socket.inet_aton(multicast_group(universe)) + socket.inet_aton(self.interface)

    async def receive(self) -> DmxFrame:
        """Wait for the next DMX data packet."""
        if self._socket is None:
            raise RuntimeError("SacnReceiver is not open")

        loop = asyncio.get_running_loop()
        while True:
            data = await loop.sock_recv(self._socket, self.buffer_size)
            frame = self.handle_datagram(data)
            if frame is not None:
                return frame

    def handle_datagram(self, data: bytes) -> Optional[DmxFrame]:
        """Filter and decode one datagram; None when it should be skipped."""
        self._datagrams += 1

        if not is_dmx_data_packet(data):
            self._ignored += 1
            return None

        try:
            return decode(data)
        except SacnDecodeError as e:
            self._dropped += 1
            logger.warning("Dropping malformed sACN packet", error=e.message, size=len(data))
            return None

    def get_stats(self) -> dict:
        """Get receive statistics."""
        return {
            "datagrams": self._datagrams,
            "ignored": self._ignored,
            "dropped": self._dropped,
        }
