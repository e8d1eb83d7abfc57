"""
Light Connection: per-fixture BLE link and colour writer.

Each configured fixture gets one LightConnection running its own loop:

    DISCONNECTED --(advertisement seen)--> CONNECTING
    CONNECTING   --(connect + characteristic found)--> CONNECTED
    CONNECTING   --(any failure)--> DISCONNECTED
    CONNECTED    --(write failure / link lost)--> DISCONNECTED

The routing task only touches the colour/dirty cell through
``set_color_rgb``; the BLE client is owned by the fixture's own loop.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Callable, Optional, Protocol

import structlog
from bleak import BleakClient
from bleak.exc import BleakError

from sacn_ble_bridge.core.config import COLOR_CHARACTERISTIC_UUID, LightConfig, TimingConfig
from sacn_ble_bridge.core.exceptions import (
    CharacteristicNotFoundError,
    LightConnectionError,
    LightError,
    LightWriteError,
)
from sacn_ble_bridge.core.state import BridgeStatus, ConnectionState, DesiredColor, DirtyState
from sacn_ble_bridge.light.command import encode_rgb

logger = structlog.get_logger()

# Errors a BLE transport call may raise; all of them mean "drop and retry".
TRANSPORT_ERRORS = (BleakError, asyncio.TimeoutError, OSError)


class DeviceFinder(Protocol):
    def find(self, device_id: str) -> Optional[Any]: ...


class LightConnection:
    """
    Keeps one BLE fixture connected and in sync with its desired colour.

    Writes are sequential: only ``run``/``tick`` write, and a write is
    always awaited before the next tick. A newer colour arriving during
    a write is sent on the following tick.
    """

    def __init__(
        self,
        config: LightConfig,
        discovery: DeviceFinder,
        characteristic_uuid: str = COLOR_CHARACTERISTIC_UUID,
        timing: Optional[TimingConfig] = None,
        status: Optional[BridgeStatus] = None,
        client_factory: Callable[..., Any] = BleakClient,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.discovery = discovery
        self.characteristic_uuid = characteristic_uuid
        self.timing = timing or TimingConfig()
        self.status = status or BridgeStatus()
        self._client_factory = client_factory

        # Colour/dirty cell shared with the routing task
        self._lock = threading.Lock()
        self._color = DesiredColor()
        self._dirty = DirtyState(self.timing.stale_after_s, clock)

        # Owned by this fixture's loop only
        self._client: Any = None
        self._characteristic: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._searching = False

        self.stats = self.status.register_light(self.id)

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def universe(self) -> int:
        return self.config.universe

    @property
    def address(self) -> int:
        return self.config.address

    @property
    def label(self) -> str:
        return self.config.label

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def color(self) -> DesiredColor:
        with self._lock:
            return self._color

    def set_color_rgb(self, red: int, green: int, blue: int) -> bool:
        """Update the desired colour. Returns False when it was unchanged."""
        color = DesiredColor(red, green, blue)
        with self._lock:
            if color == self._color:
                return False
            self._color = color
            self._dirty.mark_dirty()
        return True

    def is_dirty(self) -> bool:
        with self._lock:
            return self._dirty.is_dirty()

    def is_connected(self) -> bool:
        return (
            self._state is ConnectionState.CONNECTED
            and self._client is not None
            and bool(self._client.is_connected)
        )

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        self.status.set_light_status(self.id, state)

    def _on_disconnected(self, client: Any) -> None:
        # Called by bleak; the loop notices via is_connected on its next tick.
        logger.info("Light link lost", light=self.label)

    async def connect(self, device: Any) -> None:
        """
        Connect to an advertised device and resolve the colour characteristic.

        Raises:
            LightConnectionError: connect or service discovery failed; the
                connection is back in DISCONNECTED with no client held.
        """
        self._set_state(ConnectionState.CONNECTING)
        logger.info("Connecting to light", light=self.label, address=self.id)

        timeout = self.timing.connect_timeout_s
        client = self._client_factory(
            device,
            disconnected_callback=self._on_disconnected,
            timeout=timeout,
        )
        self._client = client

        try:
            await asyncio.wait_for(client.connect(), timeout=timeout)
            characteristic = client.services.get_characteristic(self.characteristic_uuid)
            if characteristic is None:
                raise CharacteristicNotFoundError(self.id, self.characteristic_uuid)
        except CharacteristicNotFoundError:
            await self._drop_client()
            raise
        except TRANSPORT_ERRORS as e:
            await self._drop_client()
            raise LightConnectionError(self.id, str(e) or type(e).__name__) from e

        self._characteristic = characteristic
        with self._lock:
            # A fresh link has no colour on it yet
            self._dirty.mark_dirty()
        self._searching = False
        self._set_state(ConnectionState.CONNECTED)
        logger.info("Light connected", light=self.label)

    async def send_color(self) -> bool:
        """
        Write the desired colour if it is due.

        Returns True when a write was performed, False when nothing was due.

        Raises:
            LightWriteError: not connected, link lost, or the write failed;
                the connection is back in DISCONNECTED.
        """
        if self._client is None:
            raise LightWriteError(self.id, "no connection")
        if not self._client.is_connected:
            await self._drop_client()
            raise LightWriteError(self.id, "device not connected")

        with self._lock:
            if not self._dirty.is_dirty():
                return False
            color = self._color

        payload = encode_rgb(*color)
        try:
            await self._client.write_gatt_char(self._characteristic, payload, response=False)
        except TRANSPORT_ERRORS as e:
            await self._drop_client()
            raise LightWriteError(self.id, str(e) or type(e).__name__) from e

        with self._lock:
            self._dirty.mark_clean()
            if self._color != color:
                self._dirty.mark_dirty()
        self.stats.writes.increment()
        self.status.writes.increment()
        logger.debug("Colour written", light=self.label, rgb=tuple(color), payload=payload.hex())
        return True

    async def tick(self) -> float:
        """
        Run one scheduling step and return the delay before the next one.

        Every failure is contained here; nothing propagates to the caller.
        """
        try:
            if self._client is None:
                return await self._search()
            await self.send_color()
            return self.timing.write_interval_s
        except LightError as e:
            self.stats.failures.increment()
            logger.warning("Light transport failure", light=self.label, error=e.message)
        except Exception:
            self.stats.failures.increment()
            logger.exception("Unexpected light loop error", light=self.label)
            await self._drop_client()
        return self.timing.discovery_poll_s

    async def _search(self) -> float:
        if not self._searching:
            self._searching = True
            logger.info("Looking for light", light=self.label, address=self.id)

        device = self.discovery.find(self.id)
        if device is None:
            return self.timing.discovery_poll_s

        logger.info("Found light", light=self.label, name=getattr(device, "name", None))
        await self.connect(device)
        return self.timing.write_interval_s

    async def run(self, stop: asyncio.Event) -> None:
        """Supervise this fixture until ``stop`` is set."""
        logger.debug("Light loop started", light=self.label)
        while not stop.is_set():
            delay = await self.tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        logger.debug("Light loop stopped", light=self.label)

    async def disconnect(self) -> None:
        """Best-effort disconnect; transport errors are discarded."""
        if self._client is None:
            return
        logger.info("Disconnecting from light", light=self.label)
        await self._drop_client()

    async def _drop_client(self) -> None:
        client, self._client = self._client, None
        self._characteristic = None
        self._searching = False
        self._set_state(ConnectionState.DISCONNECTED)
        if client is None:
            return
        try:
            await client.disconnect()
        except TRANSPORT_ERRORS as e:
            logger.debug("Ignoring disconnect error", light=self.label, error=str(e))

    def get_stats(self) -> dict:
        """Get connection statistics."""
        with self._lock:
            since_write_s = self._dirty.since_clean()
        return {
            "since_write_s": since_write_s,
            "state": self._state.value,
            "color": tuple(self.color),
            "writes": self.stats.writes.total,
            "failures": self.stats.failures.total,
            "packets": self.stats.packets.total,
        }
