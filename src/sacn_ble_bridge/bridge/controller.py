"""
Bridge Controller for the sACN to BLE bridge.

Owns the sACN receiver, the shared BLE discovery and one LightConnection
per configured fixture, and supervises their loops on a single asyncio
event loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import structlog
from bleak import BleakClient

from sacn_ble_bridge.core.config import Settings, light_summary
from sacn_ble_bridge.core.state import AppStatus, BridgeStatus, SacnStatus
from sacn_ble_bridge.dmx.receiver import SacnReceiver
from sacn_ble_bridge.dmx.sacn import DmxFrame
from sacn_ble_bridge.dmx.universe import DMX_START_CODE, rgb_window
from sacn_ble_bridge.light.connection import LightConnection
from sacn_ble_bridge.light.discovery import DeviceDiscovery

logger = structlog.get_logger()


class BridgeController:
    """
    Routes decoded DMX frames to fixtures and runs every concurrent loop.

    Tasks started by ``run``:
    - sACN receive + route
    - liveness timer (rolls counters, no control effect)
    - one ``LightConnection.run`` per fixture
    """

    def __init__(
        self,
        settings: Settings,
        receiver: Optional[Any] = None,
        discovery: Optional[Any] = None,
        status: Optional[BridgeStatus] = None,
        client_factory: Callable[..., Any] = BleakClient,
    ):
        self.settings = settings
        self.status = status or BridgeStatus()
        self.receiver = receiver or SacnReceiver(
            settings.universes(),
            port=settings.sacn.port,
            bind_address=settings.sacn.bind_address,
            interface=settings.sacn.interface,
            buffer_size=settings.sacn.receive_buffer_size,
        )
        self.discovery = discovery or DeviceDiscovery(
            device_ids=[light.id for light in settings.lights],
            adapter=settings.ble.adapter,
            max_age_s=settings.timing.discovery_max_age_s,
        )

        self.lights: List[LightConnection] = [
            LightConnection(
                light_config,
                self.discovery,
                characteristic_uuid=settings.ble.characteristic_uuid,
                timing=settings.timing,
                status=self.status,
                client_factory=client_factory,
            )
            for light_config in settings.lights
        ]

        self._by_universe: Dict[int, List[LightConnection]] = {}
        for light in self.lights:
            self._by_universe.setdefault(light.universe, []).append(light)

    @property
    def universes(self) -> List[int]:
        return sorted(self._by_universe)

    def route(self, frame: DmxFrame) -> int:
        """
        Push a frame's RGB windows to the fixtures on its universe.

        Returns the number of fixtures updated. A fixture whose window
        does not fit in the frame is skipped; the rest still get routed.
        Frames with an alternate start code (e.g. 0xDD per-address
        priority) carry no levels and are not routed.
        """
        if frame.start_code != DMX_START_CODE:
            logger.debug(
                "Skipping non-DMX start code",
                universe=frame.universe,
                start_code=hex(frame.start_code),
            )
            return 0

        routed = 0
        for light in self._by_universe.get(frame.universe, ()):
            rgb = rgb_window(frame.channels, light.address)
            if rgb is None:
                logger.debug(
                    "Frame too short for light",
                    light=light.label,
                    address=light.address,
                    channels=len(frame.channels),
                )
                continue
            light.stats.packets.increment()
            light.set_color_rgb(*rgb)
            routed += 1
        return routed

    def handle_frame(self, frame: DmxFrame) -> int:
        self.status.packets.increment()
        self.status.set_sacn_status(SacnStatus.RECEIVING)
        return self.route(frame)

    async def _receive_loop(self, stop: asyncio.Event) -> None:
        idle_timeout = self.settings.sacn.idle_timeout_s
        while not stop.is_set():
            try:
                frame = await asyncio.wait_for(self.receiver.receive(), timeout=idle_timeout)
            except asyncio.TimeoutError:
                # Sources may pause; this is only reported
                self.status.set_sacn_status(SacnStatus.TIMEOUT)
                continue
            except OSError as e:
                logger.warning("sACN receive failed", error=str(e))
                await asyncio.sleep(idle_timeout)
                continue
            self.handle_frame(frame)

    async def _liveness_loop(self, stop: asyncio.Event) -> None:
        interval = self.settings.timing.liveness_interval_s
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            self.status.roll_counters()
            history = self.status.packets.history
            logger.debug(
                "Bridge alive",
                sacn=self.status.sacn_status.value,
                packets_last_interval=history[-1] if history else 0,
                connected=sum(1 for light in self.lights if light.is_connected()),
            )

    async def start(self) -> None:
        """Open the receiver and start BLE discovery."""
        logger.info(
            "Starting bridge",
            universes=self.universes,
            lights=light_summary(self.settings.lights),
        )
        self.status.set_app_status(AppStatus.STARTING)
        self.receiver.open()
        try:
            await self.discovery.start()
        except Exception:
            self.receiver.close()
            raise

    async def run(self, stop: asyncio.Event) -> None:
        """Run every loop until ``stop`` is set, then shut down."""
        await self.start()
        self.status.set_app_status(AppStatus.RUNNING)

        receive_task = asyncio.create_task(self._receive_loop(stop), name="sacn-receive")
        tasks = [
            receive_task,
            asyncio.create_task(self._liveness_loop(stop), name="liveness"),
        ]
        tasks.extend(
            asyncio.create_task(light.run(stop), name=f"light-{light.id}")
            for light in self.lights
        )

        try:
            await stop.wait()
        finally:
            stop.set()
            self.status.set_app_status(AppStatus.EXITING)
            logger.info("Stopping bridge")
            receive_task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for task, result in zip(tasks, results):
                if isinstance(result, Exception):
                    logger.error("Task failed", task=task.get_name(), error=str(result))
            await self.shutdown()

    async def shutdown(self) -> None:
        """Best-effort disconnect of every fixture, then release the network."""
        results = await asyncio.gather(
            *(light.disconnect() for light in self.lights),
            return_exceptions=True,
        )
        for light, result in zip(self.lights, results):
            if isinstance(result, Exception):
                logger.debug("Ignoring shutdown error", light=light.label, error=str(result))

        self.receiver.close()
        self.status.set_sacn_status(SacnStatus.DISCONNECTED)
        await self.discovery.stop()

        self.status.set_app_status(AppStatus.STOPPED)
        self.status.shutdown_complete.set()
        logger.info("Bridge stopped", **self.status.snapshot())

    def get_stats(self) -> dict:
        return {
            "receiver": self.receiver.get_stats(),
            "lights": {light.id: light.get_stats() for light in self.lights},
        }
