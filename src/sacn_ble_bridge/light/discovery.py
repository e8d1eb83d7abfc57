"""
Shared BLE discovery.

One scanner runs for the whole process; each fixture loop polls
``find()`` with its own identifier instead of scanning on its own.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import structlog
from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

logger = structlog.get_logger()


class DeviceDiscovery:
    """
    Background scanner that remembers the last advertisement per address.

    Only the configured fixtures are kept, so the cache stays bounded no
    matter how many other devices advertise nearby. An advertisement
    older than ``max_age_s`` is forgotten and ``find`` returns None until
    the device is heard again.
    """

    def __init__(
        self,
        device_ids: Optional[Iterable[str]] = None,
        adapter: Optional[str] = None,
        max_age_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.device_ids = {device_id.upper() for device_id in device_ids or ()}
        self.adapter = adapter
        self.max_age_s = max_age_s
        self._clock = clock
        self._devices: Dict[str, Tuple[BLEDevice, float]] = {}
        self._scanner: Optional[BleakScanner] = None

    def _scanner_kwargs(self) -> Dict[str, Any]:
        return {"adapter": self.adapter} if self.adapter else {}

    async def start(self) -> None:
        """Start continuous scanning."""
        if self._scanner is not None:
            return
        self._scanner = BleakScanner(
            detection_callback=self._on_detection,
            **self._scanner_kwargs(),
        )
        await self._scanner.start()
        logger.info(
            "BLE discovery started",
            adapter=self.adapter or "default",
            watching=len(self.device_ids),
        )

    async def stop(self) -> None:
        """Stop scanning. Errors are logged only."""
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        try:
            await scanner.stop()
        except Exception as e:
            logger.debug("Stopping BLE scanner failed", error=str(e))
        logger.info("BLE discovery stopped", seen=len(self._devices))

    def _on_detection(self, device: BLEDevice, advertisement_data: AdvertisementData) -> None:
        address = device.address.upper()
        if address not in self.device_ids:
            return
        if address not in self._devices:
            logger.debug("BLE device seen", address=address, name=device.name)
        self._devices[address] = (device, self._clock())

    def find(self, device_id: str) -> Optional[BLEDevice]:
        """Return the most recent advertisement for ``device_id``, if still fresh."""
        address = device_id.upper()
        entry = self._devices.get(address)
        if entry is None:
            return None
        device, seen_at = entry
        if self._clock() - seen_at > self.max_age_s:
            del self._devices[address]
            logger.debug("BLE advertisement expired", address=address)
            return None
        return device

    @property
    def cached(self) -> int:
        """Number of advertisements currently held."""
        return len(self._devices)

    @staticmethod
    async def scan(timeout: float = 5.0, adapter: Optional[str] = None) -> List[Tuple[str, str]]:
        """One-shot scan returning (name, address) for named devices."""
        kwargs: Dict[str, Any] = {"adapter": adapter} if adapter else {}
        devices = await BleakScanner.discover(timeout=timeout, **kwargs)
        return sorted(
            (device.name, device.address)
            for device in devices
            if device.name
        )
