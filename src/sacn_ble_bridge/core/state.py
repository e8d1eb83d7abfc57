"""
State Definitions for the sACN to BLE bridge.

Holds the per-fixture colour/dirty cell and the status board that the
controller and every fixture loop publish to. A status UI only ever
reads ``BridgeStatus`` or subscribes to its events.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, NamedTuple

import structlog

from sacn_ble_bridge.core.counters import EventCounter

logger = structlog.get_logger()


class ConnectionState(Enum):
    """Connection state of one BLE fixture."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class AppStatus(Enum):
    STARTING = "starting"
    RUNNING = "running"
    EXITING = "exiting"
    STOPPED = "stopped"


class SacnStatus(Enum):
    WAITING = "waiting"
    RECEIVING = "receiving"
    TIMEOUT = "timeout"
    DISCONNECTED = "disconnected"


class DesiredColor(NamedTuple):
    red: int = 0
    green: int = 0
    blue: int = 0


class DirtyState:
    """
    Tracks whether a fixture still needs a colour write.

    A fixture is dirty when its colour changed since the last successful
    write, or when the last write is older than ``stale_after_s``. The
    second rule re-asserts the colour periodically because the device
    never acknowledges writes.
    """

    def __init__(
        self,
        stale_after_s: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_after_s = stale_after_s
        self._clock = clock
        self._dirty = True  # Never written yet
        self._last_clean = clock()

    def mark_dirty(self) -> None:
        self._dirty = True

    def mark_clean(self) -> None:
        self._dirty = False
        self._last_clean = self._clock()

    def since_clean(self) -> float:
        """Seconds since the last successful write (or since creation)."""
        return self._clock() - self._last_clean

    def is_dirty(self) -> bool:
        return self._dirty or self.since_clean() > self.stale_after_s


@dataclass(frozen=True)
class StatusEvent:
    """A single status change published by the bridge."""

    kind: str  # "app", "sacn" or "light"
    subject: str  # Light id for "light", otherwise the kind
    value: Enum
    timestamp: float = field(default_factory=time.time)


@dataclass
class LightStats:
    """Counters for one fixture."""

    packets: EventCounter = field(default_factory=EventCounter)
    writes: EventCounter = field(default_factory=EventCounter)
    failures: EventCounter = field(default_factory=EventCounter)


StatusListener = Callable[[StatusEvent], None]


class BridgeStatus:
    """
    Observable status board.

    Setters only publish when the value actually changes, so listeners
    see transitions rather than every packet.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: List[StatusListener] = []
        self.app_status = AppStatus.STARTING
        self.sacn_status = SacnStatus.WAITING
        self.light_status: Dict[str, ConnectionState] = {}
        self.packets = EventCounter()
        self.writes = EventCounter()
        self.lights: Dict[str, LightStats] = {}
        self.shutdown_complete = threading.Event()

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def register_light(self, light_id: str) -> LightStats:
        with self._lock:
            self.light_status.setdefault(light_id, ConnectionState.DISCONNECTED)
            return self.lights.setdefault(light_id, LightStats())

    def set_app_status(self, status: AppStatus) -> None:
        with self._lock:
            if self.app_status == status:
                return
            self.app_status = status
        self._publish(StatusEvent("app", "app", status))

    def set_sacn_status(self, status: SacnStatus) -> None:
        with self._lock:
            if self.sacn_status == status:
                return
            self.sacn_status = status
        self._publish(StatusEvent("sacn", "sacn", status))

    def set_light_status(self, light_id: str, status: ConnectionState) -> None:
        with self._lock:
            if self.light_status.get(light_id) == status:
                return
            self.light_status[light_id] = status
        self._publish(StatusEvent("light", light_id, status))

    def roll_counters(self) -> None:
        """Close the current counting interval on every counter that is due."""
        self.packets.roll()
        self.writes.roll()
        for stats in list(self.lights.values()):
            stats.packets.roll()
            stats.writes.roll()
            stats.failures.roll()

    def snapshot(self) -> dict:
        """Plain-data view for logging or a UI refresh."""
        with self._lock:
            return {
                "app": self.app_status.value,
                "sacn": self.sacn_status.value,
                "packets_total": self.packets.total,
                "writes_total": self.writes.total,
                "lights": {
                    light_id: {
                        "state": state.value,
                        "writes": self.lights[light_id].writes.total if light_id in self.lights else 0,
                    }
                    for light_id, state in self.light_status.items()
                },
            }

    def _publish(self, event: StatusEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Status listener failed", kind=event.kind, subject=event.subject)
