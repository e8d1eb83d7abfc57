from __future__ import annotations

import asyncio

from ble_fakes import FakeClientFactory, FakeDiscovery, FakeReceiver
from sacn_ble_bridge.bridge.controller import BridgeController
from sacn_ble_bridge.core.config import LightConfig, SacnConfig, Settings, TimingConfig
from sacn_ble_bridge.core.state import AppStatus, ConnectionState, SacnStatus
from sacn_ble_bridge.dmx.sacn import DmxFrame
from sacn_ble_bridge.light.command import encode_rgb

FIRST = "A4:C1:38:00:00:01"
SECOND = "A4:C1:38:00:00:02"
THIRD = "A4:C1:38:00:00:03"


def _frame(universe: int, channels: bytes) -> DmxFrame:
    return DmxFrame(
        universe=universe,
        sequence=0,
        priority=100,
        options=0,
        source_name="test",
        cid=bytes(16),
        start_code=0,
        channels=channels,
    )


def _settings(*lights: LightConfig) -> Settings:
    return Settings(
        lights=list(lights),
        sacn=SacnConfig(idle_timeout_s=0.05),
        timing=TimingConfig(
            discovery_poll_s=0.01,
            write_interval_s=0.005,
            connect_timeout_s=0.1,
            liveness_interval_s=0.02,
        ),
    )


def _controller(settings: Settings, factory: FakeClientFactory | None = None, discovery=None, receiver=None):
    return BridgeController(
        settings,
        receiver=receiver or FakeReceiver(),
        discovery=discovery or FakeDiscovery(),
        client_factory=factory or FakeClientFactory(),
    )


def test_universes_are_distinct_and_sorted() -> None:
    controller = _controller(
        _settings(
            LightConfig(id=FIRST, universe=7, address=1),
            LightConfig(id=SECOND, universe=2, address=1),
            LightConfig(id=THIRD, universe=7, address=4),
        )
    )
    assert controller.universes == [2, 7]


def test_route_slices_rgb_window_per_light() -> None:
    controller = _controller(
        _settings(
            LightConfig(id=FIRST, universe=1, address=1),
            LightConfig(id=SECOND, universe=1, address=4),
        )
    )

    routed = controller.route(_frame(1, bytes([10, 20, 30, 40, 50, 60])))

    assert routed == 2
    assert controller.lights[0].color == (10, 20, 30)
    assert controller.lights[1].color == (40, 50, 60)


def test_route_ignores_other_universes() -> None:
    controller = _controller(_settings(LightConfig(id=FIRST, universe=1, address=1)))

    assert controller.route(_frame(2, bytes([255, 255, 255]))) == 0
    assert controller.lights[0].color == (0, 0, 0)


def test_route_skips_only_lights_past_end_of_frame() -> None:
    controller = _controller(
        _settings(
            LightConfig(id=FIRST, universe=1, address=1),
            LightConfig(id=SECOND, universe=1, address=5),
            LightConfig(id=THIRD, universe=1, address=2),
        )
    )

    routed = controller.route(_frame(1, bytes([1, 2, 3, 4, 5, 6])))

    assert routed == 2
    assert controller.lights[0].color == (1, 2, 3)
    assert controller.lights[1].color == (0, 0, 0)
    assert controller.lights[2].color == (2, 3, 4)


def test_route_reads_last_slots_of_full_universe() -> None:
    controller = _controller(_settings(LightConfig(id=FIRST, universe=1, address=510)))
    channels = bytearray(512)
    channels[509:512] = bytes([7, 8, 9])

    assert controller.route(_frame(1, bytes(channels))) == 1
    assert controller.lights[0].color == (7, 8, 9)


def test_handle_frame_counts_packets() -> None:
    controller = _controller(_settings(LightConfig(id=FIRST, universe=1, address=1)))

    controller.handle_frame(_frame(1, bytes([1, 2, 3])))
    controller.handle_frame(_frame(1, bytes([1, 2, 3])))

    assert controller.status.packets.total == 2
    assert controller.lights[0].stats.packets.total == 2
    assert controller.status.sacn_status is SacnStatus.RECEIVING


def test_run_routes_writes_and_shuts_down_cleanly() -> None:
    settings = _settings(
        LightConfig(id=FIRST, universe=1, address=1),
        LightConfig(id=SECOND, universe=1, address=4),
    )
    factory = FakeClientFactory()
    discovery = FakeDiscovery({FIRST: "first-device"})

    async def scenario() -> BridgeController:
        receiver = FakeReceiver()
        controller = _controller(settings, factory, discovery, receiver)
        stop = asyncio.Event()
        task = asyncio.create_task(controller.run(stop))

        await receiver.queue.put(_frame(1, bytes([255, 0, 0, 0, 0, 255])))
        for _ in range(100):
            if factory.created and encode_rgb(255, 0, 0) in factory.created[0].writes:
                break
            await asyncio.sleep(0.01)

        # Idle timeout reports, but does not stop anything
        await asyncio.sleep(0.1)
        assert controller.status.sacn_status is SacnStatus.TIMEOUT
        assert controller.status.app_status is AppStatus.RUNNING

        stop.set()
        await asyncio.wait_for(task, timeout=2.0)
        return controller

    controller = asyncio.run(scenario())

    first, second = controller.lights
    assert encode_rgb(255, 0, 0) in factory.created[0].writes
    assert second.color == (0, 0, 255)
    assert second.state is ConnectionState.DISCONNECTED
    assert len(factory.created) == 1
    assert factory.created[0].disconnect_calls == 1
    assert first.state is ConnectionState.DISCONNECTED

    assert controller.receiver.opened and controller.receiver.closed
    assert discovery.started and discovery.stopped
    assert controller.status.app_status is AppStatus.STOPPED
    assert controller.status.sacn_status is SacnStatus.DISCONNECTED
    assert controller.status.shutdown_complete.is_set()


def test_failing_light_does_not_block_others() -> None:
    settings = _settings(
        LightConfig(id=FIRST, universe=1, address=1),
        LightConfig(id=SECOND, universe=1, address=4),
    )
    discovery = FakeDiscovery({FIRST: "first", SECOND: "second"})

    class PerDeviceFactory(FakeClientFactory):
        def __call__(self, device, **kwargs):
            client = super().__call__(device, **kwargs)
            client.fail_connect = device == "first"
            return client

    factory = PerDeviceFactory()

    async def scenario() -> BridgeController:
        controller = _controller(settings, factory, discovery)
        stop = asyncio.Event()
        task = asyncio.create_task(controller.run(stop))
        controller.route(_frame(1, bytes([0, 0, 0, 9, 9, 9])))
        await asyncio.sleep(0.2)
        stop.set()
        await asyncio.wait_for(task, timeout=2.0)
        return controller

    controller = asyncio.run(scenario())

    first, second = controller.lights
    assert first.stats.failures.total >= 2
    assert first.stats.writes.total == 0
    assert second.stats.writes.total >= 1
    second_clients = [c for c in factory.created if c.device == "second"]
    assert len(second_clients) == 1
    assert encode_rgb(9, 9, 9) in second_clients[0].writes


def test_route_ignores_alternate_start_codes() -> None:
    controller = _controller(_settings(LightConfig(id=FIRST, universe=1, address=1)))
    controller.route(_frame(1, bytes([255, 0, 0])))

    priority_frame = DmxFrame(
        universe=1,
        sequence=1,
        priority=100,
        options=0,
        source_name="test",
        cid=bytes(16),
        start_code=0xDD,
        channels=bytes([100, 100, 100]),
    )

    assert controller.route(priority_frame) == 0
    assert controller.lights[0].color == (255, 0, 0)


def test_default_discovery_watches_configured_lights() -> None:
    settings = _settings(
        LightConfig(id=FIRST, universe=1, address=1),
        LightConfig(id=SECOND, universe=2, address=1),
    )
    controller = BridgeController(settings, receiver=FakeReceiver(), client_factory=FakeClientFactory())

    assert controller.discovery.device_ids == {FIRST, SECOND}
    assert controller.discovery.max_age_s == settings.timing.discovery_max_age_s
