"""
Command-Line Interface for the sACN to BLE bridge.

Provides commands for running the bridge, listing nearby BLE devices
and sending test frames.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from collections import Counter
from pathlib import Path
from typing import Optional, Tuple

import click
import structlog
from bleak.exc import BleakError

from sacn_ble_bridge import __version__
from sacn_ble_bridge.core.config import Settings
from sacn_ble_bridge.core.exceptions import BridgeError, ConfigError, LightConfigError

logger = structlog.get_logger()


def _load_settings(config_path: Optional[Path]) -> Settings:
    if config_path:
        return Settings.from_file(config_path)
    return Settings()


def _configure_logging(level: int) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def _validate_startup_config(settings: Settings) -> None:
    """Reject configurations the bridge cannot run with."""
    if not settings.lights:
        raise ConfigError("No lights configured")

    duplicates = [
        light_id
        for light_id, count in Counter(light.id for light in settings.lights).items()
        if count > 1
    ]
    if duplicates:
        raise LightConfigError(duplicates[0], "configured more than once")


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to configuration file (YAML or JSON)",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, config: Optional[str]) -> None:
    """
    sACN BLE Bridge - drive Bluetooth-LE RGB lamps from sACN (E1.31)

    Each configured lamp reads three consecutive DMX channels (R, G, B)
    from its universe and is kept connected independently.
    """
    ctx.ensure_object(dict)

    # Configure logging; a config file may change the level in `run`
    _configure_logging(logging.DEBUG if debug else logging.INFO)

    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config) if config else None


async def _run_bridge(settings: Settings) -> None:
    from sacn_ble_bridge.bridge.controller import BridgeController

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: Ctrl+C cancels the main task and run() cleans up
            pass

    controller = BridgeController(settings)
    await controller.run(stop)


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run the bridge until interrupted."""
    click.echo(f"sACN BLE Bridge v{__version__}")
    click.echo("=" * 50)

    try:
        settings = _load_settings(ctx.obj["config_path"])
        settings.debug = settings.debug or ctx.obj["debug"]
        _validate_startup_config(settings)
    except ConfigError as e:
        click.echo(f"Config error: {e.message}", err=True)
        sys.exit(2)

    _configure_logging(settings.effective_log_level())

    click.echo(f"Lights: {len(settings.lights)}")
    click.echo(f"Universes: {', '.join(str(u) for u in settings.universes())}")
    click.echo("Press Ctrl+C to stop.")
    click.echo()

    try:
        asyncio.run(_run_bridge(settings))
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    except BridgeError as e:
        click.echo(f"Error: {e.message}", err=True)
        if settings.debug:
            raise
        sys.exit(1)
    except BleakError as e:
        click.echo(f"Bluetooth error: {e}", err=True)
        if settings.debug:
            raise
        sys.exit(1)


@cli.command()
@click.option("--timeout", "-t", default=5.0, help="Scan duration in seconds")
@click.pass_context
def scan(ctx: click.Context, timeout: float) -> None:
    """List nearby named BLE devices and their addresses."""
    from sacn_ble_bridge.light.discovery import DeviceDiscovery

    try:
        settings = _load_settings(ctx.obj["config_path"])
    except ConfigError as e:
        click.echo(f"Config error: {e.message}", err=True)
        sys.exit(2)

    click.echo(f"Scanning for {timeout:.0f}s...")
    try:
        devices = asyncio.run(DeviceDiscovery.scan(timeout=timeout, adapter=settings.ble.adapter))
    except (BleakError, OSError) as e:
        click.echo(f"Bluetooth error: {e}", err=True)
        sys.exit(1)

    for name, address in devices:
        click.echo(f"  {name} -> {address}")
    if not devices:
        click.echo("  (no named devices found)")


@cli.command()
@click.option("--universe", "-u", type=int, required=True, help="sACN universe (1-63999)")
@click.option("--address", "-a", type=int, default=1, help="Start address (1-510)")
@click.option("--rgb", type=(int, int, int), required=True, help="Red Green Blue (0-255)")
@click.option("--count", "-n", default=40, help="Number of frames to send")
@click.option("--interval", default=0.025, help="Seconds between frames")
@click.pass_context
def sacn_test(
    ctx: click.Context,
    universe: int,
    address: int,
    rgb: Tuple[int, int, int],
    count: int,
    interval: float,
) -> None:
    """Multicast a test colour on a universe."""
    from sacn_ble_bridge.dmx.sacn import SacnTransmitter

    if not 1 <= universe <= 63999:
        click.echo("Error: Universe must be 1-63999", err=True)
        sys.exit(1)

    if not 1 <= address <= 510:
        click.echo("Error: Address must be 1-510", err=True)
        sys.exit(1)

    if not all(0 <= value <= 255 for value in rgb):
        click.echo("Error: Values must be 0-255", err=True)
        sys.exit(1)

    channels = bytearray(address + 2)
    channels[address - 1:address + 2] = bytes(rgb)

    transmitter = SacnTransmitter()
    click.echo(f"Sending {rgb} to universe {universe} address {address}...")
    try:
        transmitter.open()
        for _ in range(count):
            transmitter.send_dmx(universe, bytes(channels))
            time.sleep(interval)
    except KeyboardInterrupt:
        pass
    finally:
        transmitter.close()


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
