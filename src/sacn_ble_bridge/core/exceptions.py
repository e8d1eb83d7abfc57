"""
Custom Exceptions for the sACN to BLE bridge.

Provides a hierarchy of exceptions for the receive path, the fixture
connections and configuration, so each loop can tell a recoverable
transport glitch from a fatal startup problem.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


# =============================================================================
# sACN Errors
# =============================================================================


class SacnError(BridgeError):
    """Base exception for sACN receive errors."""
    pass


class SacnDecodeError(SacnError):
    """A packet passed the structural checks but could not be decoded."""

    def __init__(self, reason: str):
        super().__init__(f"sACN decode error: {reason}", recoverable=True)
        self.reason = reason


class SacnTruncatedError(SacnDecodeError):
    """Declared DMX payload length runs past the end of the datagram."""

    def __init__(self, declared: int, available: int):
        super().__init__(
            f"declared {declared} property values but only {available} bytes present"
        )
        self.declared = declared
        self.available = available


class SacnSocketError(SacnError):
    """Failed to bind the receive socket or join a multicast group."""

    def __init__(self, address: str, reason: str):
        super().__init__(
            f"sACN socket error on {address}: {reason}",
            recoverable=False
        )
        self.address = address
        self.reason = reason


# =============================================================================
# Light Errors
# =============================================================================


class LightError(BridgeError):
    """Base exception for BLE fixture errors."""

    def __init__(self, light_id: str, message: str):
        super().__init__(message, recoverable=True)
        self.light_id = light_id


class LightConnectionError(LightError):
    """Failed to connect to a fixture or resolve its services."""

    def __init__(self, light_id: str, reason: str):
        super().__init__(light_id, f"Failed to connect to light {light_id}: {reason}")
        self.reason = reason


class CharacteristicNotFoundError(LightConnectionError):
    """Connected device does not expose the colour characteristic."""

    def __init__(self, light_id: str, characteristic: str):
        super().__init__(light_id, f"characteristic {characteristic} not found")
        self.characteristic = characteristic


class LightWriteError(LightError):
    """Colour write failed or the link was found to be down."""

    def __init__(self, light_id: str, reason: str):
        super().__init__(light_id, f"Write to light {light_id} failed: {reason}")
        self.reason = reason


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(BridgeError):
    """Base exception for configuration errors."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=False)


class LightConfigError(ConfigError):
    """Invalid light definition."""

    def __init__(self, light_id: Optional[str], reason: str):
        label = light_id or "<unnamed>"
        super().__init__(f"Light config error '{label}': {reason}")
        self.light_id = light_id
