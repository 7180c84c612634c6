"""Stable public API for building tooling on top of tuyabridge.

This module is the supported integration surface for third-party callers: a
bus adapter (MQTT client) and a device RPC client plug into `Client.create_bridge`.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from tuyabridge.core.codec import PREDEFINED_COLORS, PREDEFINED_SCENES
from tuyabridge.core.config_loader import load_config
from tuyabridge.core.device import TuyaDevice
from tuyabridge.core.dispatcher import Bridge, RPCFactory
from tuyabridge.core.errors import (
    BridgeError,
    ColorDecodeError,
    CommandError,
    ConfigLoadError,
    ConfigValidationError,
    DeviceNotActive,
    DeviceRPCError,
    DeviceSelectionError,
    ExpressionError,
    ProbeInconclusive,
    TransformOutOfRange,
    UnknownSelector,
    UnsupportedTopic,
)
from tuyabridge.core.model import (
    BridgeConfig,
    ColorEntry,
    ColorType,
    CommandResult,
    DeviceConfig,
    DeviceState,
    DeviceType,
    Hsb,
    SceneEntry,
    TopicSpec,
    ValueType,
)
from tuyabridge.core.registry import lookup
from tuyabridge.transports.base import BusPublisher, DeviceRPC

__all__ = [
    "BridgeError",
    "ColorDecodeError",
    "CommandError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceNotActive",
    "DeviceRPCError",
    "DeviceSelectionError",
    "ExpressionError",
    "ProbeInconclusive",
    "TransformOutOfRange",
    "UnknownSelector",
    "UnsupportedTopic",
    "BridgeConfig",
    "ColorEntry",
    "ColorType",
    "CommandResult",
    "DeviceConfig",
    "DeviceState",
    "DeviceType",
    "Hsb",
    "SceneEntry",
    "TopicSpec",
    "ValueType",
    "Bridge",
    "BusPublisher",
    "DeviceRPC",
    "RPCFactory",
    "TuyaDevice",
    "Client",
]


class _OfflineTransport:
    """Stands in for the bus and device when inspecting a config offline."""

    async def get(self, dps: int) -> Any:
        return None

    async def set(self, dps: int, value: Any) -> Any:
        raise DeviceRPCError("Offline: no device connection")

    async def publish(self, topic: str, payload: str, *, qos: int = 1, retain: bool = False) -> None:
        return None


class Client:
    """Public client for inspecting a config and building a bridge from it.

    The offline helpers (`topic_table`, `discovery`, `to_device`,
    `to_public`) run the same translation code as a live bridge, without
    any device or bus connection.
    """

    def __init__(self, config: BridgeConfig | None = None, *, config_path: Path | None = None) -> None:
        self.config = config if config is not None else load_config(config_path)

    @property
    def devices(self) -> tuple[DeviceConfig, ...]:
        return self.config.devices

    def device(self, hint: str) -> DeviceConfig:
        lowered = hint.lower()
        for device in self.config.devices:
            if device.id == hint or (device.name and device.name.lower() == lowered):
                return device
        known = ", ".join(device.id for device in self.config.devices)
        raise DeviceSelectionError(f"No device '{hint}' in config. Known: {known}")

    def _offline_device(self, hint: str) -> TuyaDevice:
        offline = _OfflineTransport()
        device = TuyaDevice(self.device(hint), offline, offline, self.config)
        if not device.needs_probe:
            device.configure()
        return device

    def topic_table(self, hint: str) -> dict[str, TopicSpec]:
        """Topic table for a device; empty when its layout is only known after probing."""
        return self._offline_device(hint).topics

    def discovery(self, hint: str) -> tuple[str, dict[str, Any]] | None:
        device = self._offline_device(hint)
        if device.needs_probe:
            raise DeviceSelectionError(
                f"Device '{hint}' has no DPS mapping; its discovery document is built after probing"
            )
        return device.discovery_descriptor()

    def to_device(self, hint: str, topic: str, payload: str) -> dict[int, Any]:
        """DPS writes a command payload on ``topic`` would produce."""
        device = self._offline_device(hint)
        return device.translate_command(lookup(device.topics, topic), payload)

    def to_public(self, hint: str, topic: str, native: Any) -> str | None:
        """State payload a device value on ``topic`` would publish."""
        device = self._offline_device(hint)
        spec = lookup(device.topics, topic)
        device.dps[spec.dps_key] = native
        return device.state_payload(spec)

    def colors(self) -> tuple[ColorEntry, ...]:
        return PREDEFINED_COLORS

    def scenes(self) -> tuple[SceneEntry, ...]:
        return PREDEFINED_SCENES

    def create_bridge(self, bus: BusPublisher, rpc_factory: RPCFactory) -> Bridge:
        return Bridge(self.config, bus, rpc_factory)
