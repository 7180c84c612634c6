"""Collaborator interfaces."""

from __future__ import annotations

from typing import Any, Protocol


class DeviceRPC(Protocol):
    async def get(self, dps: int) -> Any:
        """Read one DPS; ``None`` or ``""`` means the value is absent."""

    async def set(self, dps: int, value: Any) -> Any:
        """Write one DPS, raising ``DeviceRPCError`` on failure."""


class BusPublisher(Protocol):
    async def publish(self, topic: str, payload: str, *, qos: int = 1, retain: bool = False) -> None:
        """Publish a payload on the message bus."""
