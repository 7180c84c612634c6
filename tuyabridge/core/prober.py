"""Detect the DPS layout of an RGBTW light that has no explicit mapping."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from tuyabridge.core.errors import DeviceRPCError, ProbeInconclusive
from tuyabridge.core.model import ColorType
from tuyabridge.transports.base import DeviceRPC

LOGGER = logging.getLogger(__name__)

LOW_INDEX_FAMILY: dict[str, Any] = {
    "dps_power": 1,
    "dps_mode": 2,
    "dps_white_value": 3,
    "white_value_scale": 255,
    "dps_color_temp": 4,
    "color_temp_scale": 255,
    "dps_color": 5,
    "dps_scene": 0,
}

HIGH_INDEX_FAMILY: dict[str, Any] = {
    "dps_power": 20,
    "dps_mode": 21,
    "dps_white_value": 22,
    "white_value_scale": 1000,
    "dps_color_temp": 23,
    "color_temp_scale": 1000,
    "dps_color": 24,
    "dps_scene": 25,
}


def looks_like_light_mode(value: Any) -> bool:
    if value is None or value == "":
        return False
    return value in ("white", "colour") or "scene" in str(value)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


async def _read_optional(rpc: DeviceRPC, dps: int, timeout_s: float) -> Any:
    """Read a DPS, treating timeouts and RPC failures as an absent value."""
    try:
        return await asyncio.wait_for(rpc.get(dps), timeout_s)
    except asyncio.TimeoutError:
        LOGGER.debug("Probe of DPS %s timed out", dps)
    except DeviceRPCError as exc:
        LOGGER.debug("Probe of DPS %s failed: %s", dps, exc)
    return None


async def _read_required(rpc: DeviceRPC, dps: int, timeout_s: float) -> Any:
    try:
        return await asyncio.wait_for(rpc.get(dps), timeout_s)
    except asyncio.TimeoutError as exc:
        raise ProbeInconclusive(f"Timed out reading DPS {dps}") from exc
    except DeviceRPCError as exc:
        LOGGER.debug("Probe of DPS %s failed: %s", dps, exc)
        return None


async def probe_light_config(rpc: DeviceRPC, *, timeout_s: float = 5.0) -> dict[str, Any]:
    """Guess DPS indices, scales and color format of a color bulb.

    Returns the fields to merge into the device config. Raises
    ``ProbeInconclusive`` when neither mode DPS looks like a light.
    """
    LOGGER.debug("Attempting to detect light capabilities, querying DPS 2 and 21")
    mode_low, mode_high = await asyncio.gather(
        _read_optional(rpc, 2, timeout_s),
        _read_optional(rpc, 21, timeout_s),
    )

    if looks_like_light_mode(mode_low):
        LOGGER.debug("Detected likely color bulb at DPS 1-5")
        guess = dict(LOW_INDEX_FAMILY)
    elif looks_like_light_mode(mode_high):
        LOGGER.debug("Detected likely color bulb at DPS 20-25")
        guess = dict(HIGH_INDEX_FAMILY)
    else:
        raise ProbeInconclusive(f"No light mode found at DPS 2 ({mode_low!r}) or DPS 21 ({mode_high!r})")

    color_temp = _as_number(await _read_required(rpc, guess["dps_color_temp"], timeout_s))
    if color_temp is not None and 0 <= color_temp <= guess["color_temp_scale"]:
        LOGGER.debug("Detected likely color temperature support")
    else:
        LOGGER.debug("No color temperature support detected")
        guess["dps_color_temp"] = 0

    color = await _read_required(rpc, guess["dps_color"], timeout_s)
    length = len(str(color)) if color else 0
    if guess["dps_power"] == LOW_INDEX_FAMILY["dps_power"]:
        guess["color_type"] = ColorType.HSB if length == 12 else ColorType.HSBHEX
    else:
        guess["color_type"] = ColorType.HSBHEX if length == 14 else ColorType.HSB
    LOGGER.debug("Detected color format %s", guess["color_type"].value.upper())
    return guess
