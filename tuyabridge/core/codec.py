"""Color and scene encoding for Tuya-style lights.

Two native color layouts are in use, told apart by payload length:

* ``hsb`` (12 hex chars): ``HHHH SSSS BBBB``, hue 0-360, saturation and
  brightness 0-1000.
* ``hsbhex`` (14 hex chars): ``RRGGBB HHHH SS BB``, an RGB prefix followed by
  hue 0-360, saturation and brightness 0-255.

Public values are always hue 0-360, saturation 0-100, brightness 0-100.
"""

from __future__ import annotations

import colorsys
import logging
import re
from collections.abc import Sequence
from typing import Generic, TypeVar, Union

from tuyabridge.core.errors import ColorDecodeError, UnknownSelector
from tuyabridge.core.model import ColorEntry, ColorType, Hsb, SceneEntry

LOGGER = logging.getLogger(__name__)

_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")

PREDEFINED_COLORS: tuple[ColorEntry, ...] = (
    ColorEntry("red", "#FF0000"),
    ColorEntry("maroon", "#800000"),
    ColorEntry("yellow", "#FFFF00"),
    ColorEntry("olive", "#808000"),
    ColorEntry("lime", "#00FF00"),
    ColorEntry("green", "#008000"),
    ColorEntry("aqua", "#00FFFF"),
    ColorEntry("teal", "#008080"),
    ColorEntry("blue", "#0000FF"),
    ColorEntry("navy", "#000080"),
    ColorEntry("fuchsia", "#FF00FF"),
    ColorEntry("purple", "#800080"),
)

# Scene codes are firmware payloads and are passed through untouched.
PREDEFINED_SCENES: tuple[SceneEntry, ...] = (
    SceneEntry("night", "000e0d0000000000000000c803e8"),
    SceneEntry("read", "010e0d0000000000000003e803e8"),
    SceneEntry("working", "020e0d0000000000000003e803e8"),
    SceneEntry("leisure", "030e0d0000000000000001f403e8"),
    SceneEntry("soft", "04464602007803e803e800000000464602007803e8000a00000000"),
    SceneEntry(
        "colorful",
        "05464601000003e803e800000000464601007803e803e80000000046460100f003e803e800000000"
        "464601003d03e803e80000000046460100ae03e803e800000000464601011303e803e800000000",
    ),
    SceneEntry(
        "dazzling",
        "06464601000003e803e800000000464601007803e803e80000000046460100f003e803e800000000",
    ),
    SceneEntry(
        "gorgeous",
        "07464602000003e803e800000000464602007803e803e80000000046460200f003e803e800000000"
        "464602003d03e803e80000000046460200ae03e803e800000000464602011303e803e800000000",
    ),
)

DEFAULT_COLOR = "red"
DEFAULT_SCENE = "night"

_PAYLOAD_LENGTH = {ColorType.HSB: 12, ColorType.HSBHEX: 14}


def _clamp(value: float, low: int, high: int) -> int:
    return int(max(low, min(high, round(value))))


def decode_color(native: str, color_type: ColorType) -> Hsb:
    payload = str(native).strip().lower()
    if len(payload) < _PAYLOAD_LENGTH[color_type]:
        raise ColorDecodeError(
            f"Color payload '{native}' too short for {color_type.value} "
            f"(expected {_PAYLOAD_LENGTH[color_type]} hex chars)"
        )
    try:
        if color_type is ColorType.HSBHEX:
            h = int(payload[6:10], 16)
            s = int(payload[10:12], 16) / 2.55
            b = int(payload[12:14], 16) / 2.55
        else:
            h = int(payload[0:4], 16)
            s = int(payload[4:8], 16) / 10
            b = int(payload[8:12], 16) / 10
    except ValueError as exc:
        raise ColorDecodeError(f"Color payload '{native}' is not hex") from exc
    return Hsb(h=_clamp(h, 0, 360), s=_clamp(s, 0, 100), b=_clamp(b, 0, 100))


def encode_color(hsb: Hsb, color_type: ColorType) -> str:
    h = _clamp(hsb.h, 0, 360)
    s = _clamp(hsb.s, 0, 100)
    b = _clamp(hsb.b, 0, 100)
    if color_type is ColorType.HSBHEX:
        rgb = hsb_to_hex(Hsb(h, s, b))[1:].lower()
        return f"{rgb}{h:04x}{round(s * 2.55):02x}{round(b * 2.55):02x}"
    return f"{h:04x}{s * 10:04x}{b * 10:04x}"


def hex_to_hsb(value: str) -> Hsb:
    match = _HEX_COLOR_RE.match(value.strip())
    if not match:
        raise ColorDecodeError(f"'{value}' is not a #RRGGBB color")
    raw = bytes.fromhex(match.group(1))
    h, s, v = colorsys.rgb_to_hsv(raw[0] / 255.0, raw[1] / 255.0, raw[2] / 255.0)
    return Hsb(h=_clamp(h * 360, 0, 360), s=_clamp(s * 100, 0, 100), b=_clamp(v * 100, 0, 100))


def hsb_to_hex(hsb: Hsb) -> str:
    r, g, b = colorsys.hsv_to_rgb((hsb.h % 360) / 360.0, hsb.s / 100.0, hsb.b / 100.0)
    return "#{:02X}{:02X}{:02X}".format(round(r * 255), round(g * 255), round(b * 255))


Entry = TypeVar("Entry", bound=Union[ColorEntry, SceneEntry])


class NamedCursor(Generic[Entry]):
    """Circular cursor over a fixed, ordered catalog of named entries."""

    def __init__(self, entries: Sequence[Entry], current: str, *, kind: str) -> None:
        if not entries:
            raise ValueError(f"{kind} catalog must not be empty")
        self._entries = tuple(entries)
        self._kind = kind
        self._index = self._index_of(current)
        if self._index is None:
            raise ValueError(f"Unknown default {kind} '{current}'")

    @property
    def entries(self) -> tuple[Entry, ...]:
        return self._entries

    @property
    def current(self) -> Entry:
        return self._entries[self._index]

    def _index_of(self, name: str) -> int | None:
        for index, entry in enumerate(self._entries):
            if entry.name == name:
                return index
        return None

    def peek(self, token: str) -> Entry:
        """Entry a name or ``next``/``prev`` would select, without moving.

        Unknown names fall back to ``next`` so a bad selector still moves to
        the closest available entry instead of failing the command.
        """
        token = token.strip()
        if token == "next":
            return self._entries[(self._index + 1) % len(self._entries)]
        if token == "prev":
            return self._entries[(self._index - 1) % len(self._entries)]
        index = self._index_of(token)
        if index is None:
            LOGGER.warning("%s, using next", UnknownSelector(f"Unknown {self._kind} '{token}'"))
            return self.peek("next")
        return self._entries[index]

    def select(self, entry: Entry) -> Entry:
        index = self._index_of(entry.name)
        if index is None:
            raise ValueError(f"'{entry.name}' is not a {self._kind} in this catalog")
        self._index = index
        LOGGER.debug("Selected %s '%s'", self._kind, entry.name)
        return entry

    def resolve(self, token: str) -> Entry:
        return self.select(self.peek(token))

    def find_by_value(self, value: str) -> Entry | None:
        for index, entry in enumerate(self._entries):
            payload = entry.hex if isinstance(entry, ColorEntry) else entry.code
            if payload.lower() == str(value).lower():
                self._index = index
                return entry
        return None


def color_cursor(current: str = DEFAULT_COLOR) -> NamedCursor[ColorEntry]:
    return NamedCursor(PREDEFINED_COLORS, current, kind="color")


def scene_cursor(current: str = DEFAULT_SCENE) -> NamedCursor[SceneEntry]:
    return NamedCursor(PREDEFINED_SCENES, current, kind="scene")
