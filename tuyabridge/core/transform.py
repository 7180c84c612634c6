"""Value transforms between public topic units and device-native units."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tuyabridge.core.errors import TransformOutOfRange
from tuyabridge.core.expression import Node, parse_expression

LOGGER = logging.getLogger(__name__)

# Lights on the 0-255 scale time out below 25 (~10%).
WHITE_VALUE_FLOOR_255 = 25


def _clamp(value: float, bounds: tuple[float, float] | None) -> float:
    if bounds is None:
        return value
    low, high = bounds
    return max(low, min(high, value))


@dataclass(frozen=True)
class Transform:
    """A pair of inverse expressions plus the ranges they operate on.

    ``state_expr`` converts a device value into public units, ``command_expr``
    converts a public value into a device value.
    """

    state_expr: Node
    command_expr: Node
    public_range: tuple[float, float] | None = None
    native_range: tuple[float, float] | None = None

    def encode(self, public: float) -> int:
        clamped = _clamp(public, self.public_range)
        if clamped != public:
            error = TransformOutOfRange(f"Value {public} outside {self.public_range}")
            LOGGER.warning("%s, clamped to %s", error, clamped)
        native = self.command_expr.evaluate(clamped)
        return int(round(_clamp(native, self.native_range)))

    def decode(self, native: float) -> int:
        public = self.state_expr.evaluate(native)
        return int(round(_clamp(public, self.public_range)))


def expression_transform(
    state_math: str | None,
    command_math: str | None,
    *,
    constants: dict[str, float] | None = None,
    public_range: tuple[float, float] | None = None,
    native_range: tuple[float, float] | None = None,
) -> Transform:
    """Build a transform from user expressions; a missing side is identity."""
    return Transform(
        state_expr=parse_expression(state_math or "x", constants),
        command_expr=parse_expression(command_math or "x", constants),
        public_range=public_range,
        native_range=native_range,
    )


def white_brightness_transform(scale: int) -> Transform:
    if scale == 255:
        return expression_transform(
            "(x-floor)/2.3",
            "x*2.3+floor",
            constants={"floor": WHITE_VALUE_FLOOR_255},
            public_range=(0, 100),
            native_range=(WHITE_VALUE_FLOOR_255, 255),
        )
    return linear_transform(scale)


def linear_transform(scale: int) -> Transform:
    """Map 0-100 onto 0-``scale``."""
    return expression_transform(
        "x/scale_factor",
        "x*scale_factor",
        constants={"scale_factor": scale / 100},
        public_range=(0, 100),
        native_range=(0, scale),
    )


def color_temp_transform(min_mireds: int, max_mireds: int, scale: int) -> Transform:
    """Map the mired range onto 0-``scale``, warmest (max mireds) at 0."""
    range_factor = (max_mireds - min_mireds) / 100
    scale_factor = scale / 100
    return expression_transform(
        "x/scale_factor*-range_factor+max_mireds",
        "x/range_factor*-scale_factor+native_max",
        constants={
            "range_factor": range_factor,
            "scale_factor": scale_factor,
            "max_mireds": max_mireds,
            "native_max": max_mireds / range_factor * scale_factor,
        },
        public_range=(min_mireds, max_mireds),
        native_range=(0, scale),
    )
