"""Core data models used across registry, codec, device, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tuyabridge.core.transform import Transform


class DeviceType(str, Enum):
    RGBTW_LIGHT = "rgbtw_light"
    SIMPLE_SWITCH = "simple_switch"
    SIMPLE_DIMMER = "simple_dimmer"
    GENERIC = "generic"


class ColorType(str, Enum):
    HSB = "hsb"
    HSBHEX = "hsbhex"


class ValueType(str, Enum):
    BOOL = "bool"
    INT = "int"
    STR = "str"
    HEX = "hex"
    COLOR = "color"
    PREDEFINED_COLOR = "predefined_color"
    PREDEFINED_SCENE = "predefined_scene"


class DeviceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    PROBING = "probing"
    CONFIGURED = "configured"
    ACTIVE = "active"


@dataclass(frozen=True)
class TemplateTopic:
    key: int
    type: ValueType
    topic_min: float | None = None
    topic_max: float | None = None
    state_math: str | None = None
    command_math: str | None = None


@dataclass(frozen=True)
class DeviceConfig:
    id: str
    name: str | None = None
    device_type: DeviceType = DeviceType.GENERIC
    ip: str | None = None
    local_key: str | None = None
    protocol_version: str | None = None
    dps_power: int = 0
    dps_mode: int = 0
    dps_white_value: int = 0
    white_value_scale: int = 0
    dps_color_temp: int = 0
    color_temp_scale: int = 0
    min_color_temp: int = 154
    max_color_temp: int = 400
    dps_color: int = 0
    color_type: ColorType | None = None
    dps_scene: int = 0
    dps_brightness: int = 0
    brightness_scale: int = 0
    template: dict[str, TemplateTopic] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class BridgeConfig:
    topic: str = "tuya/"
    qos: int = 1
    retain: bool = False
    use_home_assistant: bool = False
    use_device_topic: bool = False
    settle_delay_s: float = 1.0
    probe_timeout_s: float = 5.0
    republish_rounds: int = 2
    republish_delay_s: float = 30.0
    devices: tuple[DeviceConfig, ...] = ()


@dataclass(frozen=True)
class TopicSpec:
    name: str
    dps_key: int
    value_type: ValueType
    public_range: tuple[float, float] | None = None
    transform: Transform | None = None
    components: tuple[str, ...] = ()
    color_type: ColorType | None = None
    mode: str | None = None


@dataclass(frozen=True)
class Hsb:
    h: int
    s: int
    b: int

    def component(self, name: str) -> int:
        return getattr(self, name)


@dataclass(frozen=True)
class ColorEntry:
    name: str
    hex: str


@dataclass(frozen=True)
class SceneEntry:
    name: str
    code: str


@dataclass(frozen=True)
class CommandResult:
    """DPS writes produced by one translated command."""

    topic: str
    writes: dict[int, Any]
