"""Topic tables mapping bus topic names onto device data points."""

from __future__ import annotations

from tuyabridge.core.errors import UnsupportedTopic
from tuyabridge.core.model import ColorType, DeviceConfig, DeviceType, TopicSpec, ValueType
from tuyabridge.core.transform import (
    color_temp_transform,
    expression_transform,
    linear_transform,
    white_brightness_transform,
)

DEFAULT_SWITCH_DPS = 1
DEFAULT_DIMMER_BRIGHTNESS_DPS = 2
DEFAULT_DIMMER_SCALE = 255

_COLOR_TYPES = (ValueType.COLOR, ValueType.HEX, ValueType.PREDEFINED_COLOR)


def _rgbtw_light_topics(config: DeviceConfig) -> list[TopicSpec]:
    color_type = config.color_type or ColorType.HSB
    topics = [
        TopicSpec("state", config.dps_power, ValueType.BOOL),
        TopicSpec(
            "white_brightness_state",
            config.dps_white_value,
            ValueType.INT,
            public_range=(0, 100),
            transform=white_brightness_transform(config.white_value_scale or 255),
            mode="white",
        ),
        TopicSpec("hs_state", config.dps_color, ValueType.COLOR, components=("h", "s"), color_type=color_type),
        TopicSpec(
            "color_brightness_state", config.dps_color, ValueType.COLOR, components=("b",), color_type=color_type
        ),
        TopicSpec(
            "hsb_state", config.dps_color, ValueType.COLOR, components=("h", "s", "b"), color_type=color_type
        ),
        TopicSpec("hex_state", config.dps_color, ValueType.HEX, components=("h", "s", "b"), color_type=color_type),
        TopicSpec(
            "predefined_color_state",
            config.dps_color,
            ValueType.PREDEFINED_COLOR,
            components=("h", "s", "b"),
            color_type=color_type,
        ),
        TopicSpec("predefined_scene_state", config.dps_scene, ValueType.PREDEFINED_SCENE, mode="scene"),
        TopicSpec("mode_state", config.dps_mode, ValueType.STR),
    ]
    if config.dps_color_temp:
        topics.append(
            TopicSpec(
                "color_temp_state",
                config.dps_color_temp,
                ValueType.INT,
                public_range=(config.min_color_temp, config.max_color_temp),
                transform=color_temp_transform(
                    config.min_color_temp,
                    config.max_color_temp,
                    config.color_temp_scale or 255,
                ),
                mode="white",
            )
        )
    return topics


def _simple_switch_topics(config: DeviceConfig) -> list[TopicSpec]:
    return [TopicSpec("state", config.dps_power or DEFAULT_SWITCH_DPS, ValueType.BOOL)]


def _simple_dimmer_topics(config: DeviceConfig) -> list[TopicSpec]:
    return [
        TopicSpec("state", config.dps_power or DEFAULT_SWITCH_DPS, ValueType.BOOL),
        TopicSpec(
            "brightness_state",
            config.dps_brightness or DEFAULT_DIMMER_BRIGHTNESS_DPS,
            ValueType.INT,
            public_range=(0, 100),
            transform=linear_transform(config.brightness_scale or DEFAULT_DIMMER_SCALE),
        ),
    ]


def _generic_topics(config: DeviceConfig) -> list[TopicSpec]:
    topics: list[TopicSpec] = []
    for name, item in config.template.items():
        public_range = None
        if item.topic_min is not None and item.topic_max is not None:
            public_range = (item.topic_min, item.topic_max)
        transform = None
        if item.type is ValueType.INT:
            transform = expression_transform(item.state_math, item.command_math, public_range=public_range)
        topics.append(
            TopicSpec(
                name,
                item.key,
                item.type,
                public_range=public_range,
                transform=transform,
                components=("h", "s", "b") if item.type in _COLOR_TYPES else (),
                color_type=ColorType.HSB if item.type in _COLOR_TYPES else None,
            )
        )
    return topics


_BUILDERS = {
    DeviceType.RGBTW_LIGHT: _rgbtw_light_topics,
    DeviceType.SIMPLE_SWITCH: _simple_switch_topics,
    DeviceType.SIMPLE_DIMMER: _simple_dimmer_topics,
    DeviceType.GENERIC: _generic_topics,
}


def build_topic_specs(config: DeviceConfig) -> dict[str, TopicSpec]:
    """Build the topic table for ``config``; topics without a DPS key are left out."""
    return {spec.name: spec for spec in _BUILDERS[config.device_type](config) if spec.dps_key}


def lookup(specs: dict[str, TopicSpec], name: str) -> TopicSpec:
    spec = specs.get(name)
    if spec is None:
        available = ", ".join(sorted(specs))
        raise UnsupportedTopic(f"Topic '{name}' not supported. Available: {available}")
    return spec
