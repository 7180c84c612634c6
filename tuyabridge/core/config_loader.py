"""Config loading and validation for the YAML bridge config."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from tuyabridge.core.errors import ConfigLoadError, ConfigValidationError
from tuyabridge.core.model import (
    BridgeConfig,
    ColorType,
    DeviceConfig,
    DeviceType,
    TemplateTopic,
    ValueType,
)
from tuyabridge.core.registry import build_topic_specs

CONFIG_ENV = "TUYABRIDGE_CONFIG"
_VERBATIM_KEYS = frozenset({"id", "local_key"})
LOGGER = logging.getLogger(__name__)

_DEVICE_INT_FIELDS = (
    "dps_power",
    "dps_mode",
    "dps_white_value",
    "white_value_scale",
    "dps_color_temp",
    "color_temp_scale",
    "min_color_temp",
    "max_color_temp",
    "dps_color",
    "dps_scene",
    "dps_brightness",
    "brightness_scale",
)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Keep on/off/yes/no as strings; real booleans go through _normalize_bool.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        if key in _VERBATIM_KEYS and isinstance(value_node, yaml.ScalarNode):
            # Device ids like 0123 stay text instead of becoming (octal) ints.
            mapping[key] = loader.construct_scalar(value_node)
            continue
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("tuyabridge.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "tuyabridge/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigValidationError(f"{context} must be boolean true/false")


def _build_template(doc: dict[str, Any]) -> dict[str, TemplateTopic]:
    return {
        name: TemplateTopic(
            key=int(item["key"]),
            type=ValueType(item["type"]),
            topic_min=item.get("topic_min"),
            topic_max=item.get("topic_max"),
            state_math=item.get("state_math"),
            command_math=item.get("command_math"),
        )
        for name, item in doc.items()
    }


def _build_device(doc: dict[str, Any]) -> DeviceConfig:
    context = f"devices.{doc['id']}"
    device_type = DeviceType(doc.get("type", "generic"))
    if device_type is DeviceType.GENERIC and not doc.get("template"):
        raise ConfigValidationError(f"{context}: generic devices need a 'template'")
    if "template" in doc and device_type is not DeviceType.GENERIC:
        raise ConfigValidationError(f"{context}: 'template' is only valid for generic devices")

    fields: dict[str, Any] = {key: int(doc[key]) for key in _DEVICE_INT_FIELDS if key in doc}
    version = doc.get("protocol_version")
    device = DeviceConfig(
        id=doc["id"],
        name=doc.get("name"),
        device_type=device_type,
        ip=doc.get("ip"),
        local_key=doc.get("local_key"),
        protocol_version=str(version) if version is not None else None,
        color_type=ColorType(doc["color_type"]) if "color_type" in doc else None,
        template=_build_template(doc.get("template", {})),
        **fields,
    )
    if device.min_color_temp >= device.max_color_temp:
        raise ConfigValidationError(f"{context}: min_color_temp must be below max_color_temp")
    for name, item in device.template.items():
        if (item.topic_min is None) != (item.topic_max is None):
            raise ConfigValidationError(f"{context}.template.{name}: set both topic_min and topic_max")
        if item.topic_min is not None and item.topic_min >= item.topic_max:
            raise ConfigValidationError(f"{context}.template.{name}: topic_min must be below topic_max")
    if device_type is not DeviceType.RGBTW_LIGHT or device.dps_power:
        # Compiles transform expressions now rather than at activation.
        build_topic_specs(device)
    return device


def build_config(doc: dict[str, Any], source: Path | str = "<config>") -> BridgeConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    devices = tuple(_build_device(item) for item in doc["devices"])
    seen: set[str] = set()
    for device in devices:
        if device.id in seen:
            raise ConfigValidationError(f"Duplicate device id '{device.id}' in {source}")
        seen.add(device.id)

    defaults = BridgeConfig()
    return BridgeConfig(
        topic=doc.get("topic", defaults.topic),
        qos=int(doc.get("qos", defaults.qos)),
        retain=_normalize_bool(doc.get("retain", defaults.retain), context="retain"),
        use_home_assistant=_normalize_bool(
            doc.get("use_home_assistant", defaults.use_home_assistant),
            context="use_home_assistant",
        ),
        use_device_topic=_normalize_bool(
            doc.get("use_device_topic", defaults.use_device_topic),
            context="use_device_topic",
        ),
        settle_delay_s=float(doc.get("settle_delay_s", defaults.settle_delay_s)),
        probe_timeout_s=float(doc.get("probe_timeout_s", defaults.probe_timeout_s)),
        republish_rounds=int(doc.get("republish_rounds", defaults.republish_rounds)),
        republish_delay_s=float(doc.get("republish_delay_s", defaults.republish_delay_s)),
        devices=devices,
    )


def load_config(path: Path | None = None) -> BridgeConfig:
    config_path = path or default_config_path()
    LOGGER.debug("Loading config from %s", config_path)
    return build_config(_read_yaml(config_path), config_path)
