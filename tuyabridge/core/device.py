"""Device facade: topic translation, state publishing, and discovery."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from functools import partial
from typing import Any

from tuyabridge.core.codec import (
    color_cursor,
    decode_color,
    encode_color,
    hex_to_hsb,
    hsb_to_hex,
    scene_cursor,
)
from tuyabridge.core.errors import (
    ColorDecodeError,
    CommandError,
    DeviceNotActive,
    DeviceRPCError,
    ProbeInconclusive,
    UnsupportedTopic,
)
from tuyabridge.core.model import (
    BridgeConfig,
    ColorType,
    CommandResult,
    DeviceConfig,
    DeviceState,
    DeviceType,
    Hsb,
    TopicSpec,
    ValueType,
)
from tuyabridge.core.prober import probe_light_config
from tuyabridge.core.registry import build_topic_specs, lookup
from tuyabridge.transports.base import BusPublisher, DeviceRPC

LOGGER = logging.getLogger(__name__)

PAYLOAD_AVAILABLE = "online"
PAYLOAD_NOT_AVAILABLE = "offline"
DEFAULT_HSB = Hsb(h=0, s=0, b=100)

_TRUE_WORDS = {"on", "true", "1"}
_FALSE_WORDS = {"off", "false", "0"}
# MQTT wildcards and level separators are not allowed inside a topic level.
_TOPIC_UNSAFE_RE = re.compile(r"[\s+#/]")

_MODELS = {
    DeviceType.RGBTW_LIGHT: "RGBTW Light",
    DeviceType.SIMPLE_SWITCH: "Simple Switch",
    DeviceType.SIMPLE_DIMMER: "Simple Dimmer",
    DeviceType.GENERIC: "Generic Device",
}


def base_topic_for(config: DeviceConfig, bridge_config: BridgeConfig) -> str:
    prefix = bridge_config.topic if bridge_config.topic.endswith("/") else f"{bridge_config.topic}/"
    if bridge_config.use_device_topic or not config.name:
        return f"{prefix}{config.id}/"
    return f"{prefix}{_TOPIC_UNSAFE_RE.sub('_', config.name.lower())}/"


def state_topic_for(command_topic: str) -> str:
    """Map ``command``/``cmnd`` topics onto the state topic they drive."""
    if command_topic in ("command", "cmnd"):
        return "state"
    for suffix in ("_command", "_cmnd"):
        if command_topic.endswith(suffix):
            return command_topic[: -len(suffix)] + "_state"
    raise CommandError(f"'{command_topic}' is not a command topic")


def merge_probed(config: DeviceConfig, guess: Mapping[str, Any]) -> DeviceConfig:
    """Fill unset config fields from probe results; explicit settings win."""
    return replace(config, **{k: v for k, v in guess.items() if not getattr(config, k)})


def parse_raw_value(payload: str) -> Any:
    text = payload.strip()
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return int(text)
    except ValueError:
        return text


def _parse_bool(payload: str, current: Any) -> bool:
    word = payload.strip().lower()
    if word == "toggle":
        return not bool(current)
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise CommandError(f"'{payload}' is not an on/off value")


def _parse_number(payload: str) -> float:
    try:
        return float(payload.strip())
    except ValueError as exc:
        raise CommandError(f"'{payload}' is not a number") from exc


class TuyaDevice:
    """One bridged device, parameterized by its topic table."""

    def __init__(
        self,
        config: DeviceConfig,
        rpc: DeviceRPC,
        bus: BusPublisher,
        bridge_config: BridgeConfig | None = None,
    ) -> None:
        self.config = config
        self.rpc = rpc
        self.bus = bus
        self.bridge_config = bridge_config or BridgeConfig()
        self.base_topic = base_topic_for(config, self.bridge_config)
        self.state = DeviceState.UNINITIALIZED
        self.topics: dict[str, TopicSpec] = {}
        self.dps: dict[int, Any] = {}
        self.colors = color_cursor()
        self.scenes = scene_cursor()
        self.last_error: str | None = None
        self._command_lock = asyncio.Lock()

    @property
    def needs_probe(self) -> bool:
        return self.config.device_type is DeviceType.RGBTW_LIGHT and not self.config.dps_power

    @property
    def is_active(self) -> bool:
        return self.state is DeviceState.ACTIVE

    async def init(self) -> bool:
        """Probe if needed, advertise, then read and publish the initial state.

        Returns False when the light could not be identified; the device then
        stays uninitialized and registers no topics.
        """
        if self.needs_probe:
            self.state = DeviceState.PROBING
            try:
                guess = await probe_light_config(self.rpc, timeout_s=self.bridge_config.probe_timeout_s)
            except ProbeInconclusive as exc:
                LOGGER.error(
                    "Automatic detection of %s failed and no manual configuration: %s",
                    self.config.display_name,
                    exc,
                )
                self.state = DeviceState.UNINITIALIZED
                self.last_error = str(exc)
                return False
            self.config = merge_probed(self.config, guess)

        self.configure()
        await self.publish_discovery()
        await self.publish("LWT", PAYLOAD_AVAILABLE)
        if self.bridge_config.settle_delay_s:
            await asyncio.sleep(self.bridge_config.settle_delay_s)
        self.state = DeviceState.ACTIVE
        LOGGER.info("Device %s active on %s", self.config.display_name, self.base_topic)
        await self.refresh()
        return True

    def configure(self) -> None:
        self.topics = build_topic_specs(self.config)
        self.state = DeviceState.CONFIGURED
        LOGGER.debug("Topics for %s: %s", self.config.display_name, ", ".join(self.topics))

    # State path: device -> bus

    async def publish(self, suffix: str, payload: str) -> None:
        await self.bus.publish(
            f"{self.base_topic}{suffix}",
            payload,
            qos=self.bridge_config.qos,
            retain=self.bridge_config.retain,
        )

    async def refresh(self) -> None:
        """Read every DPS used by a topic and publish the result.

        Holds the command lock so a slow read cannot overwrite a newer write.
        """
        async with self._command_lock:
            for key in sorted({spec.dps_key for spec in self.topics.values()}):
                try:
                    value = await self.rpc.get(key)
                except DeviceRPCError as exc:
                    LOGGER.warning("Reading DPS %s of %s failed: %s", key, self.config.display_name, exc)
                    continue
                if value is None or value == "":
                    continue
                self.dps[key] = value
            await self.publish_states()

    async def update_dps(self, values: Mapping[Any, Any]) -> None:
        """Merge data pushed by the device and publish the affected topics."""
        changed = {int(key): value for key, value in values.items()}
        self.dps.update(changed)
        await self.publish_states(changed)

    def state_payload(self, spec: TopicSpec) -> str | None:
        value = self.dps.get(spec.dps_key)
        if value is None:
            return None
        try:
            if spec.value_type is ValueType.BOOL:
                return "ON" if value is True or str(value).lower() in _TRUE_WORDS else "OFF"
            if spec.value_type is ValueType.INT:
                number = float(value)
                if spec.transform is not None:
                    return str(spec.transform.decode(number))
                return str(int(round(number)))
            if spec.value_type is ValueType.STR:
                return str(value)
            if spec.value_type is ValueType.PREDEFINED_SCENE:
                entry = self.scenes.find_by_value(value)
                return (entry or self.scenes.current).name
            if spec.value_type is ValueType.PREDEFINED_COLOR:
                return self.colors.current.name
            hsb = decode_color(value, spec.color_type or ColorType.HSB)
        except (TypeError, ValueError) as exc:
            LOGGER.debug("DPS %s value %r unusable for %s: %s", spec.dps_key, value, spec.name, exc)
            return None
        except ColorDecodeError as exc:
            LOGGER.warning("%s: %s", spec.name, exc)
            return None
        if spec.value_type is ValueType.HEX:
            return hsb_to_hex(hsb)
        return ",".join(str(hsb.component(name)) for name in spec.components)

    async def publish_states(self, keys: Iterable[int] | None = None) -> None:
        wanted = set(self.dps) if keys is None else set(keys)
        for spec in self.topics.values():
            if spec.dps_key not in wanted:
                continue
            payload = self.state_payload(spec)
            if payload is not None:
                await self.publish(spec.name, payload)
        await self.publish("dps/state", json.dumps({str(k): v for k, v in sorted(self.dps.items())}))
        for key in sorted(wanted & set(self.dps)):
            await self.publish(f"dps/{key}/state", _raw_payload(self.dps[key]))

    # Discovery

    def discovery_descriptor(self) -> tuple[str, dict[str, Any]] | None:
        """Home Assistant discovery topic and document, or None for generic devices."""
        device_type = self.config.device_type
        if device_type is DeviceType.GENERIC:
            return None
        base = self.base_topic
        component = "switch" if device_type is DeviceType.SIMPLE_SWITCH else "light"
        data: dict[str, Any] = {
            "name": self.config.display_name,
            "state_topic": f"{base}state",
            "command_topic": f"{base}cmnd",
        }
        if device_type is DeviceType.SIMPLE_SWITCH:
            data["payload_on"] = "ON"
            data["payload_off"] = "OFF"
        if "brightness_state" in self.topics:
            data["brightness_state_topic"] = f"{base}brightness_state"
            data["brightness_command_topic"] = f"{base}brightness_cmnd"
            data["brightness_scale"] = 100
        if "color_brightness_state" in self.topics:
            data["brightness_state_topic"] = f"{base}color_brightness_state"
            data["brightness_command_topic"] = f"{base}color_brightness_cmnd"
            data["brightness_scale"] = 100
        if "hs_state" in self.topics:
            data["hs_state_topic"] = f"{base}hs_state"
            data["hs_command_topic"] = f"{base}hs_cmnd"
        if "white_brightness_state" in self.topics:
            data["white_value_state_topic"] = f"{base}white_brightness_state"
            data["white_value_command_topic"] = f"{base}white_brightness_cmnd"
            data["white_value_scale"] = 100
        if "color_temp_state" in self.topics:
            data["color_temp_state_topic"] = f"{base}color_temp_state"
            data["color_temp_command_topic"] = f"{base}color_temp_cmnd"
            data["min_mireds"] = self.config.min_color_temp
            data["max_mireds"] = self.config.max_color_temp
        data.update(
            {
                "availability_topic": f"{base}LWT",
                "payload_available": PAYLOAD_AVAILABLE,
                "payload_not_available": PAYLOAD_NOT_AVAILABLE,
                "unique_id": self.config.id,
                "device": {
                    "ids": [self.config.id],
                    "name": self.config.display_name,
                    "mf": "Tuya",
                    "mdl": _MODELS[device_type],
                },
            }
        )
        return f"homeassistant/{component}/{self.config.id}/config", data

    async def publish_discovery(self) -> None:
        descriptor = self.discovery_descriptor()
        if descriptor is None:
            return
        config_topic, data = descriptor
        LOGGER.debug("Home Assistant config topic: %s", config_topic)
        await self.bus.publish(
            config_topic,
            json.dumps(data),
            qos=self.bridge_config.qos,
            retain=self.bridge_config.retain,
        )

    async def republish(self) -> None:
        if not self.is_active:
            return
        await self.publish_discovery()
        await self.publish("LWT", PAYLOAD_AVAILABLE)
        await self.publish_states()

    async def mark_offline(self) -> None:
        await self.publish("LWT", PAYLOAD_NOT_AVAILABLE)

    # Command path: bus -> device

    def _require_active(self) -> None:
        if not self.is_active:
            raise DeviceNotActive(f"Device {self.config.display_name} is {self.state.value}")

    def _with_mode(self, mode: str | None, value_writes: dict[int, Any]) -> dict[int, Any]:
        if not mode or not self.config.dps_mode:
            return value_writes
        return {self.config.dps_mode: mode, **value_writes}

    def _current_color(self, spec: TopicSpec) -> Hsb:
        native = self.dps.get(spec.dps_key)
        if native in (None, ""):
            return DEFAULT_HSB
        try:
            return decode_color(native, spec.color_type or ColorType.HSB)
        except ColorDecodeError:
            return DEFAULT_HSB

    def _parse_color(self, spec: TopicSpec, payload: str) -> Hsb:
        if spec.value_type is ValueType.HEX:
            return hex_to_hsb(payload)
        parts = [part.strip() for part in payload.split(",")]
        if len(parts) != len(spec.components):
            raise CommandError(f"{spec.name} expects {','.join(spec.components)}, got '{payload}'")
        values = {name: self._current_color(spec).component(name) for name in ("h", "s", "b")}
        for name, part in zip(spec.components, parts):
            values[name] = int(round(_parse_number(part)))
        return Hsb(**values)

    def _plan_command(self, spec: TopicSpec, payload: str) -> tuple[dict[int, Any], Callable[[], Any] | None]:
        """DPS writes for a command, plus the cursor move to commit once they land."""
        value_type = spec.value_type
        if value_type is ValueType.BOOL:
            return {spec.dps_key: _parse_bool(payload, self.dps.get(spec.dps_key))}, None
        if value_type is ValueType.INT:
            number = _parse_number(payload)
            if spec.transform is not None:
                native = spec.transform.encode(number)
            else:
                native = int(round(number))
            return self._with_mode(spec.mode, {spec.dps_key: native}), None
        if value_type is ValueType.STR:
            return {spec.dps_key: payload}, None
        if value_type is ValueType.PREDEFINED_SCENE:
            scene = self.scenes.peek(payload)
            return self._with_mode(spec.mode, {spec.dps_key: scene.code}), partial(self.scenes.select, scene)

        commit: Callable[[], Any] | None = None
        try:
            if value_type is ValueType.PREDEFINED_COLOR:
                color = self.colors.peek(payload)
                hsb = hex_to_hsb(color.hex)
                commit = partial(self.colors.select, color)
            else:
                hsb = self._parse_color(spec, payload)
        except ColorDecodeError as exc:
            raise CommandError(str(exc)) from exc
        native = encode_color(hsb, spec.color_type or ColorType.HSB)
        # Brightness alone leaves the light in whatever mode it is in.
        mode = None
        if self.config.device_type is DeviceType.RGBTW_LIGHT and "s" in spec.components:
            mode = "white" if hsb.s == 0 else "colour"
        return self._with_mode(mode, {spec.dps_key: native}), commit

    def translate_command(self, spec: TopicSpec, payload: str) -> dict[int, Any]:
        """Turn a public payload for ``spec`` into the DPS writes to send."""
        writes, _ = self._plan_command(spec, payload)
        return writes

    async def _write(
        self,
        topic: str,
        writes: dict[int, Any],
        commit: Callable[[], Any] | None = None,
    ) -> CommandResult:
        for key, value in writes.items():
            LOGGER.debug("Setting DPS %s of %s to %r", key, self.config.display_name, value)
            await self.rpc.set(key, value)
            self.dps[key] = value
        if commit is not None:
            commit()
        await self.publish_states(writes)
        return CommandResult(topic=topic, writes=writes)

    async def process_command(self, command_topic: str, payload: str) -> CommandResult | None:
        """Handle ``<base>/<name>_command``; unsupported topics are ignored."""
        topic_name = state_topic_for(command_topic)
        async with self._command_lock:
            self._require_active()
            try:
                spec = lookup(self.topics, topic_name)
            except UnsupportedTopic as exc:
                LOGGER.debug("Ignoring %s for %s: %s", command_topic, self.config.display_name, exc)
                return None
            writes, commit = self._plan_command(spec, payload)
            return await self._write(topic_name, writes, commit)

    async def process_dps_command(self, payload: str) -> CommandResult:
        """Handle ``<base>/dps/command`` with ``{"dps": k, "set": v}`` or a list of them."""
        try:
            doc = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise CommandError(f"DPS command is not JSON: {exc}") from exc
        items = doc if isinstance(doc, list) else [doc]
        writes: dict[int, Any] = {}
        for item in items:
            if not isinstance(item, dict) or "dps" not in item or "set" not in item:
                raise CommandError(f"DPS command entries need 'dps' and 'set': {item!r}")
            try:
                writes[int(item["dps"])] = item["set"]
            except (TypeError, ValueError) as exc:
                raise CommandError(f"Invalid DPS key {item['dps']!r}") from exc
        async with self._command_lock:
            self._require_active()
            return await self._write("dps", writes)

    async def process_dps_key_command(self, key: str, payload: str) -> CommandResult:
        """Handle ``<base>/dps/<key>/command`` with a raw value."""
        try:
            dps_key = int(key)
        except ValueError as exc:
            raise CommandError(f"Invalid DPS key '{key}'") from exc
        async with self._command_lock:
            self._require_active()
            return await self._write(f"dps/{dps_key}", {dps_key: parse_raw_value(payload)})


def _raw_payload(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
