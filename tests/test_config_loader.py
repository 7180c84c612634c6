from __future__ import annotations

from pathlib import Path

import pytest

from tuyabridge.core.config_loader import default_config_path, load_config
from tuyabridge.core.errors import ConfigLoadError, ConfigValidationError, ExpressionError
from tuyabridge.core.model import ColorType, DeviceType, ValueType


def _write_config(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


VALID = """
topic: home/tuya/
qos: 0
retain: true
use_home_assistant: true
settle_delay_s: 0.5
devices:
  - id: "bf0123456789abcdef"
    name: Desk Lamp
    type: rgbtw_light
    local_key: "0123456789abcdef"
    protocol_version: 3.3
    dps_power: 20
    dps_mode: 21
    dps_white_value: 22
    white_value_scale: 1000
    dps_color_temp: 23
    color_temp_scale: 1000
    dps_color: 24
    color_type: hsbhex
    dps_scene: 25
  - id: "bulb2"
    type: rgbtw_light
  - id: "fan1"
    name: Fan
    template:
      state:
        key: 1
        type: bool
      speed_state:
        key: 3
        type: int
        topic_min: 0
        topic_max: 10
        command_math: "x*10"
        state_math: "x/10"
"""


def test_load_valid_config(tmp_path: Path) -> None:
    config = load_config(_write_config(tmp_path / "config.yaml", VALID))
    assert config.topic == "home/tuya/"
    assert config.qos == 0
    assert config.retain is True
    assert config.use_home_assistant is True
    assert config.use_device_topic is False
    assert config.settle_delay_s == 0.5
    assert config.republish_rounds == 2

    lamp, bulb, fan = config.devices
    assert lamp.device_type is DeviceType.RGBTW_LIGHT
    assert lamp.dps_power == 20
    assert lamp.color_type is ColorType.HSBHEX
    assert lamp.protocol_version == "3.3"
    assert lamp.min_color_temp == 154
    assert bulb.dps_power == 0
    assert fan.device_type is DeviceType.GENERIC
    assert fan.template["speed_state"].type is ValueType.INT
    assert fan.template["speed_state"].command_math == "x*10"


def test_default_path_uses_env_then_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TUYABRIDGE_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    assert default_config_path() == tmp_path / "cfg" / "tuyabridge" / "config.yaml"

    monkeypatch.setenv("TUYABRIDGE_CONFIG", str(tmp_path / "other.yaml"))
    assert default_config_path() == tmp_path / "other.yaml"


def test_load_from_default_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TUYABRIDGE_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    _write_config(tmp_path / "cfg" / "tuyabridge" / "config.yaml", VALID)
    assert len(load_config().devices) == 3


def test_missing_file_is_load_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "nope.yaml")


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "dup.yaml",
        """
devices:
  - id: "a"
    type: simple_switch
    dps_power: 1
    dps_power: 2
""",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


@pytest.mark.parametrize(
    "content",
    [
        "topic: tuya/\n",
        "devices: []\n",
        "devices:\n  - name: no id\n",
        "devices:\n  - id: a\n    type: toaster\n",
        "devices:\n  - id: a\n    type: simple_switch\n    dps_power: 300\n",
        "use_home_assistant: yes\ndevices:\n  - id: a\n    type: simple_switch\n",
        "devices:\n  - id: a\n    type: simple_switch\n    colour: red\n",
        "- just\n- a list\n",
    ],
)
def test_schema_violations_rejected(tmp_path: Path, content: str) -> None:
    with pytest.raises(ConfigValidationError):
        load_config(_write_config(tmp_path / "bad.yaml", content))


def test_generic_device_needs_template(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "bad.yaml", "devices:\n  - id: a\n")
    with pytest.raises(ConfigValidationError, match="template"):
        load_config(path)


def test_template_only_for_generic(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "bad.yaml",
        "devices:\n  - id: a\n    type: simple_switch\n    template:\n      state: {key: 1, type: bool}\n",
    )
    with pytest.raises(ConfigValidationError, match="template"):
        load_config(path)


def test_unsafe_template_math_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "bad.yaml",
        """
devices:
  - id: fan
    template:
      speed_state:
        key: 3
        type: int
        command_math: "__import__('os').getcwd()"
""",
    )
    with pytest.raises(ExpressionError):
        load_config(path)


def test_color_temp_range_must_be_ordered(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "bad.yaml",
        "devices:\n  - id: a\n    type: rgbtw_light\n    min_color_temp: 400\n    max_color_temp: 154\n",
    )
    with pytest.raises(ConfigValidationError, match="min_color_temp"):
        load_config(path)


def test_duplicate_device_ids_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "bad.yaml",
        "devices:\n  - id: a\n    type: simple_switch\n  - id: a\n    type: simple_dimmer\n",
    )
    with pytest.raises(ConfigValidationError, match="Duplicate device id"):
        load_config(path)


def test_generic_template_accepts_plain_state_topic(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        "devices:\n  - id: plug\n    template:\n      state: {key: 1, type: bool}\n",
    )
    (device,) = load_config(path).devices
    assert device.template["state"].type is ValueType.BOOL


def test_template_topic_names_must_end_in_state(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "bad.yaml",
        "devices:\n  - id: plug\n    template:\n      power: {key: 1, type: bool}\n",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_unquoted_numeric_ids_are_kept_verbatim(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        "devices:\n  - id: 0123\n    type: simple_switch\n    local_key: 0042\n  - id: 987654\n    type: simple_switch\n",
    )
    first, second = load_config(path).devices
    assert first.id == "0123"
    assert first.local_key == "0042"
    assert second.id == "987654"
