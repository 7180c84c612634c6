from __future__ import annotations

import pytest

from tuyabridge.api import Bridge, Client, DeviceSelectionError, UnsupportedTopic
from tuyabridge.core.model import BridgeConfig, ColorType, DeviceConfig, DeviceType

LAMP = DeviceConfig(
    id="dev1",
    name="Desk Lamp",
    device_type=DeviceType.RGBTW_LIGHT,
    dps_power=1,
    dps_mode=2,
    dps_white_value=3,
    white_value_scale=255,
    dps_color=5,
    color_type=ColorType.HSB,
)
BULB = DeviceConfig(id="bulb2", device_type=DeviceType.RGBTW_LIGHT)


def _client() -> Client:
    return Client(BridgeConfig(devices=(LAMP, BULB)))


def test_device_lookup_by_id_or_name() -> None:
    client = _client()
    assert client.device("dev1") is LAMP
    assert client.device("desk lamp") is LAMP
    with pytest.raises(DeviceSelectionError):
        client.device("garage")


def test_topic_table_and_discovery() -> None:
    client = _client()
    topics = client.topic_table("dev1")
    assert "white_brightness_state" in topics
    assert "color_temp_state" not in topics

    config_topic, data = client.discovery("dev1")
    assert config_topic == "homeassistant/light/dev1/config"
    assert "color_temp_state_topic" not in data


def test_unprobed_device_has_no_offline_topics() -> None:
    client = _client()
    assert client.topic_table("bulb2") == {}
    with pytest.raises(DeviceSelectionError):
        client.discovery("bulb2")


def test_offline_transforms() -> None:
    client = _client()
    assert client.to_device("dev1", "white_brightness_state", "50") == {2: "white", 3: 140}
    assert client.to_device("dev1", "predefined_color_state", "blue") == {2: "colour", 5: "00f003e803e8"}
    assert client.to_public("dev1", "white_brightness_state", "255") == "100"
    assert client.to_public("dev1", "hs_state", "007801f40190") == "120,50"
    with pytest.raises(UnsupportedTopic):
        client.to_device("dev1", "color_temp_state", "200")


def test_catalogs_and_bridge() -> None:
    client = _client()
    assert client.colors()[0].name == "red"
    assert client.scenes()[-1].name == "gorgeous"
    assert isinstance(client.create_bridge(bus=object(), rpc_factory=lambda config: object()), Bridge)
