from __future__ import annotations

import logging

import pytest

from tuyabridge.core.transform import (
    color_temp_transform,
    expression_transform,
    linear_transform,
    white_brightness_transform,
)


@pytest.mark.parametrize("scale", [255, 1000])
def test_white_brightness_round_trip(scale: int) -> None:
    transform = white_brightness_transform(scale)
    for public in range(0, 101):
        assert abs(transform.decode(transform.encode(public)) - public) <= 1


def test_white_brightness_255_keeps_native_floor() -> None:
    transform = white_brightness_transform(255)
    assert transform.encode(0) == 25
    assert transform.encode(50) == 140
    assert transform.encode(100) == 255
    assert transform.decode(25) == 0
    assert transform.decode(255) == 100


def test_white_brightness_other_scales_are_linear() -> None:
    transform = white_brightness_transform(1000)
    assert transform.encode(50) == 500
    assert transform.decode(500) == 50
    assert transform.encode(100) == 1000


@pytest.mark.parametrize("scale", [255, 1000])
def test_color_temp_round_trip(scale: int) -> None:
    transform = color_temp_transform(154, 400, scale)
    for mireds in range(154, 401):
        assert abs(transform.decode(transform.encode(mireds)) - mireds) <= 1


def test_color_temp_endpoints() -> None:
    transform = color_temp_transform(154, 400, 255)
    assert transform.encode(154) == 255
    assert transform.encode(400) == 0
    assert transform.decode(0) == 400
    assert transform.decode(255) == 154


def test_color_temp_state_is_inverse_over_native_range() -> None:
    transform = color_temp_transform(154, 400, 1000)
    for native in range(0, 1001, 7):
        assert abs(transform.encode(transform.decode(native)) - native) <= 5


def test_out_of_range_values_are_clamped(caplog: pytest.LogCaptureFixture) -> None:
    transform = white_brightness_transform(255)
    with caplog.at_level(logging.WARNING):
        assert transform.encode(150) == 255
        assert transform.encode(-5) == 25
    assert "clamped" in caplog.text


def test_decode_clamps_to_public_range() -> None:
    assert linear_transform(255).decode(400) == 100


def test_expression_transform_defaults_to_identity() -> None:
    transform = expression_transform(None, "x*10", public_range=(0, 10))
    assert transform.encode(3) == 30
    assert transform.decode(7) == 7
