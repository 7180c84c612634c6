"""Typer CLI entrypoint."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from tuyabridge.api import Client
from tuyabridge.core.codec import PREDEFINED_COLORS, PREDEFINED_SCENES, decode_color, encode_color
from tuyabridge.core.device import base_topic_for
from tuyabridge.core.errors import BridgeError
from tuyabridge.core.model import ColorType, Hsb

app = typer.Typer(help="Inspect tuyabridge device configs and value transforms")


def _build_client(ctx: typer.Context) -> Client:
    return Client(config_path=ctx.obj.get("config") if ctx.obj else None)


def _parse_hsb(value: str) -> Hsb:
    parts = value.split(",")
    if len(parts) != 3:
        raise typer.BadParameter("expected H,S,B")
    try:
        h, s, b = (int(part.strip()) for part in parts)
    except ValueError:
        raise typer.BadParameter("expected integers H,S,B") from None
    return Hsb(h=h, s=s, b=b)


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to config YAML"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    ctx.obj = {"config": config}
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")


@app.command("devices")
def list_devices(ctx: typer.Context) -> None:
    """List configured devices and their base topics."""
    try:
        client = _build_client(ctx)
        for device in client.devices:
            probe = " (probed at runtime)" if not client.topic_table(device.id) else ""
            base_topic = base_topic_for(device, client.config)
            typer.echo(f"{device.id}: {device.display_name} [{device.device_type.value}] {base_topic}{probe}")
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("topics")
def list_topics(ctx: typer.Context, device: str) -> None:
    """List the topic table of a configured device."""
    try:
        topics = _build_client(ctx).topic_table(device)
        if not topics:
            typer.echo(f"Device '{device}' has no DPS mapping; topics are built after probing")
            return
        for spec in topics.values():
            details = [f"dps={spec.dps_key}", f"type={spec.value_type.value}"]
            if spec.public_range:
                details.append(f"range={spec.public_range[0]:g}-{spec.public_range[1]:g}")
            if spec.components:
                details.append(f"components={','.join(spec.components)}")
            if spec.color_type:
                details.append(f"color_type={spec.color_type.value}")
            typer.echo(f"  {spec.name}: {' '.join(details)}")
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("discovery")
def show_discovery(ctx: typer.Context, device: str) -> None:
    """Print the Home Assistant discovery document of a device."""
    try:
        descriptor = _build_client(ctx).discovery(device)
        if descriptor is None:
            typer.echo(f"Device '{device}' publishes no discovery document")
            return
        config_topic, data = descriptor
        typer.echo(config_topic)
        typer.echo(json.dumps(data, indent=2))
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("colors")
def list_colors() -> None:
    """List predefined colors, in cycling order."""
    for entry in PREDEFINED_COLORS:
        typer.echo(f"{entry.name}: {entry.hex}")


@app.command("scenes")
def list_scenes() -> None:
    """List predefined scenes, in cycling order."""
    for entry in PREDEFINED_SCENES:
        typer.echo(f"{entry.name}: {entry.code}")


@app.command("decode-color")
def decode_color_command(
    payload: str,
    color_type: ColorType = typer.Option(ColorType.HSB, "--color-type", help="Native color format"),
) -> None:
    """Decode a native color payload into H,S,B."""
    try:
        hsb = decode_color(payload, color_type)
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"{hsb.h},{hsb.s},{hsb.b}")


@app.command("encode-color")
def encode_color_command(
    hsb: str,
    color_type: ColorType = typer.Option(ColorType.HSB, "--color-type", help="Native color format"),
) -> None:
    """Encode H,S,B into a native color payload."""
    typer.echo(encode_color(_parse_hsb(hsb), color_type))


@app.command("transform")
def transform_value(
    ctx: typer.Context,
    device: str,
    topic: str,
    value: str,
    to_device: bool = typer.Option(True, "--to-device/--to-public", help="Direction of the conversion"),
) -> None:
    """Convert a value for a device topic, as the bridge would."""
    try:
        client = _build_client(ctx)
        if to_device:
            writes = client.to_device(device, topic, value)
            for key, native in writes.items():
                typer.echo(f"dps {key} = {native!r}")
        else:
            payload = client.to_public(device, topic, value)
            if payload is None:
                typer.echo(f"Error: value '{value}' cannot be shown on {topic}", err=True)
                raise typer.Exit(code=1)
            typer.echo(payload)
    except BridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
