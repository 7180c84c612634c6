"""Routes bus messages to the devices owned by one bridge."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from tuyabridge.core.device import TuyaDevice
from tuyabridge.core.errors import BridgeError
from tuyabridge.core.model import BridgeConfig, DeviceConfig
from tuyabridge.transports.base import BusPublisher, DeviceRPC

LOGGER = logging.getLogger(__name__)

HASS_STATUS_TOPICS = ("homeassistant/status", "hass/status")
REPUBLISH_GAP_S = 2.0

RPCFactory = Callable[[DeviceConfig], DeviceRPC]


class Bridge:
    def __init__(self, config: BridgeConfig, bus: BusPublisher, rpc_factory: RPCFactory) -> None:
        self.config = config
        self.bus = bus
        self.rpc_factory = rpc_factory
        self.devices: list[TuyaDevice] = []
        self._tasks: set[asyncio.Task[None]] = set()

    async def start(self) -> list[TuyaDevice]:
        """Create and initialize every configured device.

        A device that fails to initialize is logged and left inactive; the
        others carry on.
        """
        self.devices = [
            TuyaDevice(device_config, self.rpc_factory(device_config), self.bus, self.config)
            for device_config in self.config.devices
        ]
        results = await asyncio.gather(*(device.init() for device in self.devices), return_exceptions=True)
        for device, result in zip(self.devices, results):
            if isinstance(result, BaseException):
                device.last_error = str(result)
                LOGGER.error("Initializing %s failed: %s", device.config.display_name, result)
        return self.active_devices()

    def active_devices(self) -> list[TuyaDevice]:
        return [device for device in self.devices if device.is_active]

    def subscriptions(self) -> list[str]:
        topics = [f"{device.base_topic}#" for device in self.devices]
        if self.config.use_home_assistant:
            topics.extend(HASS_STATUS_TOPICS)
        return topics

    def find_device(self, topic: str) -> TuyaDevice | None:
        matches = [device for device in self.devices if topic.startswith(device.base_topic)]
        if not matches:
            return None
        return max(matches, key=lambda device: len(device.base_topic))

    async def handle_message(self, topic: str, payload: str) -> None:
        if topic in HASS_STATUS_TOPICS:
            if self.config.use_home_assistant:
                LOGGER.debug("Home Assistant state topic %s received message: %s", topic, payload)
                if payload.strip() == "online":
                    self.schedule_republish()
            return

        command_topic = topic.rsplit("/", 1)[-1]
        if "command" not in command_topic and "cmnd" not in command_topic:
            return

        device = self.find_device(topic)
        if device is None:
            LOGGER.debug("No device for topic %s", topic)
            return

        levels = topic[len(device.base_topic) :].split("/")
        LOGGER.debug("Received command %s -> %s", topic, payload)
        try:
            if len(levels) == 1:
                await device.process_command(levels[0], payload)
            elif len(levels) == 2 and levels[0] == "dps":
                await device.process_dps_command(payload)
            elif len(levels) == 3 and levels[0] == "dps":
                await device.process_dps_key_command(levels[1], payload)
            else:
                LOGGER.debug("Ignoring command topic %s", topic)
        except BridgeError as exc:
            LOGGER.error("Command %s for %s failed: %s", topic, device.config.display_name, exc)

    def schedule_republish(self) -> asyncio.Task[None]:
        task = asyncio.create_task(self.republish())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def republish(
        self,
        *,
        rounds: int | None = None,
        delay_s: float | None = None,
        gap_s: float | None = None,
    ) -> None:
        """Resend discovery and state of all active devices a few times."""
        rounds = self.config.republish_rounds if rounds is None else rounds
        delay_s = self.config.republish_delay_s if delay_s is None else delay_s
        gap_s = REPUBLISH_GAP_S if gap_s is None else gap_s
        for _ in range(rounds):
            LOGGER.info("Resending device config/state in %s seconds", delay_s)
            await asyncio.sleep(delay_s)
            for device in self.active_devices():
                try:
                    await device.republish()
                except BridgeError as exc:
                    LOGGER.warning("Republishing %s failed: %s", device.config.display_name, exc)
            await asyncio.sleep(gap_s)

    async def stop(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for device in self.active_devices():
            await device.mark_offline()
