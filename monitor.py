"""Unlock monitor: checks every configured lock and notifies on unlocked ones."""

from __future__ import annotations

import logging

import aiohttp

from actions import ActionKind, ActionReference
from config import Config, ConfigError
from models import CheckReport, DeviceDescriptor, DeviceStatus
from notifier import DiscordNotifier, lock_label
from scheduler import RequestPacer
from sesame import SesameClient

_LOGGER = logging.getLogger(__name__)


def unlocked_message(device: DeviceDescriptor, status: DeviceStatus) -> str:
    """Message text for an unlocked device."""
    battery = (
        f" (battery: {status.battery_percent}%)"
        if status.battery_percent is not None else ""
    )
    return f"🔓 **{device.display_name}** is unlocked{battery}"


class UnlockMonitor:
    """Runs one pass over the configured devices.

    Devices are checked strictly in configured order, one request at a
    time, with the pacer spacing out the status queries.
    """

    def __init__(
        self,
        devices: list[DeviceDescriptor],
        client: SesameClient,
        notifier: DiscordNotifier,
        pacer: RequestPacer,
    ):
        self._devices = devices
        self._client = client
        self._notifier = notifier
        self._pacer = pacer

    async def check_all(self) -> CheckReport:
        """Check every device and notify about the unlocked ones."""
        report = CheckReport()
        for device in self._devices:
            try:
                await self._check_device(device, report)
            except Exception as e:
                _LOGGER.error(
                    "Error while checking %s: %s", device.display_name, e
                )
                report.skipped.append(device.device_id)

        _LOGGER.info(
            "Check complete: %d checked, %d unlocked, %d notified, %d skipped",
            len(report.checked), len(report.unlocked),
            len(report.notified), len(report.skipped),
        )
        return report

    async def _check_device(self, device: DeviceDescriptor, report: CheckReport) -> None:
        await self._pacer.wait()
        status = await self._client.get_status(device.device_id)
        if status is None:
            _LOGGER.warning("Could not read status of %s, skipping", device.display_name)
            report.skipped.append(device.device_id)
            return

        report.checked.append(device.device_id)
        if not status.should_notify:
            _LOGGER.info(
                "%s is %s, no notification needed",
                device.display_name, status.lock_status.value,
            )
            return

        report.unlocked.append(device.device_id)
        result = await self._notifier.send(
            unlocked_message(device, status),
            action=ActionReference(ActionKind.LOCK, device.device_id),
            label=lock_label(device.display_name),
        )
        if result.ok:
            report.notified.append(device.device_id)
        else:
            _LOGGER.warning(
                "Unlock notification for %s not delivered: %s",
                device.display_name, result.reason,
            )


async def run_check(config: Config, session: aiohttp.ClientSession) -> CheckReport | None:
    """Validate the configuration and run one unlock check.

    Returns None when the configuration is unusable. In that case a
    short error notification is attempted if the webhook URL is known.
    """
    try:
        config.validate()
    except ConfigError as e:
        _LOGGER.error("Configuration error: %s", e)
        if config.webhook_url:
            await DiscordNotifier(session, config.webhook_url).send_config_error(str(e))
        return None

    monitor = UnlockMonitor(
        config.devices(),
        SesameClient(session, config.api_key, config.sesame_base_url),
        DiscordNotifier(session, config.webhook_url),
        RequestPacer(config.poll.request_delay_sec),
    )
    return await monitor.check_all()
