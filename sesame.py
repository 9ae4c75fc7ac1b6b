"""SESAME cloud API client.

Reads lock status and sends lock commands through the CANDY HOUSE web
API. Every call reports failure through its return value and logs it;
nothing is raised to the caller, so one bad device never stops a run.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import math
from urllib.parse import quote

import aiohttp

from actions import is_valid_device_id
from models import DeviceStatus, LockStatus, Result

_LOGGER = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"

STATUS_FIELD = "CHSesame2Status"
BATTERY_FIELD = "batteryPercentage"

CMD_LOCK = 82


def parse_status(device_id: str, payload: dict) -> DeviceStatus:
    """Turn a status response body into a DeviceStatus."""
    raw = payload.get(STATUS_FIELD)
    lock_status = LockStatus.parse(raw)
    if lock_status is LockStatus.UNKNOWN:
        _LOGGER.warning(
            "Device %s reported unknown status %r, ignoring", device_id, raw
        )

    battery = payload.get(BATTERY_FIELD)
    if (
        isinstance(battery, bool)
        or not isinstance(battery, (int, float))
        or not math.isfinite(battery)
    ):
        battery = None
    else:
        battery = max(0, min(100, int(battery)))

    return DeviceStatus(
        device_id=device_id,
        lock_status=lock_status,
        battery_percent=battery,
    )


class SesameClient:
    """Thin async wrapper around the SESAME per-device endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        base_url: str,
    ):
        self._session = session
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {API_KEY_HEADER: self._api_key}

    def _device_url(self, device_id: str) -> str | None:
        """URL of a device, or None if the id is not a plain path segment."""
        if not is_valid_device_id(device_id):
            _LOGGER.error("Refusing request for invalid device id %r", device_id)
            return None
        return f"{self._base_url}/{quote(device_id, safe='')}"

    async def get_status(self, device_id: str) -> DeviceStatus | None:
        """Query the current state of a device.

        Returns None when the device is unavailable: a non-200 response,
        a body that is not a JSON object, or a transport error.
        """
        url = self._device_url(device_id)
        if url is None:
            return None
        try:
            async with self._session.get(url, headers=self._headers()) as resp:
                body = await resp.text()
                if resp.status != 200:
                    _LOGGER.warning(
                        "Status query for %s failed (HTTP %d): %s",
                        device_id, resp.status, body,
                    )
                    return None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _LOGGER.error("Status query for %s failed: %s", device_id, e)
            return None

        try:
            payload = json.loads(body)
        except ValueError:
            _LOGGER.warning(
                "Status query for %s returned invalid JSON: %s", device_id, body
            )
            return None
        if not isinstance(payload, dict):
            _LOGGER.warning(
                "Status query for %s returned unexpected body: %s", device_id, body
            )
            return None

        try:
            status = parse_status(device_id, payload)
        except (TypeError, ValueError, OverflowError) as e:
            _LOGGER.warning(
                "Status query for %s returned an unusable body: %s", device_id, e
            )
            return None
        _LOGGER.debug(
            "Device %s: %s (battery %s%%)",
            device_id, status.lock_status.value, status.battery_percent,
        )
        return status

    async def send_command(
        self, device_id: str, command: int, history: str
    ) -> Result:
        """Send a command to a device with a base64 audit note attached.

        The result only reflects whether the API accepted the request,
        not whether the lock has physically moved.
        """
        url = self._device_url(device_id)
        if url is None:
            return Result.failed(f"invalid device id {device_id!r}")
        url = f"{url}/cmd"
        payload = {
            "cmd": command,
            "history": base64.b64encode(history.encode("utf-8")).decode("ascii"),
        }
        try:
            async with self._session.post(
                url, json=payload, headers=self._headers()
            ) as resp:
                body = await resp.text()
                _LOGGER.info(
                    "Command %d sent to %s: HTTP %d - %s",
                    command, device_id, resp.status, body,
                )
                if 200 <= resp.status < 300:
                    return Result.success(resp.status)
                return Result.failed(f"HTTP {resp.status}", resp.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _LOGGER.error("Error sending command %d to %s: %s", command, device_id, e)
            return Result.failed(str(e) or type(e).__name__)

    async def lock(self, device_id: str, history: str) -> Result:
        """Lock a device."""
        return await self.send_command(device_id, CMD_LOCK, history)
