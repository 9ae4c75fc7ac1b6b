"""Discord webhook notifications."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

import actions
from actions import ActionReference
from models import Result

_LOGGER = logging.getLogger(__name__)

# Discord message component types
COMPONENT_ACTION_ROW = 1
COMPONENT_BUTTON = 2
BUTTON_STYLE_SECONDARY = 2


def lock_label(display_name: str) -> str:
    """Label for the lock button of a device."""
    return f"🔒 Lock {display_name}"


def build_payload(
    message: str,
    action: ActionReference | None = None,
    label: str = "",
) -> dict:
    """Build a webhook payload, with one button when an action is given."""
    payload: dict = {"content": message}
    if action is not None:
        payload["components"] = [
            {
                "type": COMPONENT_ACTION_ROW,
                "components": [
                    {
                        "type": COMPONENT_BUTTON,
                        "style": BUTTON_STYLE_SECONDARY,
                        "label": label,
                        "custom_id": actions.encode(action),
                    }
                ],
            }
        ]
    return payload


class DiscordNotifier:
    """Posts messages to a Discord webhook.

    Delivery problems are logged and returned as a failed Result; send()
    never raises, so the caller can carry on with the next device.
    """

    def __init__(self, session: aiohttp.ClientSession, webhook_url: str):
        self._session = session
        self._webhook_url = webhook_url

    async def send(
        self,
        message: str,
        action: ActionReference | None = None,
        label: str = "",
    ) -> Result:
        try:
            payload = build_payload(message, action, label)
        except ValueError as e:
            _LOGGER.error("Cannot build notification: %s", e)
            return Result.failed(str(e))

        try:
            async with self._session.post(self._webhook_url, json=payload) as resp:
                if 200 <= resp.status < 300:
                    _LOGGER.info(
                        "Notification sent%s",
                        f" with button '{label}'" if action else "",
                    )
                    return Result.success(resp.status)
                body = await resp.text()
                _LOGGER.error(
                    "Notification failed (HTTP %d): %s", resp.status, body
                )
                return Result.failed(f"HTTP {resp.status}", resp.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _LOGGER.error("Error sending notification: %s", e)
            return Result.failed(str(e) or type(e).__name__)

    async def send_config_error(self, detail: str) -> Result:
        """Report a configuration problem that stopped a run."""
        return await self.send(
            f"⚠️ Unlock check failed: {detail}. Check the notifier settings."
        )
