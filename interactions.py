"""Discord interaction endpoint.

Discord posts every button click on a notification to this endpoint.
Each request is handled on its own:

* PING (type 1) is answered with PONG so Discord accepts the endpoint.
* MESSAGE_COMPONENT (type 3) carries the button's custom_id. A lock
  button sends the lock command and answers with an ephemeral message
  saying the command was sent.

Anything else gets an empty JSON object. Discord expects HTTP 200 for
every reply, so errors never turn into error statuses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from aiohttp import web

import actions
from actions import ActionKind, ActionReference
from config import Config
from notifier import lock_label
from scheduler import PollScheduler
from sesame import SesameClient

_LOGGER = logging.getLogger(__name__)

# Interaction response types
RESPONSE_PONG = 1
RESPONSE_CHANNEL_MESSAGE = 4

FLAG_EPHEMERAL = 64


class InteractionKind(IntEnum):
    """Interaction types this endpoint understands."""

    HANDSHAKE = 1
    ACTION_INVOKED = 3


@dataclass
class InteractionEvent:
    """One inbound interaction callback."""

    kind: InteractionKind
    action: ActionReference | None = None
    label: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


def _button_label(payload: dict) -> str:
    """Label of the first button on the message that was clicked."""
    try:
        label = payload["message"]["components"][0]["components"][0]["label"]
    except (KeyError, IndexError, TypeError):
        return ""
    return label if isinstance(label, str) else ""


def parse_interaction(payload) -> InteractionEvent | None:
    """Parse an interaction body, or return None if it is not recognized."""
    if not isinstance(payload, dict):
        return None
    try:
        kind = InteractionKind(payload.get("type"))
    except ValueError:
        return None

    if kind is InteractionKind.HANDSHAKE:
        return InteractionEvent(kind=kind, raw=payload)

    data = payload.get("data")
    custom_id = data.get("custom_id") if isinstance(data, dict) else None
    return InteractionEvent(
        kind=kind,
        action=actions.decode(custom_id),
        label=_button_label(payload),
        raw=payload,
    )


class InteractionReceiver:
    """aiohttp application serving the interaction endpoint."""

    def __init__(
        self,
        config: Config,
        client: SesameClient,
        scheduler: PollScheduler | None = None,
    ):
        self._config = config
        self._client = client
        self._scheduler = scheduler
        self._runner: web.AppRunner | None = None
        self.app = web.Application()
        self.app.router.add_get("/", self._handle_health)
        self.app.router.add_post(config.interactions_path, self._handle_interaction)

    async def _handle_health(self, request: web.Request) -> web.Response:
        status: dict[str, Any] = {"status": "ok"}
        if self._scheduler is not None:
            status["scheduler"] = self._scheduler.get_status()
        return web.json_response(status)

    async def _handle_interaction(self, request: web.Request) -> web.Response:
        try:
            payload = await request.json()
        except ValueError:
            _LOGGER.warning("Ignoring interaction with a non-JSON body")
            return web.json_response({})

        event = parse_interaction(payload)
        if event is None:
            _LOGGER.debug("Ignoring unrecognized interaction: %s", payload)
            return web.json_response({})

        if event.kind is InteractionKind.HANDSHAKE:
            return web.json_response({"type": RESPONSE_PONG})

        return web.json_response(await self.handle_action(event))

    async def handle_action(self, event: InteractionEvent) -> dict:
        """Run the action behind a clicked button and build the reply."""
        reference = event.action
        if reference is None or reference.kind is not ActionKind.LOCK:
            _LOGGER.info("Ignoring interaction without a known action")
            return {}
        if not self._config.api_key:
            _LOGGER.error(
                "Lock requested for %s but no API key is configured",
                reference.device_id,
            )
            return {}

        label = event.label
        if not label:
            device = self._config.find_device(reference.device_id)
            name = device.display_name if device else reference.device_id
            label = lock_label(name)

        _LOGGER.info("Lock requested from Discord for %s", reference.device_id)
        result = await self._client.lock(reference.device_id, self._config.lock_history)
        if not result.ok:
            # The reply only confirms dispatch; the failure stays in the log.
            _LOGGER.warning(
                "Lock command for %s failed: %s", reference.device_id, result.reason
            )

        return {
            "type": RESPONSE_CHANNEL_MESSAGE,
            "data": {
                "content": f"✅ Sent the \"{label}\" command.",
                "flags": FLAG_EPHEMERAL,
            },
        }

    async def start(self) -> None:
        """Start the web server."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.web_host, self._config.web_port)
        await site.start()
        _LOGGER.info(
            "Interaction endpoint running at http://%s:%d%s",
            self._config.web_host,
            self._config.web_port,
            self._config.interactions_path,
        )

    async def stop(self) -> None:
        """Stop the web server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        _LOGGER.info("Interaction endpoint stopped")
