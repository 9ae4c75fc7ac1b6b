"""Shared test fixtures.

``fake_backend`` serves both a fake SESAME API and a fake Discord webhook
from one local aiohttp test server, recording every request it receives.
"""

from collections.abc import AsyncGenerator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from config import Config, PollConfig


class FakeBackend:
    """Records calls and replies with canned SESAME/Discord responses."""

    def __init__(self):
        # device_id -> (http status, JSON-able body or raw text)
        self.statuses: dict[str, tuple[int, object]] = {}
        self.command_status = 200
        self.webhook_status = 204
        self.status_requests: list[dict] = []
        self.commands: list[dict] = []
        self.webhook_posts: list[dict] = []

        self.app = web.Application()
        self.app.router.add_get("/api/sesame2/{device_id}", self._handle_status)
        self.app.router.add_post("/api/sesame2/{device_id}/cmd", self._handle_command)
        self.app.router.add_post("/webhook", self._handle_webhook)
        self.server = TestServer(self.app)

    def set_status(self, device_id: str, raw_status: str, battery=None) -> None:
        body = {"CHSesame2Status": raw_status}
        if battery is not None:
            body["batteryPercentage"] = battery
        self.statuses[device_id] = (200, body)

    @property
    def base_url(self) -> str:
        return str(self.server.make_url("/api/sesame2"))

    @property
    def webhook_url(self) -> str:
        return str(self.server.make_url("/webhook"))

    async def _handle_status(self, request: web.Request) -> web.Response:
        device_id = request.match_info["device_id"]
        self.status_requests.append({
            "device_id": device_id,
            "api_key": request.headers.get("x-api-key"),
        })
        status, body = self.statuses.get(device_id, (404, {"message": "not found"}))
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    async def _handle_command(self, request: web.Request) -> web.Response:
        self.commands.append({
            "device_id": request.match_info["device_id"],
            "api_key": request.headers.get("x-api-key"),
            "body": await request.json(),
        })
        return web.json_response({}, status=self.command_status)

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        self.webhook_posts.append(await request.json())
        if self.webhook_status == 204:
            return web.Response(status=204)
        return web.Response(status=self.webhook_status, text="webhook error")


@pytest_asyncio.fixture
async def fake_backend() -> AsyncGenerator[FakeBackend, None]:
    backend = FakeBackend()
    await backend.server.start_server()
    yield backend
    await backend.server.close()


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[aiohttp.ClientSession, None]:
    async with aiohttp.ClientSession() as s:
        yield s


@pytest.fixture
def make_config(fake_backend):
    """Build a Config pointed at the fake backend."""

    def _make(**overrides) -> Config:
        values = {
            "api_key": "test-key",
            "device_ids": ["dev1"],
            "device_names": [],
            "webhook_url": fake_backend.webhook_url,
            "sesame_base_url": fake_backend.base_url,
            "poll": PollConfig(request_delay_sec=0),
        }
        values.update(overrides)
        return Config(**values)

    return _make
