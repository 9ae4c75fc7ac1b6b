"""Tests for monitor.py: the per-run unlock check."""

import pytest

import actions
from actions import ActionKind, ActionReference
from config import Config
from monitor import UnlockMonitor, run_check
from notifier import DiscordNotifier
from scheduler import RequestPacer
from sesame import SesameClient


class TestRunCheck:
    @pytest.mark.asyncio
    async def test_only_unlocked_device_is_notified(self, fake_backend, session, make_config):
        fake_backend.set_status("dev1", "unlocked", battery=55)
        fake_backend.set_status("dev2", "locked")
        fake_backend.set_status("dev3", "moved")
        config = make_config(
            device_ids=["dev1", "dev2", "dev3"],
            device_names=["Front", "Back", "Garage"],
        )

        report = await run_check(config, session)

        assert report.unlocked == ["dev1"]
        assert report.notified == ["dev1"]
        assert len(fake_backend.webhook_posts) == 1
        post = fake_backend.webhook_posts[0]
        assert "Front" in post["content"]
        assert "55%" in post["content"]
        assert "Back" not in post["content"]
        assert "Garage" not in post["content"]
        button = post["components"][0]["components"][0]
        assert actions.decode(button["custom_id"]) == ActionReference(ActionKind.LOCK, "dev1")
        assert button["label"] == "🔒 Lock Front"
        assert fake_backend.commands == []

    @pytest.mark.asyncio
    async def test_devices_are_queried_in_order(self, fake_backend, session, make_config):
        for device_id in ("c", "a", "b"):
            fake_backend.set_status(device_id, "locked")
        config = make_config(device_ids=["c", "a", "b"])

        await run_check(config, session)

        assert [r["device_id"] for r in fake_backend.status_requests] == ["c", "a", "b"]

    @pytest.mark.asyncio
    async def test_failed_query_is_skipped_and_loop_continues(self, fake_backend, session, make_config):
        fake_backend.statuses["dev1"] = (500, {"message": "server error"})
        fake_backend.statuses["dev2"] = (200, "not json")
        fake_backend.set_status("dev3", "unlocked")
        config = make_config(device_ids=["dev1", "dev2", "dev3"])

        report = await run_check(config, session)

        assert report.skipped == ["dev1", "dev2"]
        assert report.notified == ["dev3"]
        assert len(fake_backend.webhook_posts) == 1

    @pytest.mark.asyncio
    async def test_failed_notification_does_not_stop_other_devices(self, fake_backend, session, make_config):
        fake_backend.webhook_status = 500
        fake_backend.set_status("dev1", "unlocked")
        fake_backend.set_status("dev2", "unlocked")
        config = make_config(device_ids=["dev1", "dev2"])

        report = await run_check(config, session)

        assert report.unlocked == ["dev1", "dev2"]
        assert report.notified == []
        assert len(fake_backend.webhook_posts) == 2

    @pytest.mark.asyncio
    async def test_unlocked_device_with_nan_battery_is_notified(self, fake_backend, session, make_config):
        fake_backend.statuses["dev1"] = (
            200, '{"CHSesame2Status": "unlocked", "batteryPercentage": NaN}'
        )
        config = make_config(device_ids=["dev1"], device_names=["Front"])

        report = await run_check(config, session)

        assert report.notified == ["dev1"]
        assert report.skipped == []
        content = fake_backend.webhook_posts[0]["content"]
        assert "Front" in content
        assert "battery" not in content

    @pytest.mark.asyncio
    async def test_fallback_name_in_message(self, fake_backend, session, make_config):
        fake_backend.set_status("abcdef1234567890", "unlocked")
        config = make_config(device_ids=["abcdef1234567890"])

        await run_check(config, session)

        assert "Device (abcdef12...)" in fake_backend.webhook_posts[0]["content"]

    @pytest.mark.asyncio
    async def test_missing_api_key_sends_error_notification_only(self, fake_backend, session, make_config):
        config = make_config(api_key="")

        report = await run_check(config, session)

        assert report is None
        assert fake_backend.status_requests == []
        assert len(fake_backend.webhook_posts) == 1
        assert "components" not in fake_backend.webhook_posts[0]

    @pytest.mark.asyncio
    async def test_missing_webhook_aborts_silently(self, fake_backend, session, make_config):
        config = make_config(webhook_url="")

        report = await run_check(config, session)

        assert report is None
        assert fake_backend.status_requests == []
        assert fake_backend.webhook_posts == []


class TestUnlockMonitor:
    @pytest.mark.asyncio
    async def test_unexpected_error_skips_device(self, fake_backend, session):
        fake_backend.set_status("dev2", "unlocked")
        config = Config(device_ids=["dev1", "dev2"])

        class FlakyClient(SesameClient):
            async def get_status(self, device_id):
                if device_id == "dev1":
                    raise RuntimeError("boom")
                return await super().get_status(device_id)

        monitor = UnlockMonitor(
            config.devices(),
            FlakyClient(session, "key", fake_backend.base_url),
            DiscordNotifier(session, fake_backend.webhook_url),
            RequestPacer(0),
        )

        report = await monitor.check_all()

        assert report.skipped == ["dev1"]
        assert report.notified == ["dev2"]

    @pytest.mark.asyncio
    async def test_pacer_is_consulted_before_each_query(self, fake_backend, session):
        for device_id in ("a", "b", "c"):
            fake_backend.set_status(device_id, "locked")
        waits = []

        class CountingPacer(RequestPacer):
            async def wait(self):
                waits.append(len(fake_backend.status_requests))

        monitor = UnlockMonitor(
            Config(device_ids=["a", "b", "c"]).devices(),
            SesameClient(session, "key", fake_backend.base_url),
            DiscordNotifier(session, fake_backend.webhook_url),
            CountingPacer(0.5),
        )

        await monitor.check_all()

        assert waits == [0, 1, 2]
