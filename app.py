#!/usr/bin/env python3
"""SESAME Unlock Notifier – Main Entry Point.

Polls SESAME smart locks, posts a Discord message with a lock button for
every lock left unlocked, and serves the Discord interaction endpoint
that turns a button click into a lock command.

Usage:
    python3 app.py                     # Run the scheduler and the endpoint
    python3 app.py --check-once        # Check all locks once and exit
    python3 app.py --serve-only        # Run only the interaction endpoint
    python3 app.py --lock DEVICE_ID    # Send a lock command and exit

Environment:
    SESAME_API_KEY               SESAME web API key
    SESAME_DEVICE_IDS            Comma-separated device ids
    SESAME_DEVICE_NAMES          Comma-separated display names (optional)
    SESAME_DISCORD_WEBHOOK_URL   Discord webhook URL
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

import aiohttp

from config import Config
from interactions import InteractionReceiver
from monitor import run_check
from scheduler import PollScheduler
from sesame import SesameClient

_LOGGER = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    # Reduce noise from libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


async def cmd_check_once(config: Config) -> int:
    """Check all locks once."""
    async with aiohttp.ClientSession() as session:
        report = await run_check(config, session)
    if report is None:
        return 1

    print(f"\n🔍 Checked {len(report.checked)} lock(s)")
    for device_id in report.unlocked:
        mark = "✅" if device_id in report.notified else "⚠️ "
        print(f"   {mark} {device_id} is unlocked")
    for device_id in report.skipped:
        print(f"   ❓ {device_id} could not be read")
    print()
    return 0


async def cmd_lock(config: Config, device_id: str) -> int:
    """Send a lock command to one device."""
    if not config.api_key:
        print("❌ SESAME API key not configured.")
        return 1

    async with aiohttp.ClientSession() as session:
        client = SesameClient(session, config.api_key, config.sesame_base_url)
        result = await client.lock(device_id, config.lock_history)

    if result.ok:
        print(f"✅ Lock command sent to {device_id}")
        return 0
    print(f"❌ Lock command failed: {result.reason}")
    return 1


async def run_app(config: Config, serve_only: bool = False) -> int:
    """Run the interaction endpoint, and the scheduler unless serve_only."""
    if not config.api_key:
        _LOGGER.warning(
            "No SESAME API key configured; lock buttons will be ignored"
        )

    shutdown_event = asyncio.Event()

    def handle_signal():
        _LOGGER.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    async with aiohttp.ClientSession() as session:
        scheduler = None if serve_only else PollScheduler(config.poll)
        receiver = InteractionReceiver(
            config,
            SesameClient(session, config.api_key, config.sesame_base_url),
            scheduler,
        )

        _LOGGER.info("Starting SESAME Unlock Notifier...")
        await receiver.start()

        scheduler_task = None
        if scheduler is not None:
            async def poll_callback():
                """Called by the scheduler to trigger a check."""
                await run_check(config, session)

            scheduler_task = asyncio.create_task(scheduler.run(poll_callback))

        await shutdown_event.wait()

        _LOGGER.info("Shutting down...")
        if scheduler is not None:
            scheduler.stop()
            scheduler_task.cancel()
            try:
                await scheduler_task
            except asyncio.CancelledError:
                pass
        await receiver.stop()
    _LOGGER.info("Shutdown complete.")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="SESAME Unlock Notifier",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to config file",
        default=None,
    )
    parser.add_argument(
        "--check-once",
        action="store_true",
        help="Check all locks once and exit",
    )
    parser.add_argument(
        "--serve-only",
        action="store_true",
        help="Run the interaction endpoint without polling",
    )
    parser.add_argument(
        "--lock",
        metavar="DEVICE_ID",
        help="Send a lock command to a device and exit",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Override interaction endpoint port",
    )

    args = parser.parse_args()
    setup_logging(args.verbose)

    config = Config.load(args.config)
    config.apply_env()
    if args.port:
        config.web_port = args.port

    if args.check_once:
        return asyncio.run(cmd_check_once(config))
    if args.lock:
        return asyncio.run(cmd_lock(config, args.lock))
    return asyncio.run(run_app(config, serve_only=args.serve_only))


if __name__ == "__main__":
    raise SystemExit(main())
