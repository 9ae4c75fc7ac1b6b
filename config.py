"""Configuration for the SESAME unlock notifier."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

import actions
from actions import ActionKind, ActionReference
from models import DeviceDescriptor


DEFAULT_DATA_DIR = os.path.expanduser("~/.sesame-notifier")
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_DATA_DIR, "config.json")
DEFAULT_SESAME_BASE_URL = "https://app.candyhouse.co/api/sesame2"
DEFAULT_WEB_PORT = 8099
DEFAULT_LOCK_HISTORY = "Locked from Discord"

# Environment variables that override the config file
ENV_API_KEY = "SESAME_API_KEY"
ENV_DEVICE_IDS = "SESAME_DEVICE_IDS"
ENV_DEVICE_NAMES = "SESAME_DEVICE_NAMES"
ENV_WEBHOOK_URL = "SESAME_DISCORD_WEBHOOK_URL"


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""


def _split_csv(value) -> list[str]:
    """Split a comma-separated string (or pass through a list), trimming items."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value]


@dataclass
class PollConfig:
    """Polling configuration."""

    interval_sec: int = 600             # 10 minutes normally
    quiet_interval_sec: int = 1800      # 30 minutes during quiet hours
    quiet_hours_start: int = 1          # 1 AM
    quiet_hours_end: int = 6            # 6 AM
    request_delay_sec: float = 0.5      # Minimum gap between device queries


@dataclass
class Config:
    """Main application configuration."""

    # SESAME cloud API
    api_key: str = ""
    device_ids: list[str] = field(default_factory=list)
    device_names: list[str] = field(default_factory=list)  # Index-aligned, optional
    sesame_base_url: str = DEFAULT_SESAME_BASE_URL
    lock_history: str = DEFAULT_LOCK_HISTORY  # Audit note attached to lock commands

    # Discord
    webhook_url: str = ""

    # Polling
    poll: PollConfig = field(default_factory=PollConfig)

    # Interaction endpoint
    web_port: int = DEFAULT_WEB_PORT
    web_host: str = "0.0.0.0"
    interactions_path: str = "/interactions"

    def devices(self) -> list[DeviceDescriptor]:
        """Pair configured device ids with their display names."""
        ids = [device_id for device_id in self.device_ids if device_id]
        devices = []
        for index, device_id in enumerate(ids):
            name = self.device_names[index] if index < len(self.device_names) else ""
            devices.append(DeviceDescriptor.create(device_id, name))
        return devices

    def find_device(self, device_id: str) -> DeviceDescriptor | None:
        """Return the configured descriptor for a device id, if any."""
        for device in self.devices():
            if device.device_id == device_id:
                return device
        return None

    def missing_settings(self) -> list[str]:
        """Names of the settings a polling run cannot do without."""
        missing = []
        if not self.api_key:
            missing.append(ENV_API_KEY)
        if not self.device_ids:
            missing.append(ENV_DEVICE_IDS)
        if not self.webhook_url:
            missing.append(ENV_WEBHOOK_URL)
        return missing

    def validate(self) -> None:
        """Check that a polling run can start.

        Raises ConfigError when a credential, the device list, or the
        webhook URL is missing, or when a device id cannot be embedded
        in a button identifier.
        """
        missing = self.missing_settings()
        if missing:
            raise ConfigError(
                "Missing required settings: " + ", ".join(missing)
            )
        devices = self.devices()
        if not devices:
            raise ConfigError(f"No device ids configured in {ENV_DEVICE_IDS}")
        for device in devices:
            try:
                actions.encode(ActionReference(ActionKind.LOCK, device.device_id))
            except ValueError as e:
                raise ConfigError(str(e)) from e

    def apply_env(self, environ: Mapping[str, str] | None = None) -> None:
        """Override settings from SESAME_* environment variables."""
        environ = os.environ if environ is None else environ
        if environ.get(ENV_API_KEY):
            self.api_key = environ[ENV_API_KEY].strip()
        if environ.get(ENV_DEVICE_IDS):
            self.device_ids = _split_csv(environ[ENV_DEVICE_IDS])
        if environ.get(ENV_DEVICE_NAMES):
            self.device_names = _split_csv(environ[ENV_DEVICE_NAMES])
        if environ.get(ENV_WEBHOOK_URL):
            self.webhook_url = environ[ENV_WEBHOOK_URL].strip()

    @classmethod
    def load(cls, config_file: str | None = None) -> Config:
        """Load configuration from disk."""
        path = config_file or DEFAULT_CONFIG_FILE
        config = cls()
        if os.path.exists(path):
            with open(path) as f:
                data = json.load(f)
            config.api_key = data.get("api_key", "")
            config.device_ids = _split_csv(data.get("device_ids"))
            config.device_names = _split_csv(data.get("device_names"))
            config.sesame_base_url = data.get(
                "sesame_base_url", DEFAULT_SESAME_BASE_URL
            )
            config.lock_history = data.get("lock_history", DEFAULT_LOCK_HISTORY)
            config.webhook_url = data.get("webhook_url", "")
            config.web_port = data.get("web_port", DEFAULT_WEB_PORT)
            config.web_host = data.get("web_host", "0.0.0.0")
            config.interactions_path = data.get("interactions_path", "/interactions")
            if "poll" in data:
                poll_data = data["poll"]
                config.poll = PollConfig(
                    interval_sec=poll_data.get("interval_sec", 600),
                    quiet_interval_sec=poll_data.get("quiet_interval_sec", 1800),
                    quiet_hours_start=poll_data.get("quiet_hours_start", 1),
                    quiet_hours_end=poll_data.get("quiet_hours_end", 6),
                    request_delay_sec=poll_data.get("request_delay_sec", 0.5),
                )
        return config
