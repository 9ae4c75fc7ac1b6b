"""Data models for the SESAME unlock notifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LockStatus(str, Enum):
    """Raw lock status reported by the SESAME cloud."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"
    MOVED = "moved"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw) -> LockStatus:
        try:
            status = cls(raw)
        except ValueError:
            return cls.UNKNOWN
        return status


@dataclass(frozen=True)
class DeviceDescriptor:
    """A configured device and the name used for it in notifications."""

    device_id: str
    display_name: str

    @classmethod
    def create(cls, device_id: str, display_name: str = "") -> DeviceDescriptor:
        """Build a descriptor, falling back to a truncated id for the name."""
        if not display_name:
            display_name = f"Device ({device_id[:8]}...)"
        return cls(device_id=device_id, display_name=display_name)


@dataclass(frozen=True)
class DeviceStatus:
    """A single status reading of a lock."""

    device_id: str
    lock_status: LockStatus
    battery_percent: int | None = None

    @property
    def locked(self) -> bool | None:
        """True when locked, False when unlocked, None for moved/unknown."""
        if self.lock_status is LockStatus.LOCKED:
            return True
        if self.lock_status is LockStatus.UNLOCKED:
            return False
        return None

    @property
    def should_notify(self) -> bool:
        return self.lock_status is LockStatus.UNLOCKED


@dataclass(frozen=True)
class Result:
    """Outcome of an outbound call: ok, or failed with a reason."""

    ok: bool
    reason: str = ""
    status: int | None = None

    @classmethod
    def success(cls, status: int | None = None) -> Result:
        return cls(ok=True, status=status)

    @classmethod
    def failed(cls, reason: str, status: int | None = None) -> Result:
        return cls(ok=False, reason=reason, status=status)


@dataclass
class CheckReport:
    """Summary of one polling run."""

    checked: list[str] = field(default_factory=list)
    unlocked: list[str] = field(default_factory=list)
    notified: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "checked": list(self.checked),
            "unlocked": list(self.unlocked),
            "notified": list(self.notified),
            "skipped": list(self.skipped),
        }
