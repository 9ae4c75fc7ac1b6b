"""Action references embedded in Discord button identifiers.

A button's ``custom_id`` carries the action kind and the target device,
joined by a single delimiter (``lock_<device_id>``). The receiver decodes
it again when the button is clicked.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

DELIMITER = "_"

# Discord rejects component custom_ids longer than this
MAX_CUSTOM_ID_LENGTH = 100

# Device ids end up as a URL path segment of the SESAME API
_DEVICE_ID_RE = re.compile(r"[A-Za-z0-9-]+")


def is_valid_device_id(device_id) -> bool:
    """True if the id is non-empty and safe to use as one URL path segment."""
    return isinstance(device_id, str) and bool(_DEVICE_ID_RE.fullmatch(device_id))


class ActionKind(str, Enum):
    """Commands a notification button can trigger."""

    LOCK = "lock"


@dataclass(frozen=True)
class ActionReference:
    """An action kind bound to one device."""

    kind: ActionKind
    device_id: str


def encode(reference: ActionReference) -> str:
    """Encode an action reference into a button identifier.

    Raises ValueError if the device id is empty, contains anything but
    letters, digits and hyphens (the delimiter included), or makes the
    identifier too long for Discord.
    """
    device_id = reference.device_id
    if not device_id:
        raise ValueError("device id must not be empty")
    if not is_valid_device_id(device_id):
        raise ValueError(
            f"device id {device_id!r} may only contain letters, digits and '-'"
        )
    custom_id = f"{reference.kind.value}{DELIMITER}{device_id}"
    if len(custom_id) > MAX_CUSTOM_ID_LENGTH:
        raise ValueError(
            f"identifier for device {device_id!r} exceeds "
            f"{MAX_CUSTOM_ID_LENGTH} characters"
        )
    return custom_id


def decode(custom_id) -> ActionReference | None:
    """Decode a button identifier, or return None if it is not one of ours."""
    if not isinstance(custom_id, str):
        return None
    parts = custom_id.split(DELIMITER)
    if len(parts) != 2:
        return None
    kind_value, device_id = parts
    if not is_valid_device_id(device_id):
        return None
    try:
        kind = ActionKind(kind_value)
    except ValueError:
        return None
    return ActionReference(kind=kind, device_id=device_id)
