"""Event log for mints, coupon usage, URI changes, roles and pause state."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

TRANSFER = "Transfer"
COUPON_USED = "CouponUsed"
METADATA_URI_CHANGED = "MetadataURIChanged"
ROLE_GRANTED = "RoleGranted"
ROLE_REVOKED = "RoleRevoked"
PAUSED = "Paused"
UNPAUSED = "Unpaused"
OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
WITHDRAWN = "Withdrawn"


@dataclass(frozen=True)
class Event:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


class EventLog:
    def __init__(self):
        self._events: List[Event] = []

    def emit(self, name: str, **args) -> Event:
        event = Event(name, args)
        self._events.append(event)
        return event

    def of(self, name: str) -> List[Event]:
        return [e for e in self._events if e.name == name]

    def __iter__(self):
        return iter(list(self._events))

    def __len__(self):
        return len(self._events)

    def truncate(self, length: int) -> None:
        """Discards every event emitted after the log had `length` entries."""
        del self._events[length:]
