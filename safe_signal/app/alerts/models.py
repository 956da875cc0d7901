"""
models.py — Shared data structures for the Alert Service.

Defines:
    • AlertStatus     — lifecycle state of an ingested alert
    • NotifyChannel   — transport a notification would travel over
    • DeliveryStatus  — per-contact delivery tracking
    • Contact         — an emergency contact held by the service
    • AlertLocation   — where the alert was raised (fields may be null)
    • AlertRecord     — one entry in the append-only alert log
    • DeliveryAttempt — single send attempt record

═══════════════════════════════════════════════════════════════════════════
NOTIFIED SNAPSHOT
═══════════════════════════════════════════════════════════════════════════

    AlertRecord.notified is captured once, at ingestion, from the phone
    numbers of every contact known at that instant. It is stored as a
    tuple and the record itself is frozen, so later contact edits or
    deletions can never rewrite who an old alert reached.

Wire format uses the camelCase keys of the public API
(triggeredAt, deviceInfo); Python attributes stay snake_case.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class AlertStatus(str, Enum):
    """Alert lifecycle. The prototype only ever records SENT."""
    SENT = "sent"


class NotifyChannel(str, Enum):
    """Available notification transports."""
    SMS = "sms"


class DeliveryStatus(str, Enum):
    """Delivery state machine per contact per channel."""
    PENDING   = "pending"
    SENDING   = "sending"
    DELIVERED = "delivered"
    FAILED    = "failed"
    SKIPPED   = "skipped"


UNKNOWN_DEVICE = "Unknown device"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Contact:
    """
    An emergency contact held by the Alert Service.

    Attributes
    ----------
    id : int
        Assigned by the contact repository; never reused.
    name : str
        Display name, non-empty.
    phone : str
        Phone number as entered, non-empty.
    relation : str
        Free-text relationship ("Mother"); empty when not given.
    """
    id: int
    name: str
    phone: str
    relation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "relation": self.relation,
        }


@dataclass(frozen=True)
class AlertLocation:
    """Alert origin; either coordinate may be unknown."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def is_known(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class AlertRecord:
    """One immutable entry of the alert log."""
    id: int
    triggered_at: datetime
    location: AlertLocation = field(default_factory=AlertLocation)
    device_info: str = UNKNOWN_DEVICE
    status: AlertStatus = AlertStatus.SENT
    notified: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "triggeredAt": self.triggered_at.isoformat(),
            "location": self.location.to_dict(),
            "deviceInfo": self.device_info,
            "status": self.status.value,
            "notified": list(self.notified),
        }


@dataclass
class DeliveryAttempt:
    """Record of a single notification attempt to one contact via one channel."""
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    channel: NotifyChannel = NotifyChannel.SMS
    alert_id: int = 0
    phone: str = ""
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "channel": self.channel.value,
            "alert_id": self.alert_id,
            "phone": self.phone,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "error_message": self.error_message,
        }
