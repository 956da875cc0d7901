"""
alert_service.py — Contact registry + alert ingestion orchestration.

═══════════════════════════════════════════════════════════════════════════
INGESTION PIPELINE
═══════════════════════════════════════════════════════════════════════════

    POST /alert
        │
        ├── 1. lock
        ├── 2. snapshot phones of every current contact
        ├── 3. build AlertRecord (clock id, status=sent)
        ├── 4. append to the alert log
        ├── 5. unlock
        └── 6. Notifier.dispatch(record)   ← transport, outcome not recorded

    Steps 2–4 run under one lock so that a concurrent POST /contacts or
    DELETE /contacts cannot interleave between the snapshot and the append.
    By the time the caller sees the record it already names everyone who
    would be notified, whether or not a message actually left the building.

═══════════════════════════════════════════════════════════════════════════
IDENTIFIERS
═══════════════════════════════════════════════════════════════════════════

    Contacts: integer counter owned by the ContactRepository.
    Alerts:   wall-clock milliseconds, bumped by one whenever two alerts
              land in the same millisecond (or the clock steps backwards).
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from safe_signal.app.alerts.channels import sms_gateway
from safe_signal.app.alerts.models import (
    UNKNOWN_DEVICE,
    AlertLocation,
    AlertRecord,
    AlertStatus,
    Contact,
    DeliveryAttempt,
    DeliveryStatus,
)
from safe_signal.app.alerts.repositories import (
    AlertLogRepository,
    ContactRepository,
    InMemoryAlertLogRepository,
    InMemoryContactRepository,
)
from safe_signal.app.core.config import Settings
from safe_signal.app.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


DEFAULT_CONTACTS = (
    Contact(id=1, name="Mom", phone="+1-555-0101", relation="Mother"),
    Contact(id=2, name="Dad", phone="+1-555-0102", relation="Father"),
)

REQUIRED_FIELDS_MESSAGE = "Name and phone are required."


# ═══════════════════════════════════════════════════════════════════════════
# Alert ID Clock
# ═══════════════════════════════════════════════════════════════════════════

class AlertIdClock:
    """Strictly increasing millisecond timestamps."""

    def __init__(self, now_ms: Optional[Callable[[], int]] = None):
        self._now_ms = now_ms or (lambda: time.time_ns() // 1_000_000)
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            candidate = self._now_ms()
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate


# ═══════════════════════════════════════════════════════════════════════════
# Notifier
# ═══════════════════════════════════════════════════════════════════════════

class Notifier:
    """
    Fans an ingested alert out to every notified phone.

    provider="disabled" turns dispatch into a no-op; any other value is
    handed to the SMS channel, which simulates or stubs the gateway.
    """

    def __init__(
        self,
        provider: str = "simulation",
        *,
        api_key: Optional[str] = None,
        sender_id: str = "SAFESIG",
    ):
        self.provider = provider
        self.api_key = api_key
        self.sender_id = sender_id

    @property
    def enabled(self) -> bool:
        return self.provider != "disabled"

    def dispatch(self, record: AlertRecord) -> List[DeliveryAttempt]:
        if not self.enabled:
            logger.debug("Notifier disabled: alert %s not dispatched", record.id)
            return []

        attempts = [
            sms_gateway.send(
                record, phone,
                provider=self.provider,
                api_key=self.api_key,
                sender_id=self.sender_id,
            )
            for phone in record.notified
        ]

        delivered = sum(1 for a in attempts if a.status == DeliveryStatus.DELIVERED)
        failed = sum(1 for a in attempts if a.status == DeliveryStatus.FAILED)
        logger.info(
            "Alert %s dispatch via %s: %d delivered, %d failed",
            record.id, self.provider, delivered, failed,
            extra={"alert_id": record.id, "channel": self.provider},
        )
        return attempts


# ═══════════════════════════════════════════════════════════════════════════
# Alert Service
# ═══════════════════════════════════════════════════════════════════════════

def _require(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(REQUIRED_FIELDS_MESSAGE, field=field_name)
    return str(value).strip()


class AlertService:
    """
    Owns the contact collection and the alert log for one process.

    Parameters
    ----------
    contacts : ContactRepository
    alert_log : AlertLogRepository
    notifier : Notifier | None
        Transport for ingested alerts. None means no dispatch at all.
    clock : AlertIdClock | None
    """

    def __init__(
        self,
        contacts: ContactRepository,
        alert_log: AlertLogRepository,
        *,
        notifier: Optional[Notifier] = None,
        clock: Optional[AlertIdClock] = None,
    ):
        self.contacts = contacts
        self.alert_log = alert_log
        self.notifier = notifier
        self.clock = clock or AlertIdClock()
        self._lock = threading.RLock()

    # ── Contacts ──

    def list_contacts(self) -> List[Contact]:
        return self.contacts.list_all()

    def add_contact(
        self,
        name: Optional[str],
        phone: Optional[str],
        relation: Optional[str] = None,
    ) -> Contact:
        """Validate and store a contact. Raises ValidationError (400)."""
        clean_name = _require(name, "name")
        clean_phone = _require(phone, "phone")

        with self._lock:
            contact = self.contacts.add(
                clean_name, clean_phone, (relation or "").strip(),
            )

        logger.info(
            "Contact %d added (%s)", contact.id, contact.name,
            extra={"contact_id": contact.id},
        )
        return contact

    def delete_contact(self, contact_id: int) -> None:
        """Remove a contact. Raises NotFoundError (404)."""
        with self._lock:
            removed = self.contacts.delete(contact_id)
        if not removed:
            raise NotFoundError("Contact", id=contact_id)
        logger.info("Contact %d removed", contact_id, extra={"contact_id": contact_id})

    # ── Alerts ──

    def ingest_alert(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        device_info: Optional[str] = None,
    ) -> AlertRecord:
        """
        Record an emergency alert and hand it to the notifier.

        Returns the stored record; its ``notified`` tuple is the phone
        snapshot taken while the service lock was held.
        """
        with self._lock:
            notified = tuple(c.phone for c in self.contacts.list_all())
            record = AlertRecord(
                id=self.clock.next_id(),
                triggered_at=datetime.now(timezone.utc),
                location=AlertLocation(latitude=latitude, longitude=longitude),
                device_info=device_info or UNKNOWN_DEVICE,
                status=AlertStatus.SENT,
                notified=notified,
            )
            self.alert_log.append(record)

        logger.warning(
            "🚨 ALERT TRIGGERED at %s id=%s location=(%s, %s) notified=%d",
            record.triggered_at.isoformat(), record.id,
            latitude, longitude, len(notified),
            extra={
                "alert_id": record.id,
                "recipient_count": len(notified),
                "lat": latitude,
                "lon": longitude,
            },
        )

        if self.notifier is not None:
            self.notifier.dispatch(record)

        return record

    def list_alerts(self) -> List[AlertRecord]:
        return self.alert_log.list_all()


def build_alert_service(config: Settings) -> AlertService:
    """Wire an AlertService with in-memory storage from settings."""
    seed = DEFAULT_CONTACTS if config.SEED_DEFAULT_CONTACTS else ()
    return AlertService(
        InMemoryContactRepository(seed),
        InMemoryAlertLogRepository(),
        notifier=Notifier(
            config.NOTIFIER_PROVIDER,
            api_key=config.SMS_API_KEY,
            sender_id=config.SMS_SENDER_ID,
        ),
    )
