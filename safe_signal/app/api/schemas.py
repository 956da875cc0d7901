"""
Pydantic schemas for the Alert Service API.

Separated from the route handlers so they are reusable across
the codebase (client reporter, tests).

Field names follow the public JSON contract (camelCase where the
contract uses it: deviceInfo, triggeredAt, alertId).
"""

from __future__ import annotations

import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from safe_signal.app.alerts.models import AlertRecord, Contact


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def _coerce_coordinate(value: Any, limit: float) -> Optional[float]:
    """Return a float inside [-limit, limit], or None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or not -limit <= number <= limit:
        return None
    return number


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ContactCreateRequest(BaseModel):
    """
    Body of POST /contacts.

    name and phone are optional at the schema level so that a missing
    field reaches the service and is reported with the contract's 400
    message instead of a generic schema error.
    """
    name: Optional[str] = Field(None, examples=["Aunt Jane"])
    phone: Optional[str] = Field(None, examples=["+254700000000"])
    relation: Optional[str] = Field(None, examples=["Aunt"])

    @field_validator("name", "phone", "relation", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return v if isinstance(v, str) else str(v)


class AlertRequest(BaseModel):
    """
    Body of POST /alert. Never rejects: unusable values fall back to null
    coordinates and an unknown device.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    latitude: Optional[float] = Field(None, examples=[-1.2921])
    longitude: Optional[float] = Field(None, examples=[36.8219])
    device_info: Optional[str] = Field(
        None, alias="deviceInfo", examples=["Pixel 8 / Chrome 126"],
    )

    @field_validator("latitude", mode="before")
    @classmethod
    def _latitude(cls, v: Any) -> Optional[float]:
        return _coerce_coordinate(v, 90.0)

    @field_validator("longitude", mode="before")
    @classmethod
    def _longitude(cls, v: Any) -> Optional[float]:
        return _coerce_coordinate(v, 180.0)

    @field_validator("device_info", mode="before")
    @classmethod
    def _device_info(cls, v: Any) -> Optional[str]:
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ContactOut(BaseModel):
    id: int
    name: str
    phone: str
    relation: str = ""

    @classmethod
    def from_contact(cls, contact: Contact) -> "ContactOut":
        return cls(**contact.to_dict())


class ContactListResponse(BaseModel):
    contacts: List[ContactOut]


class ContactCreatedResponse(BaseModel):
    success: bool = True
    contact: ContactOut


class SuccessResponse(BaseModel):
    success: bool = True


class LocationOut(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AlertOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    triggered_at: str = Field(..., alias="triggeredAt")
    location: LocationOut
    device_info: str = Field(..., alias="deviceInfo")
    status: str
    notified: List[str]

    @classmethod
    def from_record(cls, record: AlertRecord) -> "AlertOut":
        return cls.model_validate(record.to_dict())


class AlertListResponse(BaseModel):
    alerts: List[AlertOut]


class AlertResponse(BaseModel):
    """Result of POST /alert."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    alert_id: int = Field(..., alias="alertId")
    notified: List[str]

    @classmethod
    def from_record(cls, record: AlertRecord) -> "AlertResponse":
        return cls(
            message=f"Alert sent to {len(record.notified)} contact(s).",
            alert_id=record.id,
            notified=list(record.notified),
        )


class HealthResponse(BaseModel):
    status: str = "ok"
    time: str
