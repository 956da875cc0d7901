"""
events.py — Inputs to ClientAlertController.handle() and what it returns.

User actions and geolocation completions are both events; the controller
feeds its own geolocation callbacks back through handle(), so every state
change is recorded as a Transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from safe_signal.client.models import Fix


class Effect(str, Enum):
    """Observable outcome of handling one event."""
    MAP_INITIALISED      = "map_initialised"
    SOS_PRESSED          = "sos_pressed"
    SOS_RELEASED         = "sos_released"
    FIX_REQUESTED        = "fix_requested"
    LOCATION_UPDATED     = "location_updated"
    MAP_RECENTERED       = "map_recentered"
    MARKER_REPLACED      = "marker_replaced"
    CONFIRMATION_SHOWN   = "confirmation_shown"
    CONFIRMATION_HIDDEN  = "confirmation_hidden"
    ALERT_REPORTED       = "alert_reported"
    CONTACTS_CHANGED     = "contacts_changed"
    CONTACTS_RENDERED    = "contacts_rendered"
    FORM_CLEARED         = "form_cleared"
    NOTICE               = "notice"


# ── events ──

@dataclass(frozen=True)
class Initialize:
    pass


@dataclass(frozen=True)
class TriggerEmergency:
    pass


@dataclass(frozen=True)
class ReleaseSosButton:
    pass


@dataclass(frozen=True)
class AcquireLocation:
    is_emergency: bool = False


@dataclass(frozen=True)
class FixAcquired:
    fix: Fix
    is_emergency: bool = False


@dataclass(frozen=True)
class FixFailed:
    code: int
    is_emergency: bool = False


@dataclass(frozen=True)
class DismissConfirmation:
    pass


@dataclass(frozen=True)
class SimulateEmergencyCall:
    pass


@dataclass(frozen=True)
class AddContact:
    name: str
    phone: str


@dataclass(frozen=True)
class DeleteContact:
    index: int


@dataclass(frozen=True)
class KeyPressed:
    key: str
    focus_tag: Optional[str] = None  # tag name of the focused element


# ── result ──

@dataclass(frozen=True)
class Transition:
    event: object
    effects: Tuple[Effect, ...] = field(default_factory=tuple)

    def __contains__(self, effect: Effect) -> bool:
        return effect in self.effects
