"""
controller.py — Client Alert Controller.

═══════════════════════════════════════════════════════════════════════════
EMERGENCY FLOW
═══════════════════════════════════════════════════════════════════════════

    TriggerEmergency
        │  press feedback
        ▼
    AcquireLocation(is_emergency=True) ──► geolocation.request_fix()
                                                 │
                     ┌───────────────────────────┴──────────────┐
                     ▼                                          ▼
          FixAcquired(fix, True)                      FixFailed(code, True)
          • current coordinate := fix                 • notice with reason
          • location text / accuracy badge            • current coordinate
          • map set_view(close zoom) + marker           unchanged (fallback
          • show confirmation                           or last fix)
                                                      • show confirmation

    A failed or denied fix never suppresses the confirmation view. The one
    exception is a platform with no geolocation at all: the notice is shown
    and the flow stops there.

═══════════════════════════════════════════════════════════════════════════
ORDERING
═══════════════════════════════════════════════════════════════════════════

    Single-threaded. The geolocation completion is the only suspension
    point and all display updates happen inside it, after the coordinate
    is stored. Two overlapping SOS requests are independent; whichever
    completes last owns the current coordinate, and each completion
    renders its own fresh confirmation.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from safe_signal.app.core.config import Settings, settings as default_settings
from safe_signal.app.core.errors import AlertReportError
from safe_signal.client.collaborators import GeolocationProvider, KeyValueStore, MapWidget
from safe_signal.client.events import (
    AcquireLocation,
    AddContact,
    DeleteContact,
    DismissConfirmation,
    Effect,
    FixAcquired,
    FixFailed,
    Initialize,
    KeyPressed,
    ReleaseSosButton,
    SimulateEmergencyCall,
    Transition,
    TriggerEmergency,
)
from safe_signal.client.models import Coordinate, Fix, FixOptions, LocationErrorCode
from safe_signal.client.reporter import AlertServiceClient
from safe_signal.client.roster import (
    ContactRoster,
    RosterStorageError,
    RosterValidationError,
)
from safe_signal.client.view import (
    NO_NOTIFIED_CONTACTS_MESSAGE,
    ConfirmationView,
    ViewState,
)

logger = logging.getLogger(__name__)

CONFIRMATION_TIME_FORMAT = "%H:%M:%S • %d/%m/%Y"
LOCATION_DECIMALS = 5
CONFIRMATION_DECIMALS = 6
TEXT_INPUT_TAGS = ("INPUT", "TEXTAREA")

DEMO_POPUP = "<b>Demo Location</b><br>{label}"
LIVE_POPUP = "<b>YOU ARE HERE</b><br>Live GPS • Accurate now"


def _release_immediately(delay_ms: int, callback: Callable[[], None]) -> None:
    callback()


class ClientAlertController:
    """
    Owns current location, the contact roster and the page's ViewState.

    Parameters
    ----------
    map_widget : MapWidget
    geolocation : GeolocationProvider
    store : KeyValueStore
        Backing store of the contact roster.
    config : Settings
    confirm : callable(prompt) -> bool
        Interactive yes/no prompt used before deleting a contact.
    reporter : AlertServiceClient | None
        When given, each shown confirmation is also POSTed to the Alert
        Service.
    schedule : callable(delay_ms, callback)
        Timer used to release the SOS press feedback. Defaults to
        releasing at once.
    now : callable() -> datetime
        Local clock for the confirmation timestamp.
    """

    PRESS_FEEDBACK_MS = 150

    def __init__(
        self,
        map_widget: MapWidget,
        geolocation: GeolocationProvider,
        store: KeyValueStore,
        *,
        config: Settings = default_settings,
        confirm: Optional[Callable[[str], bool]] = None,
        reporter: Optional[AlertServiceClient] = None,
        schedule: Optional[Callable[[int, Callable[[], None]], None]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.map = map_widget
        self.geolocation = geolocation
        self.config = config
        self.roster = ContactRoster(store, key=config.CONTACTS_STORAGE_KEY)
        self.confirm = confirm or (lambda prompt: True)
        self.reporter = reporter
        self.schedule = schedule or _release_immediately
        self.now = now or datetime.now

        self.fallback = Coordinate(config.FALLBACK_LATITUDE, config.FALLBACK_LONGITUDE)
        self.current: Coordinate = self.fallback
        self.last_fix: Optional[Fix] = None
        self.view = ViewState()
        self.history: List[Transition] = []

        self._handlers: Dict[type, Callable] = {
            Initialize: self._on_initialize,
            TriggerEmergency: self._on_trigger_emergency,
            ReleaseSosButton: self._on_release_sos_button,
            AcquireLocation: self._on_acquire_location,
            FixAcquired: self._on_fix_acquired,
            FixFailed: self._on_fix_failed,
            DismissConfirmation: self._on_dismiss_confirmation,
            SimulateEmergencyCall: self._on_simulate_emergency_call,
            AddContact: self._on_add_contact,
            DeleteContact: self._on_delete_contact,
            KeyPressed: self._on_key_pressed,
        }

    @property
    def fix_options(self) -> FixOptions:
        return FixOptions(
            enable_high_accuracy=True,
            timeout_ms=self.config.GEOLOCATION_TIMEOUT_MS,
            maximum_age_ms=0,
        )

    # ── dispatch ──

    def handle(self, event: object) -> Transition:
        """Apply one event and return the effects it had."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event: {type(event).__name__}")
        effects = tuple(handler(event))
        transition = Transition(event=event, effects=effects)
        self.history.append(transition)
        logger.debug("%s → %s", type(event).__name__, [e.value for e in effects])
        return transition

    # Convenience wrappers named after the page actions.

    def initialize(self) -> Transition:
        return self.handle(Initialize())

    def trigger_emergency(self) -> Transition:
        return self.handle(TriggerEmergency())

    def acquire_location(self, is_emergency: bool = False) -> Transition:
        return self.handle(AcquireLocation(is_emergency=is_emergency))

    def dismiss_confirmation(self) -> Transition:
        return self.handle(DismissConfirmation())

    def simulate_emergency_call(self) -> Transition:
        return self.handle(SimulateEmergencyCall())

    def add_contact(self, name: str, phone: str) -> Transition:
        return self.handle(AddContact(name=name, phone=phone))

    def delete_contact(self, index: int) -> Transition:
        return self.handle(DeleteContact(index=index))

    # ── helpers ──

    def _notice(self, message: str) -> Effect:
        self.view.notices.append(message)
        return Effect.NOTICE

    def _render_contacts(self) -> Effect:
        self.view.contacts = self.roster.render()
        return Effect.CONTACTS_RENDERED

    # ── handlers ──

    def _on_initialize(self, event: Initialize):
        self.map.set_view(
            self.current.latitude, self.current.longitude,
            self.config.MAP_DEFAULT_ZOOM,
        )
        self.map.place_marker(
            self.current.latitude, self.current.longitude,
            DEMO_POPUP.format(label=self.config.FALLBACK_LABEL),
        )
        effects = [Effect.MAP_INITIALISED]
        try:
            self.roster.load()
        except RosterStorageError as exc:
            effects.append(self._notice(str(exc)))
        effects.append(self._render_contacts())
        logger.info("SafeSOS client ready: %d contact(s)", len(self.roster))
        return effects

    def _on_trigger_emergency(self, event: TriggerEmergency):
        self.view.sos_pressed = True
        effects = [Effect.SOS_PRESSED]
        self.schedule(
            self.PRESS_FEEDBACK_MS, lambda: self.handle(ReleaseSosButton()),
        )
        effects.extend(self._on_acquire_location(AcquireLocation(is_emergency=True)))
        return effects

    def _on_release_sos_button(self, event: ReleaseSosButton):
        self.view.sos_pressed = False
        return [Effect.SOS_RELEASED]

    def _on_acquire_location(self, event: AcquireLocation):
        if not self.geolocation.is_available():
            logger.warning("Geolocation capability unavailable")
            return [self._notice("Geolocation not supported.")]

        is_emergency = event.is_emergency
        self.geolocation.request_fix(
            self.fix_options,
            lambda fix: self.handle(FixAcquired(fix=fix, is_emergency=is_emergency)),
            lambda code: self.handle(FixFailed(code=code, is_emergency=is_emergency)),
        )
        return [Effect.FIX_REQUESTED]

    def _on_fix_acquired(self, event: FixAcquired):
        fix = event.fix
        coord = fix.coordinate
        if not coord.is_valid():
            logger.warning("Discarding out-of-range fix %s", coord)
            return self._on_fix_failed(FixFailed(
                code=LocationErrorCode.POSITION_UNAVAILABLE,
                is_emergency=event.is_emergency,
            ))
        self.current = coord
        self.last_fix = fix

        self.view.location_text = f"📍 {coord.format(LOCATION_DECIMALS)}"
        if fix.accuracy_m is not None:
            self.view.accuracy_badge = f"±{fix.accuracy_m}m accurate"
        effects = [Effect.LOCATION_UPDATED]

        self.map.set_view(coord.latitude, coord.longitude, self.config.MAP_CLOSE_ZOOM)
        self.map.remove_marker()
        self.map.place_marker(coord.latitude, coord.longitude, LIVE_POPUP)
        effects += [Effect.MAP_RECENTERED, Effect.MARKER_REPLACED]

        if event.is_emergency:
            effects += self._show_confirmation()
        return effects

    def _on_fix_failed(self, event: FixFailed):
        error = LocationErrorCode.classify(event.code)
        where = (
            "Using last known location." if self.last_fix
            else f"Using demo {self.config.FALLBACK_LABEL.split(',')[0]} coordinates."
        )
        logger.warning("Location error %s (%d)", error.name, event.code)
        effects = [self._notice(f"Location error: {error.reason}\n{where}")]

        if event.is_emergency:
            effects += self._show_confirmation()
        return effects

    def _show_confirmation(self):
        coord = self.current
        if self.last_fix is not None:
            acc = self.last_fix.accuracy_m
            note = "Live GPS" + (f" (±{acc}m)" if acc is not None else "")
        else:
            note = f"{self.config.FALLBACK_LABEL} (fallback location)"

        roster = self.roster.render()
        self.view.confirmation = ConfirmationView(
            time_text=self.now().strftime(CONFIRMATION_TIME_FORMAT),
            latitude_text=f"{coord.latitude:.{CONFIRMATION_DECIMALS}f}",
            longitude_text=f"{coord.longitude:.{CONFIRMATION_DECIMALS}f}",
            location_note=note,
            notified=roster.rows,
            empty_message=None if roster.rows else NO_NOTIFIED_CONTACTS_MESSAGE,
        )
        effects = [Effect.CONFIRMATION_SHOWN]

        if self.reporter is not None:
            effects += self._report_alert()
        return effects

    def _report_alert(self):
        # Only a real fix is sent; the fallback city is not the user's position.
        lat = self.current.latitude if self.last_fix else None
        lon = self.current.longitude if self.last_fix else None
        try:
            body = self.reporter.report_alert(lat, lon)
        except AlertReportError as exc:
            logger.error("SOS not reported to Alert Service: %s", exc.message)
            return [self._notice(f"Could not reach the alert service: {exc.message}")]

        self.view.confirmation.report_text = body.get("message")
        return [Effect.ALERT_REPORTED]

    def _on_dismiss_confirmation(self, event: DismissConfirmation):
        if self.view.confirmation is None:
            return []
        self.view.confirmation = None
        return [Effect.CONFIRMATION_HIDDEN]

    def _on_simulate_emergency_call(self, event: SimulateEmergencyCall):
        number = self.config.EMERGENCY_NUMBER
        effects = [self._notice(
            f"📞 SIMULATED CALL TO {number}\n\n"
            "In a real app this would connect directly to the police "
            "with GPS already sent."
        )]
        effects += self._on_dismiss_confirmation(DismissConfirmation())
        return effects

    def _on_add_contact(self, event: AddContact):
        try:
            self.roster.add(event.name, event.phone)
        except (RosterValidationError, RosterStorageError) as exc:
            return [self._notice(str(exc))]
        return [Effect.CONTACTS_CHANGED, self._render_contacts(), Effect.FORM_CLEARED]

    def _on_delete_contact(self, event: DeleteContact):
        try:
            removed = self.roster.delete_at(event.index, self.confirm)
        except RosterStorageError as exc:
            return [self._notice(str(exc))]
        if not removed:
            return []
        return [Effect.CONTACTS_CHANGED, self._render_contacts()]

    def _on_key_pressed(self, event: KeyPressed):
        if event.key != " ":
            return []
        if (event.focus_tag or "").upper() in TEXT_INPUT_TAGS:
            return []
        return self._on_trigger_emergency(TriggerEmergency())
