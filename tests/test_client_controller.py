"""
test_client_controller.py — Tests for the Client Alert Controller.

Covers:
    • Initialisation (fallback map view, roster load)
    • Location acquisition success (display, badge, map, marker)
    • Acquisition failure classification + fallback never blocks SOS
    • Capability unavailable
    • SOS trigger, confirmation view, dismiss, simulated call
    • Contact add / delete through the dispatcher
    • Keyboard shortcut
    • Overlapping acquisitions (last completion wins)
    • Optional alert reporting

Run with:
    pytest tests/test_client_controller.py -v
"""

from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from safe_signal.app.core.config import Settings
from safe_signal.app.core.errors import AlertReportError
from safe_signal.client.collaborators import (
    HeadlessMap,
    InMemoryKeyValueStore,
    ScriptedGeolocationProvider,
)
from safe_signal.client.controller import ClientAlertController
from safe_signal.client.events import (
    AddContact,
    Effect,
    FixAcquired,
    FixFailed,
    KeyPressed,
)
from safe_signal.client.models import Coordinate, Fix, LocationErrorCode
from safe_signal.client.view import NO_NOTIFIED_CONTACTS_MESSAGE, render_text

FIXED_NOW = datetime(2026, 10, 17, 14, 5, 9)
KEY = "safeSOS_contacts"

NAKURU = Fix(Coordinate(-0.3031234, 36.0800456), accuracy=12.6)
MOMBASA = Fix(Coordinate(-4.0434771, 39.6682065), accuracy=30.2)


class _FlakyStore(InMemoryKeyValueStore):
    """Writes raise OSError while ``fail_writes`` is set."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False

    def set_item(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        super().set_item(key, value)


def _make_controller(
    outcomes=None,
    *,
    auto_resolve=True,
    available=True,
    store=None,
    confirm=None,
    reporter=None,
    config=None,
):
    geo = ScriptedGeolocationProvider(
        outcomes, auto_resolve=auto_resolve, available=available,
    )
    ctrl = ClientAlertController(
        HeadlessMap(),
        geo,
        store if store is not None else InMemoryKeyValueStore(),
        config=config or Settings(),
        confirm=confirm,
        reporter=reporter,
        now=lambda: FIXED_NOW,
    )
    ctrl.initialize()
    return ctrl, geo


# ═══════════════════════════════════════════════════════════════════════════
# Initialisation
# ═══════════════════════════════════════════════════════════════════════════

class TestInitialize:

    def test_map_starts_at_fallback(self):
        ctrl, _ = _make_controller()
        assert ctrl.map.center == Coordinate(-1.2921, 36.8219)
        assert ctrl.map.zoom == 14
        assert "Demo Location" in ctrl.map.marker.popup_html

    def test_roster_seeded_and_rendered(self):
        ctrl, _ = _make_controller()
        assert [r.name for r in ctrl.view.contacts.rows] == ["Mum", "Police Station"]

    def test_roster_loaded_from_store(self):
        store = InMemoryKeyValueStore(
            {KEY: json.dumps([{"name": "Sis", "phone": "0711"}])},
        )
        ctrl, _ = _make_controller(store=store)
        assert [r.name for r in ctrl.view.contacts.rows] == ["Sis"]

    def test_no_confirmation_initially(self):
        ctrl, _ = _make_controller()
        assert ctrl.view.confirmation_visible is False


# ═══════════════════════════════════════════════════════════════════════════
# Location acquisition
# ═══════════════════════════════════════════════════════════════════════════

class TestAcquireSuccess:

    def test_request_options(self):
        ctrl, geo = _make_controller([NAKURU])
        ctrl.acquire_location()
        options = geo.requests[0]
        assert options.enable_high_accuracy is True
        assert options.timeout_ms == 10_000
        assert options.maximum_age_ms == 0

    def test_state_display_and_map(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.acquire_location()
        assert ctrl.current == NAKURU.coordinate
        assert ctrl.view.location_text == "📍 -0.30312, 36.08005"
        assert ctrl.view.accuracy_badge == "±13m accurate"
        assert ctrl.map.center == NAKURU.coordinate
        assert ctrl.map.zoom == 17

    def test_marker_replaced(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.acquire_location()
        assert ctrl.map.calls[-2:] == [
            ("remove_marker",),
            ("place_marker", NAKURU.coordinate.latitude, NAKURU.coordinate.longitude),
        ]
        assert "YOU ARE HERE" in ctrl.map.marker.popup_html

    def test_non_emergency_does_not_show_confirmation(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.acquire_location(is_emergency=False)
        assert ctrl.view.confirmation is None

    def test_effects_recorded(self):
        ctrl, _ = _make_controller([NAKURU])
        assert Effect.FIX_REQUESTED in ctrl.acquire_location()
        fix_transition = ctrl.history[-2]
        assert isinstance(fix_transition.event, FixAcquired)
        assert Effect.MAP_RECENTERED in fix_transition

    def test_out_of_range_fix_treated_as_unavailable(self):
        ctrl, _ = _make_controller([Fix(Coordinate(123.0, 36.0), accuracy=5)])
        ctrl.trigger_emergency()
        assert ctrl.current == ctrl.fallback
        assert ctrl.view.last_notice.startswith("Location error: Position unavailable.")
        assert ctrl.view.confirmation_visible

    def test_fix_without_accuracy_leaves_badge_hidden(self):
        ctrl, _ = _make_controller([Fix(Coordinate(1.0, 2.0))])
        ctrl.acquire_location()
        assert ctrl.view.accuracy_badge is None


class TestAcquireFailure:

    @pytest.mark.parametrize("code,reason", [
        (1, "Permission denied."),
        (2, "Position unavailable."),
        (3, "Timeout."),
        (99, "Timeout."),
    ])
    def test_error_classification(self, code, reason):
        ctrl, _ = _make_controller([code])
        ctrl.acquire_location()
        assert ctrl.view.last_notice.startswith(f"Location error: {reason}")

    def test_failure_keeps_fallback(self):
        ctrl, _ = _make_controller([LocationErrorCode.PERMISSION_DENIED])
        ctrl.acquire_location()
        assert ctrl.current == ctrl.fallback
        assert ctrl.view.last_notice.endswith("Using demo Nairobi coordinates.")

    def test_failure_keeps_last_fix(self):
        ctrl, _ = _make_controller([NAKURU, LocationErrorCode.TIMEOUT])
        ctrl.acquire_location()
        ctrl.acquire_location()
        assert ctrl.current == NAKURU.coordinate
        assert "last known" in ctrl.view.last_notice

    def test_denied_permission_still_shows_sos(self):
        ctrl, _ = _make_controller([LocationErrorCode.PERMISSION_DENIED])
        ctrl.trigger_emergency()
        modal = ctrl.view.confirmation
        assert modal is not None
        assert modal.latitude_text == "-1.292100"
        assert modal.longitude_text == "36.821900"
        assert "fallback" in modal.location_note

    @pytest.mark.parametrize("code", [1, 2, 3])
    def test_every_failure_shows_sos(self, code):
        ctrl, _ = _make_controller([code])
        ctrl.trigger_emergency()
        assert ctrl.view.confirmation_visible

    def test_capability_unavailable(self):
        ctrl, geo = _make_controller([NAKURU], available=False)
        transition = ctrl.trigger_emergency()
        assert ctrl.view.last_notice == "Geolocation not supported."
        assert geo.requests == []
        assert Effect.CONFIRMATION_SHOWN not in transition
        assert ctrl.view.confirmation is None


# ═══════════════════════════════════════════════════════════════════════════
# SOS & confirmation
# ═══════════════════════════════════════════════════════════════════════════

class TestEmergency:

    def test_trigger_shows_confirmation_with_fresh_fix(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.trigger_emergency()
        modal = ctrl.view.confirmation
        assert modal.latitude_text == "-0.303123"
        assert modal.longitude_text == "36.080046"
        assert modal.time_text == "14:05:09 • 17/10/2026"
        assert modal.location_note == "Live GPS (±13m)"

    def test_confirmation_lists_roster(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.add_contact("Sis", "0711")
        ctrl.trigger_emergency()
        rows = ctrl.view.confirmation.notified
        assert [(r.name, r.phone) for r in rows] == [
            ("Mum", "+254 712 345 678"), ("Police Station", "999"), ("Sis", "0711"),
        ]

    def test_confirmation_empty_roster_message(self):
        store = InMemoryKeyValueStore({KEY: "[]"})
        ctrl, _ = _make_controller([NAKURU], store=store)
        ctrl.trigger_emergency()
        assert ctrl.view.confirmation.notified == []
        assert ctrl.view.confirmation.empty_message == NO_NOTIFIED_CONTACTS_MESSAGE

    def test_press_feedback_released(self):
        ctrl, _ = _make_controller([NAKURU])
        transition = ctrl.trigger_emergency()
        assert Effect.SOS_PRESSED in transition
        assert ctrl.view.sos_pressed is False

    def test_press_feedback_with_deferred_release(self):
        pending = []
        geo = ScriptedGeolocationProvider([NAKURU])
        ctrl = ClientAlertController(
            HeadlessMap(), geo, InMemoryKeyValueStore(),
            config=Settings(),
            schedule=lambda ms, cb: pending.append((ms, cb)),
        )
        ctrl.trigger_emergency()
        assert ctrl.view.sos_pressed is True
        ms, release = pending[0]
        assert ms == 150
        release()
        assert ctrl.view.sos_pressed is False

    def test_dismiss_is_idempotent(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.trigger_emergency()
        assert Effect.CONFIRMATION_HIDDEN in ctrl.dismiss_confirmation()
        assert ctrl.dismiss_confirmation().effects == ()
        assert ctrl.view.confirmation is None

    def test_simulated_call_notice_then_dismiss(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.trigger_emergency()
        ctrl.simulate_emergency_call()
        assert "SIMULATED CALL TO 999" in ctrl.view.last_notice
        assert ctrl.view.confirmation is None

    def test_render_text_includes_modal(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.trigger_emergency()
        text = render_text(ctrl.view)
        assert "SOS ALERT SENT" in text
        assert "-0.303123" in text
        assert "Police Station" in text


class TestOverlappingAcquisitions:

    def test_last_completion_wins(self):
        ctrl, geo = _make_controller([NAKURU, MOMBASA], auto_resolve=False)
        ctrl.trigger_emergency()
        ctrl.trigger_emergency()
        assert len(geo.pending) == 2

        geo.resolve(1)  # MOMBASA completes first
        geo.resolve(0)  # NAKURU completes last
        assert ctrl.current == NAKURU.coordinate
        assert ctrl.map.center == NAKURU.coordinate
        assert ctrl.view.confirmation.latitude_text == "-0.303123"

    def test_nothing_changes_until_callback(self):
        ctrl, geo = _make_controller([NAKURU], auto_resolve=False)
        ctrl.trigger_emergency()
        assert ctrl.current == ctrl.fallback
        assert ctrl.view.confirmation is None
        geo.resolve_next()
        assert ctrl.view.confirmation is not None


# ═══════════════════════════════════════════════════════════════════════════
# Contacts through the dispatcher
# ═══════════════════════════════════════════════════════════════════════════

class TestContactEvents:

    def test_add_persists_and_renders(self):
        store = InMemoryKeyValueStore()
        ctrl, _ = _make_controller(store=store)
        transition = ctrl.handle(AddContact(name=" Sis ", phone=" 0711 "))
        assert Effect.FORM_CLEARED in transition
        assert ctrl.view.contacts.rows[-1].name == "Sis"
        assert json.loads(store.get_item(KEY))[-1] == {"name": "Sis", "phone": "0711"}

    @pytest.mark.parametrize("name,phone", [("", "0711"), ("Sis", "  "), ("", "")])
    def test_add_invalid_leaves_roster(self, name, phone):
        store = InMemoryKeyValueStore()
        ctrl, _ = _make_controller(store=store)
        before = store.get_item(KEY)
        transition = ctrl.add_contact(name, phone)
        assert transition.effects == (Effect.NOTICE,)
        assert ctrl.view.last_notice == "Please enter both name and phone."
        assert store.get_item(KEY) == before
        assert len(ctrl.roster) == 2

    def test_delete_confirmed(self):
        ctrl, _ = _make_controller(confirm=lambda prompt: True)
        ctrl.add_contact("Sis", "0711")
        ctrl.delete_contact(1)
        assert [r.name for r in ctrl.view.contacts.rows] == ["Mum", "Sis"]

    def test_delete_declined(self):
        prompts = []
        ctrl, _ = _make_controller(confirm=lambda p: prompts.append(p) or False)
        assert ctrl.delete_contact(0).effects == ()
        assert prompts == ["Remove this contact?"]
        assert len(ctrl.roster) == 2

    def test_add_with_failing_store_surfaces_notice(self):
        store = _FlakyStore()
        ctrl, _ = _make_controller(store=store)
        store.fail_writes = True
        transition = ctrl.add_contact("Aunt", "123")
        assert transition.effects == (Effect.NOTICE,)
        assert "disk full" in ctrl.view.last_notice
        assert len(ctrl.roster) == 2
        assert len(json.loads(store.get_item(KEY))) == 2

    def test_delete_with_failing_store_surfaces_notice(self):
        store = _FlakyStore()
        ctrl, _ = _make_controller(store=store, confirm=lambda p: True)
        store.fail_writes = True
        transition = ctrl.delete_contact(0)
        assert transition.effects == (Effect.NOTICE,)
        assert [r.name for r in ctrl.view.contacts.rows] == ["Mum", "Police Station"]

    def test_initialize_with_failing_store_still_renders(self):
        store = _FlakyStore()
        store.fail_writes = True
        ctrl, _ = _make_controller(store=store)
        assert "Could not save contacts" in ctrl.view.last_notice
        assert ctrl.view.contacts.rows == []

    def test_delete_last_shows_empty_state(self):
        ctrl, _ = _make_controller()
        ctrl.delete_contact(0)
        ctrl.delete_contact(0)
        assert ctrl.view.contacts.rows == []
        assert ctrl.view.contacts.empty_message.startswith("No contacts yet.")


class TestKeyboard:

    def test_space_triggers_sos(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.handle(KeyPressed(key=" "))
        assert ctrl.view.confirmation_visible

    @pytest.mark.parametrize("tag", ["INPUT", "textarea"])
    def test_space_in_text_field_ignored(self, tag):
        ctrl, geo = _make_controller([NAKURU])
        assert ctrl.handle(KeyPressed(key=" ", focus_tag=tag)).effects == ()
        assert geo.requests == []

    def test_other_keys_ignored(self):
        ctrl, geo = _make_controller([NAKURU])
        ctrl.handle(KeyPressed(key="Enter"))
        assert geo.requests == []


class TestDispatcher:

    def test_unknown_event_rejected(self):
        ctrl, _ = _make_controller()
        with pytest.raises(TypeError):
            ctrl.handle(object())

    def test_failure_event_directly(self):
        ctrl, _ = _make_controller()
        ctrl.handle(FixFailed(code=1, is_emergency=True))
        assert ctrl.view.confirmation_visible


# ═══════════════════════════════════════════════════════════════════════════
# Alert reporting
# ═══════════════════════════════════════════════════════════════════════════

class TestAlertReporting:

    def test_reports_fresh_fix(self):
        reporter = MagicMock()
        reporter.report_alert.return_value = {"message": "Alert sent to 2 contact(s)."}
        ctrl, _ = _make_controller([NAKURU], reporter=reporter)
        ctrl.trigger_emergency()

        reporter.report_alert.assert_called_once_with(
            NAKURU.coordinate.latitude, NAKURU.coordinate.longitude,
        )
        assert ctrl.view.confirmation.report_text == "Alert sent to 2 contact(s)."
        fix_transition = next(
            t for t in ctrl.history if isinstance(t.event, FixAcquired)
        )
        assert Effect.ALERT_REPORTED in fix_transition

    def test_fallback_location_reported_as_unknown(self):
        reporter = MagicMock()
        reporter.report_alert.return_value = {"message": "ok"}
        ctrl, _ = _make_controller([LocationErrorCode.TIMEOUT], reporter=reporter)
        ctrl.trigger_emergency()
        reporter.report_alert.assert_called_once_with(None, None)

    def test_report_failure_does_not_block_sos(self):
        reporter = MagicMock()
        reporter.report_alert.side_effect = AlertReportError(
            "http://localhost:3001/api/alert", "connection refused",
        )
        ctrl, _ = _make_controller([NAKURU], reporter=reporter)
        ctrl.trigger_emergency()
        assert ctrl.view.confirmation_visible
        assert "Could not reach the alert service" in ctrl.view.last_notice

    def test_no_reporter_no_report(self):
        ctrl, _ = _make_controller([NAKURU])
        ctrl.trigger_emergency()
        assert ctrl.view.confirmation.report_text is None
