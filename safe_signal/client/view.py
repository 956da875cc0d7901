"""
view.py — Everything the SOS page would show, as plain data.

The controller only ever writes ViewState; render_text() turns it into
something a terminal can print. Nothing here touches the controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from safe_signal.client.roster import ContactRow, RosterView

NO_NOTIFIED_CONTACTS_MESSAGE = "No personal contacts added yet"


@dataclass
class ConfirmationView:
    """The SOS confirmation modal."""
    time_text: str
    latitude_text: str
    longitude_text: str
    location_note: str
    notified: List[ContactRow] = field(default_factory=list)
    empty_message: Optional[str] = None
    report_text: Optional[str] = None


@dataclass
class ViewState:
    location_text: str = ""
    accuracy_badge: Optional[str] = None  # None = hidden
    sos_pressed: bool = False
    contacts: RosterView = field(default_factory=lambda: RosterView(rows=[]))
    confirmation: Optional[ConfirmationView] = None
    notices: List[str] = field(default_factory=list)

    @property
    def confirmation_visible(self) -> bool:
        return self.confirmation is not None

    @property
    def last_notice(self) -> Optional[str]:
        return self.notices[-1] if self.notices else None


def render_text(view: ViewState) -> str:
    """Plain-text rendering of the page for the terminal client."""
    lines = [f"Location: {view.location_text or '—'}"]
    if view.accuracy_badge:
        lines.append(f"          {view.accuracy_badge}")

    lines.append("")
    lines.append("Emergency contacts:")
    if view.contacts.empty_message:
        lines.extend(f"  {line}" for line in view.contacts.empty_message.splitlines())
    for row in view.contacts.rows:
        lines.append(f"  [{row.index}] {row.name:<20} {row.phone:<18} {row.call_link}")

    modal = view.confirmation
    if modal is not None:
        lines.append("")
        lines.append("=" * 50)
        lines.append("  🚨 SOS ALERT SENT")
        lines.append(f"  {modal.time_text}")
        lines.append(f"  Latitude:  {modal.latitude_text}")
        lines.append(f"  Longitude: {modal.longitude_text}")
        lines.append(f"  {modal.location_note}")
        lines.append("  Contacts notified:")
        if modal.empty_message:
            lines.append(f"    {modal.empty_message}")
        for row in modal.notified:
            lines.append(f"    ✓ {row.name:<20} {row.phone}")
        if modal.report_text:
            lines.append(f"  {modal.report_text}")
        lines.append("=" * 50)

    return "\n".join(lines)
