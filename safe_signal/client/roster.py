"""
roster.py — The user's local emergency contacts.

The roster is a list held in memory and mirrored, as one JSON array of
{name, phone} objects, to a single key of a KeyValueStore. Every
mutation writes the new list to the store first and only then adopts
it in memory, so a failed write leaves both sides as they were.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from safe_signal.client.collaborators import KeyValueStore
from safe_signal.client.models import RosterContact

logger = logging.getLogger(__name__)

DEFAULT_ROSTER = (
    RosterContact(name="Mum", phone="+254 712 345 678"),
    RosterContact(name="Police Station", phone="999"),
)

EMPTY_ROSTER_MESSAGE = "No contacts yet.\nAdd one below 👇"
REQUIRED_FIELDS_MESSAGE = "Please enter both name and phone."
DELETE_PROMPT = "Remove this contact?"


class RosterValidationError(ValueError):
    """Name or phone was empty after trimming."""


class RosterStorageError(RuntimeError):
    """The store refused the write; the roster in memory is unchanged."""


@dataclass(frozen=True)
class ContactRow:
    index: int
    name: str
    phone: str

    @property
    def call_link(self) -> str:
        return f"tel:{self.phone}"


@dataclass(frozen=True)
class RosterView:
    rows: List[ContactRow]
    empty_message: Optional[str] = None


class ContactRoster:
    """
    Parameters
    ----------
    store : KeyValueStore
    key : str
        Storage key holding the serialized roster.
    """

    def __init__(self, store: KeyValueStore, key: str = "safeSOS_contacts"):
        self.store = store
        self.key = key
        self._contacts: List[RosterContact] = []

    @property
    def contacts(self) -> List[RosterContact]:
        return list(self._contacts)

    def __len__(self) -> int:
        return len(self._contacts)

    # ── persistence ──

    def _commit(self, contacts: List[RosterContact]) -> None:
        """Persist ``contacts`` and adopt them only once the write succeeds."""
        try:
            self.store.set_item(
                self.key, json.dumps([c.to_dict() for c in contacts]),
            )
        except OSError as exc:
            logger.error("Could not persist roster under %r: %s", self.key, exc)
            raise RosterStorageError(f"Could not save contacts: {exc}") from exc
        self._contacts = contacts

    def _parse(self, raw: str) -> Optional[List[RosterContact]]:
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Stored roster under %r is not JSON, reseeding", self.key)
            return None
        if not isinstance(data, list):
            logger.warning("Stored roster under %r is not a list, reseeding", self.key)
            return None
        contacts = []
        for item in data:
            try:
                contacts.append(RosterContact.from_dict(item))
            except (KeyError, TypeError):
                logger.warning("Dropping malformed roster entry: %r", item)
        return contacts

    def load(self) -> RosterView:
        """Read the persisted roster, seeding the defaults when there is none."""
        raw = self.store.get_item(self.key)
        contacts = self._parse(raw) if raw is not None else None

        if contacts is None:
            self._commit(list(DEFAULT_ROSTER))
            logger.info("Seeded default roster (%d contacts)", len(self._contacts))
        else:
            self._contacts = contacts
            logger.debug("Loaded %d contacts from %r", len(contacts), self.key)
        return self.render()

    # ── mutation ──

    def add(self, name: str, phone: str) -> RosterContact:
        """
        Append a contact. Raises RosterValidationError on blank input and
        RosterStorageError when the store cannot be written.
        """
        name, phone = (name or "").strip(), (phone or "").strip()
        if not name or not phone:
            raise RosterValidationError(REQUIRED_FIELDS_MESSAGE)

        contact = RosterContact(name=name, phone=phone)
        self._commit(self._contacts + [contact])
        return contact

    def delete_at(self, index: int, confirm: Callable[[str], bool]) -> bool:
        """
        Remove the contact at ``index`` once ``confirm`` agrees.

        Returns True when a contact was removed. A declined prompt or an
        index outside the roster leaves everything untouched.
        """
        if not 0 <= index < len(self._contacts):
            logger.warning("Delete ignored: no contact at index %d", index)
            return False
        if not confirm(DELETE_PROMPT):
            return False

        removed = self._contacts[index]
        self._commit(self._contacts[:index] + self._contacts[index + 1:])
        logger.info("Removed contact %s at index %d", removed.name, index)
        return True

    # ── view ──

    def render(self) -> RosterView:
        if not self._contacts:
            return RosterView(rows=[], empty_message=EMPTY_ROSTER_MESSAGE)
        return RosterView(rows=[
            ContactRow(index=i, name=c.name, phone=c.phone)
            for i, c in enumerate(self._contacts)
        ])
