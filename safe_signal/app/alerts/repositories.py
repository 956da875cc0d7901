"""
repositories.py — Storage seams for contacts and the alert log.

Route handlers and the AlertService only ever talk to the abstract
repositories, so a durable backend can replace the in-memory ones
without touching the HTTP contract.

The in-memory implementations guard their state with a lock; each
individual call is atomic. Compound read-modify-write sequences that
span both repositories are serialised one level up, in AlertService.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from safe_signal.app.alerts.models import AlertRecord, Contact

logger = logging.getLogger(__name__)


class ContactRepository(ABC):
    """
    Contact storage.

    Contract:
    - ids are positive integers handed out in strictly increasing order
    - a deleted id is never handed out again
    - list_all() preserves insertion order
    """

    @abstractmethod
    def list_all(self) -> List[Contact]:
        raise NotImplementedError

    @abstractmethod
    def add(self, name: str, phone: str, relation: str = "") -> Contact:
        raise NotImplementedError

    @abstractmethod
    def get(self, contact_id: int) -> Optional[Contact]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, contact_id: int) -> bool:
        """Remove a contact. Returns False when the id is unknown."""
        raise NotImplementedError

    def count(self) -> int:
        return len(self.list_all())


class AlertLogRepository(ABC):
    """
    Append-only alert log. Records are never updated or removed.
    """

    @abstractmethod
    def append(self, record: AlertRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> List[AlertRecord]:
        raise NotImplementedError

    def count(self) -> int:
        return len(self.list_all())


class InMemoryContactRepository(ContactRepository):
    """Contacts kept in a list for the lifetime of the process."""

    def __init__(self, seed: Iterable[Contact] = ()):
        self._lock = threading.Lock()
        self._contacts: List[Contact] = list(seed)
        self._next_id = max((c.id for c in self._contacts), default=0) + 1

    def list_all(self) -> List[Contact]:
        with self._lock:
            return list(self._contacts)

    def add(self, name: str, phone: str, relation: str = "") -> Contact:
        with self._lock:
            contact = Contact(
                id=self._next_id, name=name, phone=phone, relation=relation,
            )
            self._next_id += 1
            self._contacts.append(contact)
        logger.debug("Stored contact %d (%s)", contact.id, contact.name)
        return contact

    def get(self, contact_id: int) -> Optional[Contact]:
        with self._lock:
            for contact in self._contacts:
                if contact.id == contact_id:
                    return contact
        return None

    def delete(self, contact_id: int) -> bool:
        with self._lock:
            for idx, contact in enumerate(self._contacts):
                if contact.id == contact_id:
                    del self._contacts[idx]
                    return True
        return False


class InMemoryAlertLogRepository(AlertLogRepository):
    """Alert records kept in insertion order for the lifetime of the process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[AlertRecord] = []

    def append(self, record: AlertRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_all(self) -> List[AlertRecord]:
        with self._lock:
            return list(self._records)
