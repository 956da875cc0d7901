"""
test_roster.py — Tests for the client contact roster and its stores.

Covers:
    • Seeding when nothing is stored
    • add / delete_at validation and ordering
    • Memory ↔ store synchronisation after every mutation
    • Persist → reload round trip (in-memory and JSON file stores)
    • Corrupt stored data

Run with:
    pytest tests/test_roster.py -v
"""

from __future__ import annotations

import json

import pytest

from safe_signal.client.collaborators import InMemoryKeyValueStore, JsonFileKeyValueStore
from safe_signal.client.models import RosterContact
from safe_signal.client.roster import (
    DEFAULT_ROSTER,
    EMPTY_ROSTER_MESSAGE,
    ContactRoster,
    RosterStorageError,
    RosterValidationError,
)

KEY = "safeSOS_contacts"


def _yes(prompt: str) -> bool:
    return True


def _no(prompt: str) -> bool:
    return False


def _stored(store, key=KEY):
    return [RosterContact.from_dict(d) for d in json.loads(store.get_item(key))]


def _make_roster(contacts=None, store=None) -> ContactRoster:
    store = store if store is not None else InMemoryKeyValueStore()
    if contacts is not None:
        store.set_item(KEY, json.dumps([c.to_dict() for c in contacts]))
    roster = ContactRoster(store, key=KEY)
    roster.load()
    return roster


ABC = [
    RosterContact("A", "1"),
    RosterContact("B", "2"),
    RosterContact("C", "3"),
]


class TestLoad:

    def test_seeds_defaults_when_absent(self):
        store = InMemoryKeyValueStore()
        roster = _make_roster(store=store)
        assert roster.contacts == list(DEFAULT_ROSTER)
        assert _stored(store) == list(DEFAULT_ROSTER)

    def test_empty_list_is_not_reseeded(self):
        roster = _make_roster(contacts=[])
        assert roster.contacts == []
        view = roster.render()
        assert view.rows == []
        assert view.empty_message == EMPTY_ROSTER_MESSAGE

    def test_corrupt_json_reseeds(self):
        store = InMemoryKeyValueStore({KEY: "{broken"})
        roster = _make_roster(store=store)
        assert roster.contacts == list(DEFAULT_ROSTER)
        assert _stored(store) == list(DEFAULT_ROSTER)

    def test_malformed_entries_dropped(self):
        store = InMemoryKeyValueStore(
            {KEY: json.dumps([{"name": "A", "phone": "1"}, {"name": "no phone"}, "x"])},
        )
        roster = _make_roster(store=store)
        assert roster.contacts == [RosterContact("A", "1")]


class TestAdd:

    def test_appends_trimmed(self):
        roster = _make_roster(contacts=ABC)
        roster.add("  D ", " 4 ")
        assert roster.contacts[-1] == RosterContact("D", "4")

    @pytest.mark.parametrize("name,phone", [
        ("", "1"), ("A", ""), ("   ", "1"), ("A", "\t"), (None, "1"),
    ])
    def test_rejects_blank_fields(self, name, phone):
        store = InMemoryKeyValueStore()
        roster = _make_roster(contacts=ABC, store=store)
        before = store.get_item(KEY)
        with pytest.raises(RosterValidationError, match="Please enter both"):
            roster.add(name, phone)
        assert roster.contacts == ABC
        assert store.get_item(KEY) == before


class TestDeleteAt:

    def test_removes_exactly_one_preserving_order(self):
        roster = _make_roster(contacts=ABC)
        assert roster.delete_at(1, _yes) is True
        assert roster.contacts == [ABC[0], ABC[2]]

    def test_declined_is_noop(self):
        roster = _make_roster(contacts=ABC)
        assert roster.delete_at(0, _no) is False
        assert roster.contacts == ABC

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_out_of_range_is_noop_without_prompt(self, index):
        asked = []
        roster = _make_roster(contacts=ABC)
        assert roster.delete_at(index, lambda p: asked.append(p) or True) is False
        assert roster.contacts == ABC
        assert asked == []


class TestSync:

    def test_store_matches_memory_after_each_mutation(self):
        store = InMemoryKeyValueStore()
        roster = _make_roster(store=store)
        assert _stored(store) == roster.contacts

        roster.add("Sis", "0711")
        assert _stored(store) == roster.contacts

        roster.delete_at(0, _yes)
        assert _stored(store) == roster.contacts

    def test_round_trip_in_memory(self):
        store = InMemoryKeyValueStore()
        first = _make_roster(contacts=ABC, store=store)
        first.add("D", "4")
        second = _make_roster(store=store)
        assert second.contacts == first.contacts

    def test_round_trip_json_file(self, tmp_path):
        path = tmp_path / "nested" / "storage.json"
        first = _make_roster(store=JsonFileKeyValueStore(path))
        first.add("Ünïcode", "+254 700 000 000")

        second = _make_roster(store=JsonFileKeyValueStore(path))
        assert second.contacts == first.contacts
        assert second.contacts[-1].name == "Ünïcode"


class TestRender:

    def test_rows_have_index_and_call_link(self):
        rows = _make_roster(contacts=ABC).render().rows
        assert [r.index for r in rows] == [0, 1, 2]
        assert rows[0].call_link == "tel:1"


class TestJsonFileKeyValueStore:

    def test_missing_file_reads_none(self, tmp_path):
        assert JsonFileKeyValueStore(tmp_path / "none.json").get_item(KEY) is None

    def test_keys_are_independent(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "s.json")
        store.set_item("a", "1")
        store.set_item("b", "2")
        store.remove_item("a")
        assert store.get_item("a") is None
        assert store.get_item("b") == "2"

    def test_unreadable_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text("not json", encoding="utf-8")
        store = JsonFileKeyValueStore(path)
        assert store.get_item(KEY) is None
        store.set_item(KEY, "[]")
        assert store.get_item(KEY) == "[]"


class _FlakyStore(InMemoryKeyValueStore):
    """Writes raise OSError while ``fail_writes`` is set."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail_writes = False

    def set_item(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        super().set_item(key, value)


class TestStorageFailure:

    def test_failed_add_leaves_memory_and_store_in_sync(self):
        store = _FlakyStore()
        roster = _make_roster(store=store)
        store.fail_writes = True
        with pytest.raises(RosterStorageError, match="disk full"):
            roster.add("Aunt", "123")
        assert roster.contacts == list(DEFAULT_ROSTER)
        assert _stored(store) == roster.contacts

    def test_failed_delete_leaves_memory_and_store_in_sync(self):
        store = _FlakyStore()
        roster = _make_roster(contacts=ABC, store=store)
        store.fail_writes = True
        with pytest.raises(RosterStorageError):
            roster.delete_at(1, _yes)
        assert roster.contacts == ABC
        assert _stored(store) == ABC

    def test_failed_seed_leaves_roster_empty(self):
        store = _FlakyStore()
        store.fail_writes = True
        with pytest.raises(RosterStorageError):
            ContactRoster(store, key=KEY).load()
        assert store.get_item(KEY) is None

    def test_unwritable_json_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        roster = ContactRoster(JsonFileKeyValueStore(blocker / "storage.json"), key=KEY)
        with pytest.raises(RosterStorageError):
            roster.load()
        assert roster.contacts == []
