"""
collaborators.py — Interfaces to the things the controller does not own.

    MapWidget           — set_view / place_marker / remove_marker
    GeolocationProvider — one-shot position requests with callbacks
    KeyValueStore       — string-keyed persistence for the contact roster

Local implementations used by the terminal client and the tests:

    HeadlessMap                  — remembers centre, zoom and marker
    ScriptedGeolocationProvider  — replays queued fixes / error codes
    InMemoryKeyValueStore        — dict-backed store
    JsonFileKeyValueStore        — one JSON object on disk
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Tuple, Union

from safe_signal.client.models import Coordinate, Fix, FixOptions, LocationErrorCode

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[Fix], None]
FailureCallback = Callable[[int], None]


# ═══════════════════════════════════════════════════════════════════════════
# Map
# ═══════════════════════════════════════════════════════════════════════════

class MapWidget(ABC):
    """Black-box map renderer."""

    @abstractmethod
    def set_view(self, latitude: float, longitude: float, zoom: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def place_marker(self, latitude: float, longitude: float, popup_html: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_marker(self) -> None:
        raise NotImplementedError


@dataclass
class Marker:
    latitude: float
    longitude: float
    popup_html: str


class HeadlessMap(MapWidget):
    """A map that only keeps state, enough to assert on and to print."""

    def __init__(self):
        self.center: Optional[Coordinate] = None
        self.zoom: Optional[int] = None
        self.marker: Optional[Marker] = None
        self.calls: List[Tuple] = []

    def set_view(self, latitude: float, longitude: float, zoom: int) -> None:
        self.center = Coordinate(latitude, longitude)
        self.zoom = zoom
        self.calls.append(("set_view", latitude, longitude, zoom))

    def place_marker(self, latitude: float, longitude: float, popup_html: str) -> None:
        self.marker = Marker(latitude, longitude, popup_html)
        self.calls.append(("place_marker", latitude, longitude))

    def remove_marker(self) -> None:
        self.marker = None
        self.calls.append(("remove_marker",))


# ═══════════════════════════════════════════════════════════════════════════
# Geolocation
# ═══════════════════════════════════════════════════════════════════════════

class GeolocationProvider(ABC):
    """
    Black-box position source.

    Contract:
    - request_fix() returns immediately; exactly one of the callbacks is
      invoked later (possibly synchronously, before request_fix returns).
    - on_failure receives a numeric error code (1 denied, 2 unavailable,
      3 timeout).
    """

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def request_fix(
        self,
        options: FixOptions,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        raise NotImplementedError


Outcome = Union[Fix, LocationErrorCode, int]


class ScriptedGeolocationProvider(GeolocationProvider):
    """
    Replays queued outcomes, one per request.

    With ``auto_resolve`` each request completes before request_fix()
    returns. Otherwise requests stay pending until resolve_next() or
    resolve(index) is called, which lets callers complete them out of
    order. An empty queue answers POSITION_UNAVAILABLE.
    """

    def __init__(
        self,
        outcomes: Optional[List[Outcome]] = None,
        *,
        auto_resolve: bool = True,
        available: bool = True,
    ):
        self.outcomes: Deque[Outcome] = deque(outcomes or [])
        self.auto_resolve = auto_resolve
        self.available = available
        self.requests: List[FixOptions] = []
        self.pending: List[Tuple[Outcome, SuccessCallback, FailureCallback]] = []

    def is_available(self) -> bool:
        return self.available

    def push(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    def request_fix(
        self,
        options: FixOptions,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        self.requests.append(options)
        outcome = (
            self.outcomes.popleft() if self.outcomes
            else LocationErrorCode.POSITION_UNAVAILABLE
        )
        self.pending.append((outcome, on_success, on_failure))
        if self.auto_resolve:
            self.resolve_next()

    def resolve(self, index: int) -> None:
        outcome, on_success, on_failure = self.pending.pop(index)
        if isinstance(outcome, Fix):
            on_success(outcome)
        else:
            on_failure(int(outcome))

    def resolve_next(self) -> None:
        self.resolve(0)


# ═══════════════════════════════════════════════════════════════════════════
# Key-value store
# ═══════════════════════════════════════════════════════════════════════════

class KeyValueStore(ABC):
    """String-to-string persistence with localStorage semantics."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    All keys live in one JSON object file, rewritten on every change.

    The file is replaced through a temporary sibling so a crash mid-write
    leaves the previous contents intact.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable store %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
