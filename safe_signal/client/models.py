"""
models.py — Value types used by the Client Alert Controller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional


class LocationErrorCode(IntEnum):
    """
    Geolocation failure classes, numbered like the browser PositionError.

    Any code the provider reports outside 1 and 2 is treated as TIMEOUT.
    """
    PERMISSION_DENIED    = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT              = 3

    @classmethod
    def classify(cls, code: int) -> "LocationErrorCode":
        if code == cls.PERMISSION_DENIED:
            return cls.PERMISSION_DENIED
        if code == cls.POSITION_UNAVAILABLE:
            return cls.POSITION_UNAVAILABLE
        return cls.TIMEOUT

    @property
    def reason(self) -> str:
        return {
            LocationErrorCode.PERMISSION_DENIED: "Permission denied.",
            LocationErrorCode.POSITION_UNAVAILABLE: "Position unavailable.",
            LocationErrorCode.TIMEOUT: "Timeout.",
        }[self]


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0

    def format(self, decimals: int = 5) -> str:
        return f"{self.latitude:.{decimals}f}, {self.longitude:.{decimals}f}"


@dataclass(frozen=True)
class Fix:
    """A single geolocation reading."""
    coordinate: Coordinate
    accuracy: Optional[float] = None  # metres

    @property
    def accuracy_m(self) -> Optional[int]:
        return None if self.accuracy is None else int(round(self.accuracy))


@dataclass(frozen=True)
class FixOptions:
    """Options passed with every position request."""
    enable_high_accuracy: bool = True
    timeout_ms: int = 10_000
    maximum_age_ms: int = 0


@dataclass(frozen=True)
class RosterContact:
    """A locally stored contact. Its position in the roster is its identity."""
    name: str
    phone: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "phone": self.phone}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "RosterContact":
        return cls(name=str(raw["name"]), phone=str(raw["phone"]))
