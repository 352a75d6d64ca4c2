"""Core data models for sphere time tracking."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from spent_time.core.dates import start_of_day

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 1

_HEX_PATTERN = re.compile(r"^#[0-9A-F]{6}$")


def normalize_hex(value: str) -> str:
    """Normalize a hex color string to upper-case ``#RRGGBB`` form.

    Args:
        value: Color such as 'ff8c00', '#FF8C00' or ' #ff8c00 '

    Returns:
        Normalized color string

    Raises:
        ValueError: If the value is not a 6 digit hex color
    """
    color = value.strip().upper()
    if not color.startswith("#"):
        color = f"#{color}"
    if not _HEX_PATTERN.match(color):
        raise ValueError(f"Invalid hex color: {value!r}")
    return color


class TimeOfDay(str, Enum):
    """Time-of-day label attached to an entry."""

    ANY = "Any"
    MORNING = "Morning"
    DAY = "Day"
    EVENING = "Evening"
    NIGHT = "Night"

    @property
    def symbol(self) -> str:
        """Display symbol for this label."""
        return {
            TimeOfDay.ANY: "🕒",
            TimeOfDay.MORNING: "☀️",
            TimeOfDay.DAY: "☀️",
            TimeOfDay.EVENING: "🌆",
            TimeOfDay.NIGHT: "🌙",
        }[self]

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """Parse a label case-insensitively ('morning' -> MORNING)."""
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        raise ValueError(f"Unknown time of day: {value}")


class AggregationRange(str, Enum):
    """Period used by range-based aggregations."""

    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"


@dataclass
class Sphere:
    """User-defined life category.

    The color is normalized on construction; values that are not 6 digit
    hex colors are replaced by DEFAULT_COLOR.

    Attributes:
        id: Unique identifier (UUID), immutable once assigned
        name: Display name
        color: Hex color (#RRGGBB)
        is_favorite: Whether the sphere is pinned as a favorite
    """

    name: str
    color: str
    id: UUID = field(default_factory=uuid4)
    is_favorite: bool = False

    def __post_init__(self) -> None:
        try:
            self.color = normalize_hex(self.color)
        except (AttributeError, ValueError):
            logger.warning(f"Invalid color {self.color!r} for sphere {self.name!r}, using {DEFAULT_COLOR}")
            self.color = DEFAULT_COLOR

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": str(self.id),
            "name": self.name,
            "color": self.color,
            "isFavorite": self.is_favorite,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Sphere":
        """Create Sphere from dictionary (JSON deserialization)."""
        return cls(
            id=UUID(data["id"]),
            name=data["name"],
            color=data["color"],
            is_favorite=bool(data.get("isFavorite", False)),
        )


@dataclass
class TimeEntry:
    """One recorded block of time assigned to a sphere.

    The date is always truncated to local midnight and minutes are
    clamped to at least 1 on construction.

    Attributes:
        id: Unique identifier (UUID), immutable once assigned
        date: Day of the entry (midnight)
        minutes: Duration in minutes (>= 1)
        sphere_id: Identifier of the owning Sphere
        time_of_day: Time-of-day label
    """

    date: datetime
    minutes: int
    sphere_id: UUID
    time_of_day: TimeOfDay = TimeOfDay.ANY
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        self.date = start_of_day(self.date)
        self.minutes = max(1, int(self.minutes))
        self.time_of_day = TimeOfDay(self.time_of_day)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        The date is written as the UTC instant of local midnight.
        """
        instant = self.date.astimezone(timezone.utc)
        return {
            "id": str(self.id),
            "date": instant.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "minutes": self.minutes,
            "sphereID": str(self.sphere_id),
            "timeOfDay": self.time_of_day.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        """Create TimeEntry from dictionary (JSON deserialization)."""
        return cls(
            id=UUID(data["id"]),
            date=datetime.fromisoformat(data["date"].replace("Z", "+00:00")),
            minutes=int(data["minutes"]),
            sphere_id=UUID(data["sphereID"]),
            time_of_day=TimeOfDay(data["timeOfDay"]),
        )


@dataclass
class Snapshot:
    """Complete persisted state: spheres, entries and schema version."""

    spheres: list[Sphere] = field(default_factory=list)
    time_entries: list[TimeEntry] = field(default_factory=list)
    version: int = CURRENT_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "spheres": [s.to_dict() for s in self.spheres],
            "timeEntries": [e.to_dict() for e in self.time_entries],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        """Create Snapshot from dictionary (JSON deserialization)."""
        return cls(
            spheres=[Sphere.from_dict(s) for s in data.get("spheres", [])],
            time_entries=[TimeEntry.from_dict(e) for e in data.get("timeEntries", [])],
            version=int(data["version"]),
        )


@dataclass
class PieSlice:
    """Summed minutes of one sphere over some period."""

    sphere_id: UUID
    total_minutes: int
    id: UUID = field(default_factory=uuid4, compare=False)


PRESET_SPHERES: list[tuple[str, str]] = [
    ("Social", "#FF83A7"),
    ("Family", "#FF8182"),
    ("Rest", "#FE9B71"),
    ("Work", "#9DAEFE"),
    ("Health", "#82FFBB"),
    ("Commute", "#35AD32"),
    ("Sleep", "#3BE98A"),
    ("Self-Care", "#157DEC"),
    ("Learning", "#0091BE"),
]

ACCENT_PALETTE: list[str] = [
    "#FFD60A", "#FF8C00", "#0EA5E9",
    "#22C55E", "#A78BFA", "#F43F5E",
    "#F59E0B", "#14B8A6", "#94A3B8",
]

GRID_PALETTE: list[str] = [
    "#E74C3C", "#EB5A5A", "#F06A3C", "#F2994A", "#F2C94C",
    "#FFF59E", "#B9F36C", "#D9F67A", "#7CF24B", "#B8F5D2",
    "#9AF6FF", "#C8FBFF", "#2155FF", "#98A9FF", "#7D3CFF",
    "#A690FF", "#9A00FF", "#D9A7FF", "#FF5EA8", "#F6A0C1",
]

DEFAULT_COLOR = GRID_PALETTE[0]
