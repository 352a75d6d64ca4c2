"""Core functionality for sphere time tracking."""

from spent_time.core.models import Snapshot, Sphere, TimeEntry, TimeOfDay
from spent_time.core.store import DataStore

__all__ = ["Sphere", "TimeEntry", "TimeOfDay", "Snapshot", "DataStore"]
