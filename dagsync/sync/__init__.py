"""Tree synchronizer for content-addressed directory objects."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import TreeSynchronizer
from .scanner import LocalEntry, list_entries
from .stats import SyncStats

__all__ = [
    "TreeSynchronizer",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "LocalEntry",
    "list_entries",
    "SyncStats",
]
