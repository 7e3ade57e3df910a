"""Statistics collected during a sync pass."""

from dataclasses import dataclass, field


@dataclass
class SyncStats:
    """Counters for one top-level sync call."""

    uploads: int = 0
    """Files and trees sent to the store"""

    patches: int = 0
    """Link patches applied, across all directory levels"""

    unchanged: int = 0
    """Entries whose upload produced the existing address"""

    skipped: int = 0
    """Immutable-once-published files that were not re-uploaded"""

    recursed: int = 0
    """Subdirectories synced recursively"""

    replaced: int = 0
    """Links replaced because the local entry changed kind"""

    drift: list[str] = field(default_factory=list)
    """Remote paths with no local counterpart"""

    def to_dict(self) -> dict:
        """Convert stats to a dictionary for JSON output."""
        return {
            "uploads": self.uploads,
            "patches": self.patches,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "recursed": self.recursed,
            "replaced": self.replaced,
            "drift": list(self.drift),
        }
