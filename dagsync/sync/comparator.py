"""Per-entry decisions for syncing a local directory into a remote one."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..models import Link, LinkKind
from ..utils import DEFAULT_IMMUTABLE_EXTENSIONS, normalize_extensions
from .scanner import LocalEntry


class SyncAction(str, Enum):
    """Actions that can be taken for a local entry."""

    SKIP_IMMUTABLE = "skip_immutable"
    """Already published file with an immutable extension, left alone"""

    UPDATE_FILE = "update_file"
    """Upload file; patch only if its address changed"""

    ADD_FILE = "add_file"
    """Upload new file and add its link"""

    RECURSE = "recurse"
    """Sync subdirectory; patch only if its address changed"""

    ADD_TREE = "add_tree"
    """Upload new subtree in one call and add its link"""

    REPLACE_KIND = "replace_kind"
    """Remote link has the other kind (file vs directory); recreate it"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one local entry."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    entry: LocalEntry
    """Local entry the decision is about"""

    link: Optional[Link]
    """Remote link with the same name (if exists)"""


class FileComparator:
    """Decides what to do with each local entry given its remote link."""

    def __init__(self, immutable_extensions: Optional[Iterable[str]] = None):
        """Initialize the comparator.

        Args:
            immutable_extensions: Extensions of files that are never
                re-uploaded once a remote link exists, even when their
                local bytes change. Defaults to DEFAULT_IMMUTABLE_EXTENSIONS.
        """
        if immutable_extensions is None:
            immutable_extensions = DEFAULT_IMMUTABLE_EXTENSIONS
        self.immutable_extensions = normalize_extensions(immutable_extensions)

    def is_immutable(self, entry: LocalEntry) -> bool:
        return not entry.is_dir and entry.extension in self.immutable_extensions

    def decide(self, entry: LocalEntry, link: Optional[Link]) -> SyncDecision:
        """Determine the action for a local entry.

        Args:
            entry: Local file or directory
            link: Remote link with the same name, if any

        Returns:
            SyncDecision for this entry
        """
        if link is None:
            if entry.is_dir:
                return SyncDecision(SyncAction.ADD_TREE, "New local directory", entry, None)
            return SyncDecision(SyncAction.ADD_FILE, "New local file", entry, None)

        if self._kind_conflicts(entry, link):
            local_kind = "directory" if entry.is_dir else "file"
            return SyncDecision(
                SyncAction.REPLACE_KIND,
                f"Remote {link.kind.value} replaced by local {local_kind}",
                entry,
                link,
            )

        if entry.is_dir:
            return SyncDecision(SyncAction.RECURSE, "Existing directory", entry, link)

        if self.is_immutable(entry):
            return SyncDecision(
                SyncAction.SKIP_IMMUTABLE,
                f"{entry.extension} files are immutable once published",
                entry,
                link,
            )

        return SyncDecision(SyncAction.UPDATE_FILE, "Existing file", entry, link)

    @staticmethod
    def _kind_conflicts(entry: LocalEntry, link: Link) -> bool:
        # Unknown remote kinds defer to the local entry's kind
        if link.kind == LinkKind.UNKNOWN:
            return False
        if entry.is_dir:
            return link.kind != LinkKind.DIRECTORY
        return link.kind == LinkKind.DIRECTORY
