"""Local directory listing for sync operations."""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import DagSyncFileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalEntry:
    """An immediate child of a local directory."""

    name: str
    """File name, compared against remote link names as-is"""

    path: Path
    """Full path to the entry"""

    is_dir: bool
    """True for directories (symlinks are followed)"""

    @property
    def extension(self) -> str:
        """Lowercase extension including the dot, or an empty string."""
        return self.path.suffix.lower()


def list_entries(local_dir: Path) -> list[LocalEntry]:
    """List the files and subdirectories directly inside ``local_dir``.

    Entries are sorted by name so that runs over the same tree issue the
    same calls in the same order. Entries that are neither regular files
    nor directories (broken symlinks, sockets, ...) are skipped.

    Raises:
        DagSyncFileError: If the directory cannot be listed
    """
    entries = []
    try:
        for item in Path(local_dir).iterdir():
            is_dir = item.is_dir()
            if is_dir or item.is_file():
                entries.append(LocalEntry(item.name, item, is_dir))
            else:
                logger.warning(f"Skipping special file {item}")
    except OSError as e:
        raise DagSyncFileError(local_dir, e.strerror or str(e)) from e

    return sorted(entries, key=lambda entry: entry.name)
