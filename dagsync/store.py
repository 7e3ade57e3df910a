"""Content store capability interface."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .exceptions import DagSyncDecodeError, DagSyncFileError
from .models import ContentAddress, DirectoryObject

logger = logging.getLogger(__name__)

# Substrings of daemon error messages meaning "nothing usable at this path"
NOT_FOUND_MARKERS = (
    "not found",
    "no link named",
    "invalid path",
    "invalid cid",
    "could not resolve",
    "failed to resolve",
    "not a directory",
)


class ContentStore(ABC):
    """The four content store operations the synchronizer depends on.

    Implementations choose the transport (daemon RPC, CLI process, ...).
    Every call is a blocking round trip to the store.
    """

    @abstractmethod
    def fetch_directory(self, address: ContentAddress) -> DirectoryObject:
        """Fetch the directory object at ``address``.

        Raises:
            DagSyncNotFoundError: If the address is not a directory
            DagSyncTransportError: If the store cannot be reached
            DagSyncDecodeError: If the response does not parse
        """

    @abstractmethod
    def upload_file(self, path: Path) -> ContentAddress:
        """Upload a single file without pinning it and return its address.

        Raises:
            DagSyncFileError: If the file cannot be read
            DagSyncTransportError: If the upload fails
        """

    @abstractmethod
    def upload_tree(self, path: Path) -> ContentAddress:
        """Upload a whole directory tree without pinning it.

        Raises:
            DagSyncFileError: If part of the tree cannot be read
            DagSyncTransportError: If the upload fails
        """

    @abstractmethod
    def patch_add_link(
        self, parent: ContentAddress, name: str, child: ContentAddress
    ) -> DirectoryObject:
        """Return a new directory equal to ``parent`` with ``name`` -> ``child``.

        An existing link with the same name is replaced.

        Raises:
            DagSyncConflictError: If the store rejects the patch
            DagSyncTransportError: If the store cannot be reached
        """

    def close(self) -> None:
        """Release resources held by the store client."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def is_not_found_message(message: str) -> bool:
    """Check whether a store error message means the address does not resolve."""
    lowered = message.lower()
    return any(marker in lowered for marker in NOT_FOUND_MARKERS)


def check_link_name(name: str) -> None:
    """Reject names the store would interpret as a path."""
    if not name or "/" in name:
        raise ValueError(f"Invalid link name: {name!r}")


def parse_json_lines(text: str) -> list[dict[str, Any]]:
    """Parse newline-delimited JSON as streamed by ``add``.

    Raises:
        DagSyncDecodeError: If a line is not a JSON object
    """
    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except ValueError as e:
            raise DagSyncDecodeError(f"Invalid JSON line from store: {line!r}") from e
        if not isinstance(entry, dict):
            raise DagSyncDecodeError(f"Expected a JSON object, got {line!r}")
        entries.append(entry)
    return entries


def address_from_add_output(
    entries: list[dict[str, Any]], name: str
) -> ContentAddress:
    """Pick the address of ``name`` from ``add`` output entries.

    A recursive add reports every file and directory it stored; the root
    is the entry named after the uploaded path, which is also the last one.
    """
    if not entries:
        raise DagSyncDecodeError("Store returned no entries for upload")
    chosen = entries[-1]
    for entry in entries:
        if entry.get("Name") == name:
            chosen = entry
    try:
        return ContentAddress.parse(chosen["Hash"])
    except (KeyError, ValueError) as e:
        raise DagSyncDecodeError(f"Malformed upload result {chosen!r}") from e


def walk_tree(root: Path):
    """Yield (relative posix path, path, is_dir) for a tree, parents first.

    The relative paths start with the root directory's own name.
    """
    yield root.name, root, True
    try:
        children = sorted(root.iterdir(), key=lambda item: item.name)
    except OSError as e:
        raise DagSyncFileError(root, e.strerror or str(e)) from e

    for item in children:
        if item.is_dir():
            for relative, child_path, is_dir in walk_tree(item):
                yield f"{root.name}/{relative}", child_path, is_dir
        elif item.is_file():
            yield f"{root.name}/{item.name}", item, False
        else:
            logger.warning(f"Skipping special file {item}")
