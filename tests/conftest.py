"""Shared fixtures: an in-memory content-addressed store and tree helpers."""

import json
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest
from multiformats import multihash

from dagsync.exceptions import (
    DagSyncConflictError,
    DagSyncFileError,
    DagSyncNotFoundError,
)
from dagsync.models import ContentAddress, DirectoryObject, Link, LinkKind
from dagsync.output import OutputFormatter
from dagsync.store import ContentStore


def address_for(payload: bytes) -> ContentAddress:
    """CIDv0 of the sha2-256 digest of ``payload``."""
    return ContentAddress.from_multihash(multihash.digest(payload, "sha2-256"))


class FakeContentStore(ContentStore):
    """In-memory store with real content addressing.

    A directory's address depends only on its sorted (name, target, kind)
    links, so patching a directory into a given state yields the same
    address as uploading that state from scratch.
    """

    def __init__(self):
        self.directories: dict[ContentAddress, DirectoryObject] = {}
        self.files: dict[ContentAddress, bytes] = {}
        self.calls: list[tuple[str, str]] = []

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    def names(self, operation: str) -> list[str]:
        return [name for op, name in self.calls if op == operation]

    def _store_directory(self, links: dict[str, Link]) -> DirectoryObject:
        ordered = tuple(sorted(links.values(), key=lambda link: link.name))
        payload = json.dumps(
            [[link.name, link.target.multihash.hex(), link.kind.value] for link in ordered]
        ).encode()
        directory = DirectoryObject(address=address_for(b"dir:" + payload), links=ordered)
        self.directories[directory.address] = directory
        return directory

    def _store_file(self, path: Path) -> ContentAddress:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DagSyncFileError(path, str(e)) from e
        address = address_for(b"file:" + data)
        self.files[address] = data
        return address

    def _put_tree(self, path: Path) -> DirectoryObject:
        links = {}
        for child in sorted(path.iterdir()):
            if child.is_dir():
                target = self._put_tree(child).address
                links[child.name] = Link(child.name, target, 0, LinkKind.DIRECTORY)
            else:
                target = self._store_file(child)
                size = len(self.files[target])
                links[child.name] = Link(child.name, target, size, LinkKind.FILE)
        return self._store_directory(links)

    def fetch_directory(self, address: ContentAddress) -> DirectoryObject:
        self.calls.append(("fetch", str(address)))
        if address not in self.directories:
            raise DagSyncNotFoundError(f"{address} is not a directory")
        return self.directories[address]

    def upload_file(self, path: Path) -> ContentAddress:
        self.calls.append(("upload_file", Path(path).name))
        return self._store_file(Path(path))

    def upload_tree(self, path: Path) -> ContentAddress:
        self.calls.append(("upload_tree", Path(path).name))
        return self._put_tree(Path(path)).address

    def patch_add_link(
        self, parent: ContentAddress, name: str, child: ContentAddress
    ) -> DirectoryObject:
        self.calls.append(("patch", name))
        if parent not in self.directories:
            raise DagSyncConflictError(f"{parent} does not exist")
        kind = LinkKind.DIRECTORY if child in self.directories else LinkKind.FILE
        size = len(self.files.get(child, b""))
        links = {link.name: link for link in self.directories[parent].links}
        links[name] = Link(name, child, size, kind)
        return self._store_directory(links)

    def publish(self, path: Path) -> ContentAddress:
        """Upload a tree without recording the call."""
        return self._put_tree(Path(path)).address


def make_tree(root: Path, layout: dict) -> Path:
    """Create files (str/bytes values) and directories (dict values)."""
    root.mkdir(parents=True, exist_ok=True)
    for name, value in layout.items():
        path = root / name
        if isinstance(value, dict):
            make_tree(path, value)
        elif isinstance(value, bytes):
            path.write_bytes(value)
        else:
            path.write_text(value)
    return root


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store():
    """Create an empty in-memory content store."""
    return FakeContentStore()


@pytest.fixture
def mock_output():
    """Create a mock output formatter."""
    output = Mock(spec=OutputFormatter)
    output.quiet = True
    output.json_output = False
    return output
