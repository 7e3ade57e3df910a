"""Content store that drives the ``ipfs`` command line tool."""

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Optional

from .config import config
from .exceptions import (
    DagSyncConflictError,
    DagSyncDecodeError,
    DagSyncFileError,
    DagSyncNotFoundError,
    DagSyncRPCError,
    DagSyncTransportError,
)
from .models import ContentAddress, DirectoryObject
from .store import ContentStore, check_link_name, is_not_found_message, walk_tree

logger = logging.getLogger(__name__)


class IpfsCliStore(ContentStore):
    """ContentStore implementation that runs one ``ipfs`` process per call."""

    def __init__(self, ipfs_bin: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the CLI store.

        Args:
            ipfs_bin: Path or name of the ipfs executable (uses config if
                not provided)
            timeout: Per-process timeout in seconds (uses config if not
                provided)
        """
        self.ipfs_bin = ipfs_bin or config.ipfs_bin
        self.timeout = timeout if timeout is not None else config.timeout

    def _run(self, *args: str) -> str:
        """Run ipfs with ``args`` and return its stdout.

        Raises:
            DagSyncRPCError: If ipfs exits with a non-zero status
            DagSyncTransportError: If ipfs cannot be started or times out
        """
        command = [self.ipfs_bin, *args]
        logger.debug(f"Running {' '.join(command)}")
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise DagSyncTransportError(
                f"ipfs executable not found: {self.ipfs_bin}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise DagSyncTransportError(
                f"ipfs {args[0]} timed out after {self.timeout}s"
            ) from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise DagSyncRPCError(
                f"Failed to run ipfs {' '.join(args[:2])}: exit {result.returncode} {stderr}",
                status_code=result.returncode,
                rpc_message=stderr,
            )
        return result.stdout

    def _run_json(self, *args: str) -> Any:
        output = self._run(*args)
        try:
            return json.loads(output)
        except ValueError as e:
            raise DagSyncDecodeError(
                f"Invalid JSON from ipfs {args[0]}: {output[:200]!r}"
            ) from e

    def _parse_address(self, output: str) -> ContentAddress:
        try:
            return ContentAddress.parse(output.strip().splitlines()[-1])
        except (IndexError, ValueError) as e:
            raise DagSyncDecodeError(f"Unexpected ipfs output: {output!r}") from e

    @staticmethod
    def _check_readable(path: Path) -> None:
        if not path.exists():
            raise DagSyncFileError(path, "does not exist")
        if not os.access(path, os.R_OK):
            raise DagSyncFileError(path, "permission denied")

    def fetch_directory(self, address: ContentAddress) -> DirectoryObject:
        try:
            stat = self._run_json("files", "stat", "--enc=json", f"/ipfs/{address}")
        except DagSyncRPCError as e:
            if is_not_found_message(e.rpc_message):
                raise DagSyncNotFoundError(
                    f"{address} does not resolve: {e.rpc_message}"
                ) from e
            raise

        object_type = stat.get("Type") if isinstance(stat, dict) else None
        if object_type != "directory":
            raise DagSyncNotFoundError(
                f"{address} is not a directory (type: {object_type})"
            )

        data = self._run_json("ls", "--resolve-type", "--size", "--enc=json", str(address))
        return DirectoryObject.from_api_response(address, data)

    def upload_file(self, path: Path) -> ContentAddress:
        path = Path(path)
        self._check_readable(path)
        address = self._parse_address(self._run("add", "--pin=false", "-Q", str(path)))
        logger.debug(f"Uploaded {path} as {address}")
        return address

    def upload_tree(self, path: Path) -> ContentAddress:
        path = Path(path)
        self._check_readable(path)
        if not path.is_dir():
            raise DagSyncFileError(path, "not a directory")
        # ipfs reports unreadable nested files as a generic failure
        for _, local_path, is_dir in walk_tree(path):
            if not is_dir:
                self._check_readable(local_path)
        address = self._parse_address(
            self._run("add", "--pin=false", "-r", "-Q", str(path))
        )
        logger.debug(f"Uploaded tree {path} as {address}")
        return address

    def patch_add_link(
        self, parent: ContentAddress, name: str, child: ContentAddress
    ) -> DirectoryObject:
        check_link_name(name)
        try:
            data = self._run_json(
                "object", "patch", "add-link", "--enc=json", str(parent), name, str(child)
            )
        except DagSyncRPCError as e:
            raise DagSyncConflictError(
                f"Store rejected patch of {parent} ({name} -> {child}): {e.rpc_message}"
            ) from e

        try:
            new_address = ContentAddress.parse(data["Hash"])
        except (KeyError, TypeError, ValueError) as e:
            raise DagSyncDecodeError(f"Malformed patch result {data!r}") from e

        return self.fetch_directory(new_address)
