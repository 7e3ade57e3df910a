"""Content store client for the IPFS (Kubo) HTTP RPC API."""

from __future__ import annotations

import logging
import random
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    DagSyncConflictError,
    DagSyncDecodeError,
    DagSyncError,
    DagSyncFileError,
    DagSyncNotFoundError,
    DagSyncRPCError,
    DagSyncTransportError,
)
from .models import ContentAddress, DirectoryObject
from .store import (
    ContentStore,
    address_from_add_output,
    check_link_name,
    is_not_found_message,
    parse_json_lines,
    walk_tree,
)

logger = logging.getLogger(__name__)

DIRECTORY_CONTENT_TYPE = "application/x-directory"
FILE_CONTENT_TYPE = "application/octet-stream"


class IpfsClient(ContentStore):
    """Client for a local IPFS daemon's RPC API (``/api/v0``)."""

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float | None = None,
        max_retries: int = 0,
        retry_delay: float = 1.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the IPFS RPC client.

        Args:
            api_url: RPC base URL (uses config if not provided)
            timeout: Request timeout in seconds (uses config if not provided)
            max_retries: Retry attempts for network errors on calls without
                file uploads (default: 0, failures surface immediately)
            retry_delay: Initial delay between retries in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else config.timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _handle_http_error(self, e: httpx.HTTPStatusError) -> DagSyncError:
        """Turn an HTTP error from the daemon into a dagsync error."""
        status_code = e.response.status_code

        if status_code == 404:
            return DagSyncTransportError(
                f"RPC endpoint not found: {e.request.url.path} "
                "(is this an IPFS RPC API URL?)"
            )
        if status_code == 403:
            return DagSyncTransportError(
                "RPC request forbidden - check the daemon's API access settings"
            )

        rpc_message = ""
        try:
            error_data = e.response.json()
            if isinstance(error_data, dict):
                rpc_message = str(error_data.get("Message") or "")
        except ValueError:
            rpc_message = e.response.text.strip()

        message = f"RPC call failed with status {status_code}"
        if rpc_message:
            message = f"{message}: {rpc_message}"
        return DagSyncRPCError(message, status_code=status_code, rpc_message=rpc_message)

    def _request(
        self,
        endpoint: str,
        params: Any = None,
        files: Any = None,
    ) -> httpx.Response:
        """Make an RPC request.

        The RPC API only accepts POST. Calls carrying files are never
        retried since their streams are consumed by the first attempt.

        Raises:
            DagSyncRPCError: If the daemon answers with an error
            DagSyncTransportError: If the daemon cannot be reached
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        max_attempts = 1 if files is not None else self.max_retries + 1

        for attempt in range(max_attempts):
            try:
                logger.debug(f"POST {endpoint} params={params}")
                response = client.post(url, params=params, files=files)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                raise self._handle_http_error(e) from e
            except httpx.RequestError as e:
                if attempt + 1 < max_attempts:
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"Network error ({e}), retrying in {delay:.1f}s")
                    time.sleep(delay)
                    continue
                raise DagSyncTransportError(f"Network error: {e}") from e

        raise DagSyncTransportError("Request failed after all retry attempts")

    def _request_json(self, endpoint: str, params: Any = None) -> Any:
        response = self._request(endpoint, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise DagSyncDecodeError(
                f"Invalid JSON response from {endpoint}"
            ) from e

    # =========================
    # ContentStore operations
    # =========================

    def fetch_directory(self, address: ContentAddress) -> DirectoryObject:
        try:
            stat = self._request_json("files/stat", params={"arg": f"/ipfs/{address}"})
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

        data = self._request_json(
            "ls",
            params={"arg": str(address), "resolve-type": "true", "size": "true"},
        )
        directory = DirectoryObject.from_api_response(address, data)
        logger.debug(f"Fetched {address} with {len(directory.links)} link(s)")
        return directory

    def upload_file(self, path: Path) -> ContentAddress:
        path = Path(path)
        try:
            handle = open(path, "rb")
        except OSError as e:
            raise DagSyncFileError(path, e.strerror or str(e)) from e

        with handle:
            response = self._request(
                "add",
                params={"pin": "false"},
                files={"file": (quote(path.name), handle, FILE_CONTENT_TYPE)},
            )
        address = address_from_add_output(parse_json_lines(response.text), path.name)
        logger.debug(f"Uploaded {path} as {address}")
        return address

    def upload_tree(self, path: Path) -> ContentAddress:
        path = Path(path)
        if not path.is_dir():
            raise DagSyncFileError(path, "not a directory")

        with ExitStack() as stack:
            parts = []
            for relative, local_path, is_dir in walk_tree(path):
                filename = quote(relative)
                if is_dir:
                    parts.append(("file", (filename, b"", DIRECTORY_CONTENT_TYPE)))
                    continue
                try:
                    handle = stack.enter_context(open(local_path, "rb"))
                except OSError as e:
                    raise DagSyncFileError(local_path, e.strerror or str(e)) from e
                parts.append(("file", (filename, handle, FILE_CONTENT_TYPE)))

            response = self._request(
                "add",
                params={"pin": "false", "recursive": "true"},
                files=parts,
            )

        address = address_from_add_output(parse_json_lines(response.text), path.name)
        logger.debug(f"Uploaded tree {path} as {address}")
        return address

    def patch_add_link(
        self, parent: ContentAddress, name: str, child: ContentAddress
    ) -> DirectoryObject:
        check_link_name(name)
        try:
            data = self._request_json(
                "object/patch/add-link",
                params=[("arg", str(parent)), ("arg", name), ("arg", str(child))],
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
