"""dagsync - keep IPFS directory objects in step with a local tree."""

from .api import IpfsClient
from .exceptions import (
    DagSyncConfigError,
    DagSyncConflictError,
    DagSyncDecodeError,
    DagSyncEncodeError,
    DagSyncError,
    DagSyncFileError,
    DagSyncNotFoundError,
    DagSyncProbeError,
    DagSyncRPCError,
    DagSyncTransportError,
    DagSyncValidationError,
)
from .gateways import GatewayProber
from .ipfs_cli import IpfsCliStore
from .models import ContentAddress, DirectoryObject, Link, LinkKind, MediaInfo
from .store import ContentStore
from .sync import TreeSynchronizer

__all__ = [
    "ContentAddress",
    "ContentStore",
    "DirectoryObject",
    "GatewayProber",
    "IpfsClient",
    "IpfsCliStore",
    "Link",
    "LinkKind",
    "MediaInfo",
    "TreeSynchronizer",
    "DagSyncConfigError",
    "DagSyncConflictError",
    "DagSyncDecodeError",
    "DagSyncEncodeError",
    "DagSyncError",
    "DagSyncFileError",
    "DagSyncNotFoundError",
    "DagSyncProbeError",
    "DagSyncRPCError",
    "DagSyncTransportError",
    "DagSyncValidationError",
]
