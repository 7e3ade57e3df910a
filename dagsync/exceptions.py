"""Exceptions raised by dagsync."""


class DagSyncError(Exception):
    """Base exception for all dagsync errors."""


class DagSyncConfigError(DagSyncError):
    """Raised when the configuration is missing or invalid."""


class DagSyncTransportError(DagSyncError):
    """Raised when a content store call fails in transit.

    Covers network errors, unreachable daemons and store processes that
    exit with a non-zero status.
    """


class DagSyncNotFoundError(DagSyncError):
    """Raised when an address does not resolve to a directory object."""


class DagSyncDecodeError(DagSyncError):
    """Raised when a store response does not match the expected schema."""


class DagSyncConflictError(DagSyncError):
    """Raised when the store rejects a link patch.

    The in-memory directory object used as the patch parent is stale
    after this error and must be re-fetched before reuse.
    """


class DagSyncFileError(DagSyncError):
    """Raised when a local file or directory cannot be read."""

    def __init__(self, path, reason: str = "cannot be read"):
        self.path = path
        super().__init__(f"{path}: {reason}")


class DagSyncValidationError(DagSyncError):
    """Raised when a JSON document violates its schema."""

    def __init__(self, message: str, errors=None):
        self.errors = list(errors or [])
        super().__init__(message)


class DagSyncEncodeError(DagSyncError):
    """Raised when the audio transcoder fails."""


class DagSyncProbeError(DagSyncError):
    """Raised when technical metadata cannot be extracted from a file."""


class DagSyncRPCError(DagSyncTransportError):
    """Raised when the IPFS daemon answers an RPC call with an error.

    Callers translate it into a more specific error where the command
    context allows (e.g. a failed patch becomes a conflict).
    """

    def __init__(self, message: str, status_code: int = 0, rpc_message: str = ""):
        self.status_code = status_code
        self.rpc_message = rpc_message
        super().__init__(message)
