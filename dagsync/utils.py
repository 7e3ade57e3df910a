"""Utility functions for dagsync."""

# =============================================================================
# Constants
# =============================================================================

# Default endpoint of a local IPFS (Kubo) daemon's RPC API
DEFAULT_API_URL: str = "http://127.0.0.1:5001/api/v0"

# Uploads of large trees can take a while on a busy daemon
DEFAULT_TIMEOUT: float = 300.0

# Files with these extensions are never re-uploaded once published
DEFAULT_IMMUTABLE_EXTENSIONS: frozenset[str] = frozenset({".flac", ".wav"})

# Public gateways hit by the prober. Placeholders:
#   {base32} - CIDv1 in base32, {v0} - CIDv0, {cid} - address as given
DEFAULT_GATEWAYS: tuple[str, ...] = (
    "https://{base32}.ipfs.dweb.link/",
    "https://ipfs.io/ipfs/{v0}",
    "https://{base32}.ipfs.cf-ipfs.com/",
)

# Multicodec names used by UnixFS objects
DAG_PB: str = "dag-pb"
RAW: str = "raw"

# Only sha2-256 dag-pb content has a CIDv0 spelling
SHA2_256: str = "sha2-256"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def normalize_extensions(extensions) -> frozenset[str]:
    """Normalize file extensions to lowercase with a leading dot.

    Examples:
        >>> sorted(normalize_extensions(["FLAC", ".Wav", " "]))
        ['.flac', '.wav']
    """
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        normalized.add(ext)
    return frozenset(normalized)
