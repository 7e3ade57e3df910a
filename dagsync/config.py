"""Configuration management for dagsync."""

import logging
import os
from pathlib import Path
from typing import Optional

from .exceptions import DagSyncConfigError
from .utils import (
    DEFAULT_API_URL,
    DEFAULT_GATEWAYS,
    DEFAULT_IMMUTABLE_EXTENSIONS,
    DEFAULT_TIMEOUT,
    normalize_extensions,
)

logger = logging.getLogger(__name__)

TRANSPORTS = ("http", "cli")


class Config:
    """Settings read from the environment and ``~/.config/dagsync/config``.

    Environment variables take precedence over the config file. The file
    holds ``KEY=VALUE`` lines; blank lines and ``#`` comments are ignored.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to the config file. Defaults to
                ~/.config/dagsync/config
        """
        self._config_path = config_path
        self._file_values: Optional[dict[str, str]] = None

    def get_config_path(self) -> Path:
        """Get the path of the config file."""
        if self._config_path is None:
            return Path.home() / ".config" / "dagsync" / "config"
        return self._config_path

    def _load_file(self) -> dict[str, str]:
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        path = self.get_config_path()
        if path.exists():
            try:
                for line in path.read_text(encoding="utf-8").splitlines():
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip()
            except OSError as e:
                logger.warning(f"Failed to read config file {path}: {e}")
        self._file_values = values
        return values

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Look up a setting in the environment, then in the config file."""
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key, default)

    def save_value(self, key: str, value: str) -> None:
        """Persist a setting to the config file, keeping other lines."""
        if "\n" in value or "=" in key:
            raise DagSyncConfigError(f"Invalid config entry: {key}={value!r}")

        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)

        lines = []
        if path.exists():
            lines = [
                line
                for line in path.read_text(encoding="utf-8").splitlines()
                if line.split("=", 1)[0].strip() != key
            ]
        lines.append(f"{key}={value}")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        path.chmod(0o600)

        self._file_values = None
        logger.debug(f"Saved {key} to {path}")

    @property
    def api_url(self) -> str:
        url = self.get("DAGSYNC_API_URL", DEFAULT_API_URL) or DEFAULT_API_URL
        return url.rstrip("/")

    @property
    def transport(self) -> str:
        transport = (self.get("DAGSYNC_TRANSPORT", "http") or "http").lower()
        if transport not in TRANSPORTS:
            raise DagSyncConfigError(
                f"Unknown transport {transport!r}, expected one of {TRANSPORTS}"
            )
        return transport

    @property
    def ipfs_bin(self) -> str:
        return self.get("DAGSYNC_IPFS_BIN", "ipfs") or "ipfs"

    @property
    def timeout(self) -> float:
        raw = self.get("DAGSYNC_TIMEOUT")
        if not raw:
            return DEFAULT_TIMEOUT
        try:
            timeout = float(raw)
        except ValueError as e:
            raise DagSyncConfigError(f"Invalid DAGSYNC_TIMEOUT: {raw!r}") from e
        if timeout <= 0:
            raise DagSyncConfigError("DAGSYNC_TIMEOUT must be positive")
        return timeout

    @property
    def immutable_extensions(self) -> frozenset[str]:
        raw = self.get("DAGSYNC_IMMUTABLE_EXTENSIONS")
        if raw is None:
            return DEFAULT_IMMUTABLE_EXTENSIONS
        return normalize_extensions(raw.split(","))

    @property
    def gateways(self) -> tuple[str, ...]:
        raw = self.get("DAGSYNC_GATEWAYS")
        if not raw:
            return DEFAULT_GATEWAYS
        return tuple(t.strip() for t in raw.split(",") if t.strip())


# Global config instance
config = Config()
