"""Credential persistence for the MSAL token cache.

The serialized cache is an opaque blob. It is kept in the OS keyring when
one is available (macOS Keychain, Windows Credential Locker, Secret Service)
and in a plaintext file otherwise.

Fallback Location: ./.ms365-mcp/token-cache.json (PROJECT-LEVEL)

The fallback file is written with owner-only permissions (600) inside an
owner-only directory (700).
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

import keyring
from keyring.errors import PasswordDeleteError

logger = logging.getLogger(__name__)

# Keyring entry holding the serialized cache
SERVICE_NAME = "ms-365-mcp-server"
TOKEN_CACHE_ACCOUNT = "msal-token-cache"

# Project-level fallback directory
CREDENTIALS_DIR = Path.cwd() / ".ms365-mcp"
TOKEN_CACHE_FILE = CREDENTIALS_DIR / "token-cache.json"


def get_token_cache_path() -> Path:
    """Get the project-level fallback cache path.

    Returns:
        Path to token-cache.json in ./.ms365-mcp/
    """
    return TOKEN_CACHE_FILE


class SecretBackend(ABC):
    """A place the serialized credential blob can live.

    Backends raise on failure; the composite decides what to do about it.
    """

    name = "backend"

    @abstractmethod
    def save(self, blob: str) -> None:
        """Persist the blob, replacing any previous value."""

    @abstractmethod
    def load(self) -> str | None:
        """Return the stored blob, or None if nothing is stored."""

    @abstractmethod
    def delete(self) -> bool:
        """Remove the stored blob. Returns True if something was removed."""


class KeyringBackend(SecretBackend):
    """Secret storage in the operating system keyring."""

    name = "keyring"

    def __init__(
        self,
        service_name: str = SERVICE_NAME,
        account: str = TOKEN_CACHE_ACCOUNT,
    ) -> None:
        self.service_name = service_name
        self.account = account

    def save(self, blob: str) -> None:
        keyring.set_password(self.service_name, self.account, blob)

    def load(self) -> str | None:
        return keyring.get_password(self.service_name, self.account)

    def delete(self) -> bool:
        try:
            keyring.delete_password(self.service_name, self.account)
        except PasswordDeleteError:
            # Nothing stored under this entry
            return False
        return True


class FileBackend(SecretBackend):
    """Plaintext file storage used when no keyring is available.

    Attributes:
        token_path: Path to the cache file.
    """

    name = "file"

    def __init__(self, token_path: Path | None = None) -> None:
        """Initialize file storage.

        Args:
            token_path: Custom path for the cache file.
                If not provided, uses ./.ms365-mcp/token-cache.json.
        """
        self.token_path = token_path or get_token_cache_path()

    def _ensure_credentials_dir(self) -> None:
        """Create credentials directory with secure permissions if needed."""
        creds_dir = self.token_path.parent
        if not creds_dir.exists():
            creds_dir.mkdir(parents=True, mode=0o700)
        else:
            creds_dir.chmod(0o700)

    def save(self, blob: str) -> None:
        self._ensure_credentials_dir()

        with open(self.token_path, "w") as f:
            f.write(blob)

        # Owner read/write only (600)
        self.token_path.chmod(0o600)

    def load(self) -> str | None:
        if not self.token_path.exists():
            return None

        with open(self.token_path) as f:
            return f.read() or None

    def delete(self) -> bool:
        if not self.token_path.exists():
            return False
        self.token_path.unlink()
        return True


class FallbackTokenStorage:
    """Ordered composite over several secret backends.

    Reads take the first backend that returns a blob. Writes go to the first
    backend that accepts them. Deletes are applied to every backend. No
    method raises: backend failures are logged and the next backend is tried.

    Example:
        ```python
        storage = FallbackTokenStorage()

        storage.save(cache.serialize())
        blob = storage.load()
        if blob:
            cache.deserialize(blob)
        ```
    """

    def __init__(self, backends: Sequence[SecretBackend] | None = None) -> None:
        """Initialize the composite.

        Args:
            backends: Backends in priority order. Defaults to keyring, then
                the project-level fallback file.
        """
        self.backends: list[SecretBackend] = list(
            backends if backends is not None else (KeyringBackend(), FileBackend())
        )

    @property
    def token_path(self) -> Path | None:
        """Path of the fallback file, if a file backend is configured."""
        for backend in self.backends:
            if isinstance(backend, FileBackend):
                return backend.token_path
        return None

    def load(self) -> str | None:
        """Load the blob from the first backend that has one.

        Returns:
            Serialized cache, or None if no backend holds one.
        """
        for backend in self.backends:
            try:
                blob = backend.load()
            except Exception as e:
                logger.warning(f"{backend.name} read failed, falling back: {e}")
                continue
            if blob:
                logger.debug(f"Loaded token cache from {backend.name}")
                return blob
        return None

    def save(self, blob: str) -> bool:
        """Save the blob to the first backend that accepts it.

        Args:
            blob: Serialized cache.

        Returns:
            True if some backend stored the blob, False if all failed.
        """
        for backend in self.backends:
            try:
                backend.save(blob)
            except Exception as e:
                logger.warning(f"{backend.name} save failed, falling back: {e}")
                continue
            logger.debug(f"Saved token cache to {backend.name}")
            return True

        logger.error("Token cache could not be saved to any backend")
        return False

    def delete(self) -> bool:
        """Delete the blob from every backend (best effort).

        Returns:
            True if at least one backend removed something.
        """
        removed = False
        for backend in self.backends:
            try:
                removed = backend.delete() or removed
            except Exception as e:
                logger.warning(f"{backend.name} deletion failed: {e}")
        return removed
