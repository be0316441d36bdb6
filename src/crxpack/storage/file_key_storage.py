"""
File-based signing key storage.

Stores the RSA signing key as an unencrypted PKCS#8 PEM file at a single
well-known path (``key.pem`` in the working directory by default).

## Security

- The key file is written with 600 permissions (owner read/write only)
- The parent directory is created with 700 permissions when missing
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from ..types import KeyStorageError
from .private_key_storage import PrivateKeyStorage

logger = logging.getLogger(__name__)

# Default location, relative to the working directory
DEFAULT_KEY_PATH = Path("key.pem")


class FileKeyStorage(PrivateKeyStorage):
    """
    PEM file storage for the signing key.

    Example usage:
        ```python
        storage = FileKeyStorage("keys/key.pem")

        if await storage.exists():
            pem = await storage.load()
        ```
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_KEY_PATH) -> None:
        """
        Create a new file key storage.

        Args:
            path: Location of the PEM file.
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Location of the PEM file."""
        return self._path

    async def load(self) -> Optional[bytes]:
        """
        Load the stored PEM key.

        Returns:
            The file contents, or None if the file does not exist.

        Raises:
            KeyStorageError: If the path is not a regular file or cannot be read.
        """
        return await asyncio.to_thread(self._read)

    async def save(self, pem: bytes) -> None:
        """
        Write the PEM key, creating the parent directory if needed.

        Raises:
            KeyStorageError: If the file cannot be written.
        """
        await asyncio.to_thread(self._write, pem)

    async def exists(self) -> bool:
        return await asyncio.to_thread(self._path.is_file)

    async def delete(self) -> None:
        await asyncio.to_thread(self._unlink)

    def _read(self) -> Optional[bytes]:
        if not self._path.exists():
            return None
        if not self._path.is_file():
            raise KeyStorageError(f"Key path is not a file: {self._path}")
        try:
            data = self._path.read_bytes()
        except OSError as e:
            raise KeyStorageError(f"Unable to read key file {self._path}: {e}") from e
        logger.debug("Read signing key from %s", self._path)
        return data

    def _write(self, pem: bytes) -> None:
        try:
            self._ensure_directory()
            self._path.write_bytes(pem)
        except OSError as e:
            raise KeyStorageError(f"Unable to write key file {self._path}: {e}") from e
        self._set_restrictive_permissions(self._path)
        logger.info("Wrote signing key to %s", self._path)

    def _unlink(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise KeyStorageError(f"Unable to delete key file {self._path}: {e}") from e
        logger.info("Deleted signing key at %s", self._path)

    def _ensure_directory(self) -> None:
        directory = self._path.parent
        if directory.exists():
            return
        directory.mkdir(parents=True, exist_ok=True)
        try:
            directory.chmod(0o700)
        except OSError:
            pass  # Ignore permission errors on some platforms

    def _set_restrictive_permissions(self, file_path: Path) -> None:
        """Set restrictive file permissions (600 on Unix)."""
        try:
            file_path.chmod(0o600)
        except OSError:
            pass  # Ignore permission errors on some platforms
