"""Private key storage interface and in-memory implementation."""

from abc import ABC, abstractmethod
from typing import Optional


class PrivateKeyStorage(ABC):
    """Interface for persisting a single PEM-encoded signing key."""

    @abstractmethod
    async def load(self) -> Optional[bytes]:
        """Load the stored PEM key, or None if nothing is stored."""
        ...

    @abstractmethod
    async def save(self, pem: bytes) -> None:
        """Store the PEM key, replacing any existing one."""
        ...

    @abstractmethod
    async def exists(self) -> bool:
        """Check if a key is stored."""
        ...

    @abstractmethod
    async def delete(self) -> None:
        """Delete the stored key if present."""
        ...


class InMemoryKeyStorage(PrivateKeyStorage):
    """
    In-memory implementation of PrivateKeyStorage (for testing).

    Keeps a count of saves so tests can assert a key was persisted once.
    """

    def __init__(self, pem: Optional[bytes] = None) -> None:
        self._pem = bytes(pem) if pem is not None else None
        self.save_count = 0

    async def load(self) -> Optional[bytes]:
        return bytes(self._pem) if self._pem is not None else None

    async def save(self, pem: bytes) -> None:
        self._pem = bytes(pem)
        self.save_count += 1

    async def exists(self) -> bool:
        return self._pem is not None

    async def delete(self) -> None:
        self._pem = None
