"""
Process-wide signing identity for crxpack.

The package identifier is derived from the signing public key, so a KeyStore
hands out exactly one identity for its whole lifetime. With persistence
enabled the key also survives restarts.
"""

import asyncio
import concurrent.futures
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .keys import SigningIdentity, generate_signing_identity, identity_from_pem, identity_to_pem
from .storage import DEFAULT_KEY_PATH, FileKeyStorage, PrivateKeyStorage

logger = logging.getLogger(__name__)


@dataclass
class KeyStoreConfig:
    """Configuration for the key store."""
    persist: bool = False
    storage_path: Path = field(default_factory=lambda: DEFAULT_KEY_PATH)

    @classmethod
    def from_env(cls) -> "KeyStoreConfig":
        """
        Build a config from CRXPACK_WRITE_KEY and CRXPACK_KEY_PATH.

        Persistence is enabled only when CRXPACK_WRITE_KEY is "1".
        """
        key_path = os.getenv("CRXPACK_KEY_PATH")
        return cls(
            persist=os.getenv("CRXPACK_WRITE_KEY") == "1",
            storage_path=Path(key_path).expanduser() if key_path else DEFAULT_KEY_PATH,
        )


class KeyStore:
    """
    Owns the signing identity used for every package.

    The identity is created lazily on the first obtain_identity() call:
    loaded from storage when persistence is enabled and a key is stored,
    otherwise generated (and written to storage when persistence is enabled).

    Example usage:
        ```python
        store = KeyStore(KeyStoreConfig(persist=True, storage_path=Path("key.pem")))
        identity = await store.obtain_identity()
        ```
    """

    def __init__(
        self,
        config: Optional[KeyStoreConfig] = None,
        storage: Optional[PrivateKeyStorage] = None,
    ) -> None:
        """
        Create a key store.

        Args:
            config: Persistence settings (default: in-memory only).
            storage: Storage backend; defaults to a FileKeyStorage at
                config.storage_path. Only used when config.persist is set.
        """
        self._config = config or KeyStoreConfig()
        self._storage = storage or FileKeyStorage(self._config.storage_path)
        self._identity: Optional[SigningIdentity] = None
        self._lock = threading.Lock()
        self._pending: Optional[concurrent.futures.Future] = None

    @property
    def config(self) -> KeyStoreConfig:
        return self._config

    @property
    def identity(self) -> Optional[SigningIdentity]:
        """The identity if it has been initialized, else None."""
        return self._identity

    async def obtain_identity(self) -> SigningIdentity:
        """
        Return the signing identity, creating it on first use.

        Concurrent first calls wait for a single initialization and all
        receive the same identity, also when they run on different event
        loops. A failed initialization is raised to every waiting caller and
        leaves the store uninitialized, so a later call retries.

        Returns:
            The SigningIdentity for this store

        Raises:
            KeyStorageError: If stored key material cannot be read, parsed or written
            KeyGenerationError: If key generation fails
        """
        if self._identity is not None:
            return self._identity

        with self._lock:
            if self._identity is not None:
                return self._identity
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = concurrent.futures.Future()

        if not owner:
            # shield so a cancelled waiter does not cancel the shared future
            return await asyncio.shield(asyncio.wrap_future(pending))

        try:
            identity = await self._initialize()
        except BaseException as e:
            with self._lock:
                self._pending = None
            if isinstance(e, Exception):
                pending.set_exception(e)
            else:
                pending.cancel()
            raise

        with self._lock:
            self._identity = identity
            self._pending = None
        pending.set_result(identity)
        return identity

    async def _initialize(self) -> SigningIdentity:
        if self._config.persist:
            pem = await self._storage.load()
            if pem is not None:
                logger.info("Loaded signing key from storage")
                return identity_from_pem(pem)

        identity = await asyncio.to_thread(generate_signing_identity)
        logger.info("Generated new RSA signing key")

        if self._config.persist:
            await self._storage.save(identity_to_pem(identity))

        return identity
