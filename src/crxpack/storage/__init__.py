"""crxpack key storage module."""

from .private_key_storage import PrivateKeyStorage, InMemoryKeyStorage
from .file_key_storage import FileKeyStorage, DEFAULT_KEY_PATH

__all__ = [
    "PrivateKeyStorage",
    "InMemoryKeyStorage",
    "FileKeyStorage",
    "DEFAULT_KEY_PATH",
]
