"""
Zip archiving of an unpacked extension directory.

The assembler only depends on the Archiver interface; ZipArchiver is the
default collaborator. Entries are written in sorted order with a fixed
timestamp so unchanged input produces identical bytes.
"""

import asyncio
import io
import logging
import os
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

from .types import ArchiveError

logger = logging.getLogger(__name__)

# Zip's earliest representable time
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class Archiver(ABC):
    """Interface for turning a directory into zip bytes."""

    @abstractmethod
    async def build_zip(self, directory: Union[str, Path]) -> bytes:
        """
        Archive the full contents of a directory.

        Raises:
            ArchiveError: If the directory or an entry cannot be read
        """
        ...


class ZipArchiver(Archiver):
    """Builds a deterministic zip archive from a directory tree."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED) -> None:
        self._compression = compression

    async def build_zip(self, directory: Union[str, Path]) -> bytes:
        return await asyncio.to_thread(self.build_zip_sync, Path(directory))

    def build_zip_sync(self, directory: Path) -> bytes:
        """Blocking variant of build_zip."""
        if not directory.is_dir():
            raise ArchiveError(f"Not a directory: {directory}")

        buffer = io.BytesIO()
        try:
            with zipfile.ZipFile(buffer, mode="w", compression=self._compression) as zf:
                for path in _walk_sorted(directory):
                    zf.writestr(_zipinfo(path, directory, self._compression), _read_entry(path))
        except OSError as e:
            raise ArchiveError(f"Unable to archive {directory}: {e}") from e

        data = buffer.getvalue()
        logger.debug("Archived %s into %d bytes", directory, len(data))
        return data


def _walk_sorted(directory: Path) -> List[Path]:
    """
    Return every regular file under directory, sorted by relative path.

    Raises:
        ArchiveError: If any directory in the tree cannot be listed
    """
    files = []
    for root, _dirs, names in os.walk(directory, onerror=_raise_listing_error):
        files.extend(p for p in (Path(root) / name for name in names) if p.is_file())
    return sorted(files, key=lambda p: p.relative_to(directory).as_posix())


def _zipinfo(path: Path, root: Path, compression: int) -> zipfile.ZipInfo:
    """Create a ZipInfo with deterministic metadata."""
    zi = zipfile.ZipInfo(filename=path.relative_to(root).as_posix(), date_time=ZIP_EPOCH)
    zi.compress_type = compression
    zi.external_attr = 0o644 << 16
    return zi


def _read_entry(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ArchiveError(f"Unable to read {path}: {e}") from e


def _raise_listing_error(error: OSError) -> None:
    raise ArchiveError(f"Unable to list {error.filename}: {error}") from error
