"""
Package assembly for crxpack.

Turns an unpacked extension directory into a signed CRX3 package:

    "Cr24" || LE32(3) || LE32(len(header)) || header || archive
"""

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .archive import Archiver, ZipArchiver
from .header import build_header
from .identifier import derive_display_id
from .key_store import KeyStore
from .keys import SigningIdentity
from .types import CRX_MAGIC, CRX_PREAMBLE_SIZE, CRX_VERSION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackedExtension:
    """
    Result of packaging a directory.

    Attributes:
        identifier: 32-character package identifier.
        package_bytes: The complete CRX3 file.
    """

    identifier: str
    package_bytes: bytes

    @property
    def header_length(self) -> int:
        return struct.unpack_from("<I", self.package_bytes, 8)[0]

    @property
    def archive_length(self) -> int:
        return len(self.package_bytes) - CRX_PREAMBLE_SIZE - self.header_length


def pack_crx(header: bytes, archive: bytes) -> bytes:
    """
    Concatenate the fixed preamble, header and archive.

    Args:
        header: Serialized CrxFileHeader signed over archive
        archive: Zip bytes

    Returns:
        CRX3 package bytes
    """
    return b"".join([
        CRX_MAGIC,
        struct.pack("<I", CRX_VERSION),
        struct.pack("<I", len(header)),
        header,
        archive,
    ])


def sign_archive(identity: SigningIdentity, archive: bytes) -> PackedExtension:
    """
    Build a package for already archived contents.

    Args:
        identity: Signing identity
        archive: Zip bytes

    Returns:
        PackedExtension with the identifier of the identity
    """
    header = build_header(identity, archive)
    return PackedExtension(
        identifier=derive_display_id(identity.public_key_der),
        package_bytes=pack_crx(header, archive),
    )


class PackageAssembler:
    """
    Packages extension directories with a shared signing identity.

    Example usage:
        ```python
        assembler = PackageAssembler(KeyStore())
        packed = await assembler.assemble_package("tmp/unpacked")
        Path("extension.crx").write_bytes(packed.package_bytes)
        ```
    """

    def __init__(self, key_store: KeyStore, archiver: Optional[Archiver] = None) -> None:
        """
        Args:
            key_store: Source of the signing identity.
            archiver: Zip collaborator (default: ZipArchiver).
        """
        self.key_store = key_store
        self.archiver = archiver or ZipArchiver()

    async def assemble_package(self, directory: Union[str, Path]) -> PackedExtension:
        """
        Archive, sign and assemble a directory into a CRX3 package.

        Args:
            directory: Unpacked extension directory

        Returns:
            PackedExtension with the stable identifier and package bytes

        Raises:
            KeyStorageError: If stored key material cannot be used
            KeyGenerationError: If a new key cannot be generated
            ArchiveError: If the archiver fails
            SigningError: If signing fails
        """
        identity = await self.key_store.obtain_identity()
        archive = await self.archiver.build_zip(directory)
        packed = sign_archive(identity, archive)

        logger.info(
            "Packed %s as %s (%d bytes, archive %d bytes)",
            directory,
            packed.identifier,
            len(packed.package_bytes),
            len(archive),
        )
        return packed


async def assemble_package(
    directory: Union[str, Path],
    key_store: Optional[KeyStore] = None,
) -> PackedExtension:
    """
    Package a directory with a one-off assembler.

    Pass the same key_store on every call to keep the identifier stable;
    without one a throwaway in-memory key is used.
    """
    return await PackageAssembler(key_store or KeyStore()).assemble_package(directory)
