"""
crxpack - Signed CRX3 packages from unpacked extension directories

Builds CRX3 files signed with a stable RSA key, so the extension identifier
stays the same across builds.
"""

from .keys import (
    SigningIdentity,
    generate_signing_identity,
    identity_from_pem,
    identity_to_pem,
    public_key_to_der,
)
from .key_store import KeyStore, KeyStoreConfig
from .identifier import (
    derive_raw_id,
    derive_display_id,
    display_id_to_raw,
    is_valid_identifier,
)
from .header import (
    AsymmetricKeyProof,
    SignedData,
    CrxFileHeader,
    build_header,
    encode_file_header,
    decode_file_header,
    verify_header_signature,
)
from .archive import Archiver, ZipArchiver
from .assembler import PackedExtension, PackageAssembler, assemble_package, pack_crx, sign_archive
from .reader import CrxPackage, VerifyResult, parse_package, verify_package, package_identifier
from .storage import PrivateKeyStorage, InMemoryKeyStorage, FileKeyStorage
from .types import (
    CRX_MAGIC,
    CRX_VERSION,
    SIGNED_DATA_PREAMBLE,
    CrxError,
    KeyStorageError,
    KeyGenerationError,
    ArchiveError,
    SigningError,
    EncodingError,
    InvalidPackageError,
)

__version__ = "0.1.0"

__all__ = [
    # Keys
    "SigningIdentity",
    "generate_signing_identity",
    "identity_from_pem",
    "identity_to_pem",
    "public_key_to_der",
    "KeyStore",
    "KeyStoreConfig",
    # Identifier
    "derive_raw_id",
    "derive_display_id",
    "display_id_to_raw",
    "is_valid_identifier",
    # Header
    "AsymmetricKeyProof",
    "SignedData",
    "CrxFileHeader",
    "build_header",
    "encode_file_header",
    "decode_file_header",
    "verify_header_signature",
    # Assembly
    "Archiver",
    "ZipArchiver",
    "PackedExtension",
    "PackageAssembler",
    "assemble_package",
    "pack_crx",
    "sign_archive",
    # Reader
    "CrxPackage",
    "VerifyResult",
    "parse_package",
    "verify_package",
    "package_identifier",
    # Storage
    "PrivateKeyStorage",
    "InMemoryKeyStorage",
    "FileKeyStorage",
    # Constants
    "CRX_MAGIC",
    "CRX_VERSION",
    "SIGNED_DATA_PREAMBLE",
    # Errors
    "CrxError",
    "KeyStorageError",
    "KeyGenerationError",
    "ArchiveError",
    "SigningError",
    "EncodingError",
    "InvalidPackageError",
]
