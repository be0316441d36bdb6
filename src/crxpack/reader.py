"""
CRX3 package parsing and signature verification.

A package is valid when every RSA proof in its header verifies over the
trailing archive and the signed crx_id matches one of the proof keys.
"""

import struct
from dataclasses import dataclass
from typing import Optional

from .header import (
    CrxFileHeader,
    crx_id_matches_proofs,
    decode_file_header,
    decode_signed_data,
    verify_header_signature,
)
from .identifier import raw_id_to_display
from .types import CRX_ID_SIZE, CRX_MAGIC, CRX_PREAMBLE_SIZE, CRX_VERSION, EncodingError, InvalidPackageError


@dataclass
class CrxPackage:
    """A parsed CRX3 package."""
    version: int
    header: CrxFileHeader
    header_bytes: bytes
    archive: bytes


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of verifying a package."""
    valid: bool
    identifier: Optional[str] = None
    reason: Optional[str] = None


def is_crx_package(data: bytes) -> bool:
    """Check if data starts with the CRX magic bytes."""
    return data[:len(CRX_MAGIC)] == CRX_MAGIC


def parse_package(data: bytes) -> CrxPackage:
    """
    Split a package into header and archive.

    Args:
        data: Package bytes

    Returns:
        The parsed CrxPackage

    Raises:
        InvalidPackageError: If the magic, version or header length is wrong,
            or the header cannot be decoded
    """
    if len(data) < CRX_PREAMBLE_SIZE:
        raise InvalidPackageError(f"Data too short: {len(data)} bytes (minimum {CRX_PREAMBLE_SIZE})")

    if not is_crx_package(data):
        raise InvalidPackageError(f"Bad magic: {data[:4]!r}")

    version, header_length = struct.unpack_from("<II", data, 4)
    if version != CRX_VERSION:
        raise InvalidPackageError(f"Unsupported version: {version}")

    header_end = CRX_PREAMBLE_SIZE + header_length
    if header_end > len(data):
        raise InvalidPackageError(
            f"Header length {header_length} exceeds package size {len(data)}"
        )

    header_bytes = data[CRX_PREAMBLE_SIZE:header_end]
    try:
        header = decode_file_header(header_bytes)
    except EncodingError as e:
        raise InvalidPackageError(f"Malformed header: {e}") from e

    return CrxPackage(
        version=version,
        header=header,
        header_bytes=header_bytes,
        archive=data[header_end:],
    )


def verify_package(data: bytes) -> VerifyResult:
    """
    Verify the signatures of a package.

    Args:
        data: Package bytes

    Returns:
        VerifyResult; identifier is set whenever the signed crx_id is readable
    """
    try:
        package = parse_package(data)
    except InvalidPackageError as e:
        return VerifyResult(valid=False, reason=str(e))

    header = package.header
    if header.signed_header_data is None:
        return VerifyResult(valid=False, reason="Header has no signed data")

    try:
        crx_id = decode_signed_data(header.signed_header_data).crx_id
    except EncodingError as e:
        return VerifyResult(valid=False, reason=f"Malformed signed data: {e}")

    if len(crx_id) != CRX_ID_SIZE:
        return VerifyResult(valid=False, reason=f"crx_id must be {CRX_ID_SIZE} bytes, got {len(crx_id)}")

    identifier = raw_id_to_display(crx_id)

    if not header.sha256_with_rsa:
        return VerifyResult(valid=False, identifier=identifier, reason="Header has no RSA proofs")

    if not verify_header_signature(header, package.archive):
        if not crx_id_matches_proofs(header):
            return VerifyResult(valid=False, identifier=identifier, reason="crx_id does not match any proof key")
        return VerifyResult(valid=False, identifier=identifier, reason="Signature verification failed")

    return VerifyResult(valid=True, identifier=identifier)


def package_identifier(data: bytes) -> str:
    """
    Read the identifier from a package without verifying it.

    Raises:
        InvalidPackageError: If the package or its signed data is malformed
    """
    header = parse_package(data).header
    if header.signed_header_data is None:
        raise InvalidPackageError("Header has no signed data")
    try:
        crx_id = decode_signed_data(header.signed_header_data).crx_id
        return raw_id_to_display(crx_id)
    except (EncodingError, ValueError) as e:
        raise InvalidPackageError(f"Malformed signed data: {e}") from e
