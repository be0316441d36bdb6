"""
CRX3 file header encoding, decoding and signing.

Schema (all fields length-delimited):

    message CrxFileHeader {
        repeated AsymmetricKeyProof sha256_with_rsa = 2;
        repeated AsymmetricKeyProof sha256_with_ecdsa = 3;
        bytes signed_header_data = 10000;
    }

    message AsymmetricKeyProof {
        bytes public_key = 1;
        bytes signature = 2;
    }

    message SignedData {
        bytes crx_id = 1;
    }
"""

import struct
from dataclasses import dataclass, field
from typing import List, Optional

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.padding import PKCS1v15
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.hashes import SHA256

from .identifier import derive_raw_id
from .keys import SigningIdentity, public_key_from_der
from .types import SIGNED_DATA_PREAMBLE, EncodingError, SigningError
from .wire import WIRE_LENGTH_DELIMITED, WireFormatError, encode_length_delimited, iter_fields

# CrxFileHeader field numbers
FIELD_SHA256_WITH_RSA = 2
FIELD_SHA256_WITH_ECDSA = 3
FIELD_SIGNED_HEADER_DATA = 10000

# AsymmetricKeyProof field numbers
FIELD_PUBLIC_KEY = 1
FIELD_SIGNATURE = 2

# SignedData field numbers
FIELD_CRX_ID = 1


@dataclass
class AsymmetricKeyProof:
    """A public key and its signature over the package contents."""
    public_key: bytes
    signature: bytes


@dataclass
class SignedData:
    """Header data covered by the signature."""
    crx_id: bytes


@dataclass
class CrxFileHeader:
    """CRX3 file header."""
    sha256_with_rsa: List[AsymmetricKeyProof] = field(default_factory=list)
    sha256_with_ecdsa: List[AsymmetricKeyProof] = field(default_factory=list)
    signed_header_data: Optional[bytes] = None


# ============================================================================
# Message encoding
# ============================================================================


def encode_signed_data(signed_data: SignedData) -> bytes:
    """Serialize a SignedData message."""
    return encode_length_delimited(FIELD_CRX_ID, signed_data.crx_id)


def encode_key_proof(proof: AsymmetricKeyProof) -> bytes:
    """Serialize an AsymmetricKeyProof message."""
    return (
        encode_length_delimited(FIELD_PUBLIC_KEY, proof.public_key)
        + encode_length_delimited(FIELD_SIGNATURE, proof.signature)
    )


def encode_file_header(header: CrxFileHeader) -> bytes:
    """
    Serialize a CrxFileHeader message.

    Fields are written in field number order.
    """
    parts = [
        encode_length_delimited(FIELD_SHA256_WITH_RSA, encode_key_proof(proof))
        for proof in header.sha256_with_rsa
    ]
    parts.extend(
        encode_length_delimited(FIELD_SHA256_WITH_ECDSA, encode_key_proof(proof))
        for proof in header.sha256_with_ecdsa
    )
    if header.signed_header_data is not None:
        parts.append(encode_length_delimited(FIELD_SIGNED_HEADER_DATA, header.signed_header_data))
    return b"".join(parts)


# ============================================================================
# Message decoding
# ============================================================================


def _bytes_fields(data: bytes):
    """Yield (field_number, value) for length-delimited fields, skipping the rest."""
    for field_number, wire_type, value in iter_fields(data):
        if wire_type == WIRE_LENGTH_DELIMITED:
            yield field_number, value


def decode_signed_data(data: bytes) -> SignedData:
    """
    Decode a SignedData message.

    Raises:
        WireFormatError: If the message is malformed or has no crx_id
    """
    crx_id = None
    for field_number, value in _bytes_fields(data):
        if field_number == FIELD_CRX_ID:
            crx_id = value
    if crx_id is None:
        raise WireFormatError("SignedData is missing crx_id")
    return SignedData(crx_id=crx_id)


def decode_key_proof(data: bytes) -> AsymmetricKeyProof:
    """Decode an AsymmetricKeyProof message; missing fields decode as empty."""
    public_key = b""
    signature = b""
    for field_number, value in _bytes_fields(data):
        if field_number == FIELD_PUBLIC_KEY:
            public_key = value
        elif field_number == FIELD_SIGNATURE:
            signature = value
    return AsymmetricKeyProof(public_key=public_key, signature=signature)


def decode_file_header(data: bytes) -> CrxFileHeader:
    """
    Decode a CrxFileHeader message.

    Unknown fields are skipped.

    Raises:
        WireFormatError: If the message is malformed
    """
    header = CrxFileHeader()
    for field_number, value in _bytes_fields(data):
        if field_number == FIELD_SHA256_WITH_RSA:
            header.sha256_with_rsa.append(decode_key_proof(value))
        elif field_number == FIELD_SHA256_WITH_ECDSA:
            header.sha256_with_ecdsa.append(decode_key_proof(value))
        elif field_number == FIELD_SIGNED_HEADER_DATA:
            header.signed_header_data = value
    return header


# ============================================================================
# Signing
# ============================================================================


def signed_message(signed_header_data: bytes, archive: bytes) -> bytes:
    """
    Build the byte string covered by a header signature.

    Format:
        "CRX3 SignedData\\x00" || LE32(len(signed_header_data))
        || signed_header_data || archive
    """
    return (
        SIGNED_DATA_PREAMBLE
        + struct.pack("<I", len(signed_header_data))
        + signed_header_data
        + archive
    )


def sign_package_data(private_key: RSAPrivateKey, signed_header_data: bytes, archive: bytes) -> bytes:
    """
    Sign the header data and archive with RSASSA-PKCS1-v1_5 / SHA-256.

    Raises:
        SigningError: If the backend rejects the key or fails to sign
    """
    try:
        return private_key.sign(signed_message(signed_header_data, archive), PKCS1v15(), SHA256())
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"Unable to sign package: {e}") from e


def verify_key_proof(proof: AsymmetricKeyProof, signed_header_data: bytes, archive: bytes) -> bool:
    """
    Check one RSA proof against the header data and archive.

    Returns:
        True if the signature is valid, False otherwise (including
        unparseable public keys)
    """
    try:
        public_key = public_key_from_der(proof.public_key)
    except (ValueError, UnsupportedAlgorithm):
        return False

    try:
        public_key.verify(proof.signature, signed_message(signed_header_data, archive), PKCS1v15(), SHA256())
        return True
    except InvalidSignature:
        return False


def build_header(identity: SigningIdentity, archive: bytes) -> bytes:
    """
    Build the signed CRX3 header for an archive.

    The header embeds the DER public key, the signature over the archive and
    the SignedData carrying the raw 16-byte id. It is only valid in front of
    exactly these archive bytes.

    Args:
        identity: Signing identity
        archive: Zip bytes that will follow the header

    Returns:
        Serialized CrxFileHeader

    Raises:
        SigningError: If signing fails
    """
    public_key = identity.public_key_der
    signed_header_data = encode_signed_data(SignedData(crx_id=derive_raw_id(public_key)))
    signature = sign_package_data(identity.private_key, signed_header_data, archive)

    return encode_file_header(
        CrxFileHeader(
            sha256_with_rsa=[AsymmetricKeyProof(public_key=public_key, signature=signature)],
            signed_header_data=signed_header_data,
        )
    )


def crx_id_matches_proofs(header: CrxFileHeader) -> bool:
    """Check that the signed crx_id is the raw id of one of the RSA proof keys."""
    if header.signed_header_data is None:
        return False
    try:
        crx_id = decode_signed_data(header.signed_header_data).crx_id
    except EncodingError:
        return False
    return any(derive_raw_id(proof.public_key) == crx_id for proof in header.sha256_with_rsa)


def verify_header_signature(header: CrxFileHeader, archive: bytes) -> bool:
    """
    Check a decoded header against the archive that follows it.

    Every RSA proof must verify over the signed header data and archive, and
    the signed crx_id must belong to one of the proof keys.

    Args:
        header: Decoded CrxFileHeader
        archive: Bytes following the header in the package

    Returns:
        True if the header is valid for this archive, False otherwise
    """
    if header.signed_header_data is None or not header.sha256_with_rsa:
        return False

    for proof in header.sha256_with_rsa:
        if not verify_key_proof(proof, header.signed_header_data, archive):
            return False

    return crx_id_matches_proofs(header)
