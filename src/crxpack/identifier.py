"""
Package identifier derivation.

An identifier is the first 16 bytes of SHA-256 over the DER public key,
written as base16 with the alphabet a-p instead of 0-9a-f so it can never be
mistaken for a hex string.
"""

import hashlib

from .types import CRX_ID_LENGTH, CRX_ID_SIZE

_HEX_ALPHABET = "0123456789abcdef"
_CRX_ALPHABET = "abcdefghijklmnop"

_TO_CRX = str.maketrans(_HEX_ALPHABET, _CRX_ALPHABET)
_FROM_CRX = str.maketrans(_CRX_ALPHABET, _HEX_ALPHABET)


def derive_raw_id(public_key_der: bytes) -> bytes:
    """
    Derive the 16-byte raw identifier for a public key.

    Args:
        public_key_der: DER SubjectPublicKeyInfo bytes

    Returns:
        First 16 bytes of SHA-256(public_key_der)
    """
    return hashlib.sha256(public_key_der).digest()[:CRX_ID_SIZE]


def raw_id_to_display(raw_id: bytes) -> str:
    """Encode a 16-byte raw identifier with the a-p alphabet."""
    if len(raw_id) != CRX_ID_SIZE:
        raise ValueError(f"Raw id must be {CRX_ID_SIZE} bytes, got {len(raw_id)}")
    return raw_id.hex().translate(_TO_CRX)


def derive_display_id(public_key_der: bytes) -> str:
    """
    Derive the 32-character identifier for a public key.

    Args:
        public_key_der: DER SubjectPublicKeyInfo bytes

    Returns:
        Identifier such as "elmldikamhegmnlpnhmdhhjpifameane"
    """
    return raw_id_to_display(derive_raw_id(public_key_der))


def is_valid_identifier(identifier: str) -> bool:
    """Check that a string is 32 characters from a-p."""
    return len(identifier) == CRX_ID_LENGTH and all(c in _CRX_ALPHABET for c in identifier)


def display_id_to_raw(identifier: str) -> bytes:
    """
    Decode a 32-character identifier back to its 16 raw bytes.

    Raises:
        ValueError: If the identifier has the wrong length or alphabet
    """
    if not is_valid_identifier(identifier):
        raise ValueError(f"Invalid identifier: {identifier!r}")
    return bytes.fromhex(identifier.translate(_FROM_CRX))
