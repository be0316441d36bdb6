"""Type definitions and constants for crxpack."""

# Package layout constants
CRX_MAGIC = b"Cr24"
CRX_VERSION = 3
CRX_PREAMBLE_SIZE = 12  # magic + version + header length

# Domain separation tag prepended to the signed data, never written to the file
SIGNED_DATA_PREAMBLE = b"CRX3 SignedData\x00"

# Identifier constants
CRX_ID_SIZE = 16
CRX_ID_LENGTH = 32

# Signing key constants
RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537


# Exception types
class CrxError(Exception):
    """Base exception for crxpack errors."""
    pass


class KeyStorageError(CrxError):
    """Reading, writing or parsing persisted key material failed."""
    pass


class KeyGenerationError(CrxError):
    """The crypto backend failed to generate a key pair."""
    pass


class ArchiveError(CrxError):
    """Building the zip archive of the extension directory failed."""
    pass


class SigningError(CrxError):
    """Signing the package contents failed."""
    pass


class EncodingError(CrxError):
    """Header serialization or deserialization failed."""
    pass


class InvalidPackageError(CrxError):
    """Package bytes do not follow the CRX3 layout."""
    pass
