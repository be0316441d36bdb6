"""RSA signing identity generation and serialization for crxpack."""

from dataclasses import dataclass

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
    generate_private_key,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_der_public_key,
    load_pem_private_key,
)

from .types import (
    RSA_KEY_SIZE,
    RSA_PUBLIC_EXPONENT,
    KeyGenerationError,
    KeyStorageError,
)


@dataclass(frozen=True)
class SigningIdentity:
    """
    RSA key pair used to sign packages.

    Attributes:
        private_key: The RSA private key used for signing.
        public_key: The matching RSA public key embedded in every header.
    """

    private_key: RSAPrivateKey
    public_key: RSAPublicKey

    @property
    def public_key_der(self) -> bytes:
        """DER SubjectPublicKeyInfo encoding of the public key."""
        return public_key_to_der(self.public_key)


def generate_signing_identity(key_size: int = RSA_KEY_SIZE) -> SigningIdentity:
    """
    Generate a fresh RSA signing identity.

    Args:
        key_size: Modulus length in bits (default 2048)

    Returns:
        A new SigningIdentity

    Raises:
        KeyGenerationError: If the crypto backend fails
    """
    try:
        private_key = generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=key_size,
        )
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyGenerationError(f"RSA key generation failed: {e}") from e

    return SigningIdentity(private_key=private_key, public_key=private_key.public_key())


def identity_from_pem(data: bytes) -> SigningIdentity:
    """
    Load a signing identity from an unencrypted PEM private key.

    The public key is derived from the private key.

    Args:
        data: PEM-encoded RSA private key (PKCS#8 or PKCS#1)

    Returns:
        The SigningIdentity for that key

    Raises:
        KeyStorageError: If the data is not an unencrypted RSA private key
    """
    try:
        private_key = load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyStorageError(f"Unable to parse private key: {e}") from e

    if not isinstance(private_key, RSAPrivateKey):
        raise KeyStorageError(
            f"Private key must be RSA, got {type(private_key).__name__}"
        )

    return SigningIdentity(private_key=private_key, public_key=private_key.public_key())


def identity_to_pem(identity: SigningIdentity) -> bytes:
    """Serialize the private key of an identity as unencrypted PKCS#8 PEM."""
    return identity.private_key.private_bytes(
        Encoding.PEM,
        PrivateFormat.PKCS8,
        NoEncryption(),
    )


def public_key_to_der(public_key: RSAPublicKey) -> bytes:
    """Convert an RSA public key to DER SubjectPublicKeyInfo bytes."""
    return public_key.public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)


def public_key_from_der(data: bytes) -> RSAPublicKey:
    """
    Create an RSA public key from DER SubjectPublicKeyInfo bytes.

    Raises:
        ValueError: If the data is not a DER-encoded RSA public key
    """
    public_key = load_der_public_key(data)
    if not isinstance(public_key, RSAPublicKey):
        raise ValueError(f"Public key must be RSA, got {type(public_key).__name__}")
    return public_key
