"""RSA-PSS key handling and signature verification.

Keys arrive base64-encoded DER: SPKI for the public key, PKCS8 for the
private key. Both are bound to RSA-PSS with SHA-256 and a 32-byte salt.
"""

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from mirror_proxy.core.codec import DecodeError, base64_to_bytes, bytes_to_base64

SALT_LENGTH = 32


class KeyImportError(Exception):
    """Raised when configured key material cannot be imported."""


def _pss() -> padding.PSS:
    return padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=SALT_LENGTH)


class VerificationKey:
    """Public key handle that can only verify."""

    __slots__ = ("_key",)

    def __init__(self, key: rsa.RSAPublicKey) -> None:
        self._key = key

    def verify(self, signature: bytes, message: bytes) -> bool:
        try:
            self._key.verify(signature, message, _pss(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True

    def __repr__(self) -> str:
        return f"VerificationKey(bits={self._key.key_size})"


class SigningKey:
    """Private key handle that can only sign."""

    __slots__ = ("_key",)

    def __init__(self, key: rsa.RSAPrivateKey) -> None:
        self._key = key

    def sign(self, message: bytes) -> bytes:
        return self._key.sign(message, _pss(), hashes.SHA256())

    def __repr__(self) -> str:
        return f"SigningKey(bits={self._key.key_size})"


def _decode_der(key_string: str) -> bytes:
    try:
        return base64_to_bytes(key_string.strip())
    except DecodeError as exc:
        raise KeyImportError("Key is not valid base64") from exc


def import_public_key(public_key_string: str) -> VerificationKey:
    der = _decode_der(public_key_string)
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise KeyImportError("Public key is not a valid SPKI structure") from exc
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyImportError(f"Expected an RSA public key, got {type(key).__name__}")
    return VerificationKey(key)


def import_private_key(private_key_string: str) -> SigningKey:
    der = _decode_der(private_key_string)
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyImportError("Private key is not a valid PKCS8 structure") from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyImportError(f"Expected an RSA private key, got {type(key).__name__}")
    return SigningKey(key)


def verify_signature(signature_b64: str, message: bytes, key: VerificationKey) -> bool:
    """Check a base64 RSA-PSS signature against the exact message bytes.

    A signature that is not valid base64 counts as a mismatch.
    """
    try:
        signature = base64_to_bytes(signature_b64)
    except DecodeError:
        return False
    return key.verify(signature, message)


def sign_message(key: SigningKey, message: bytes) -> str:
    return bytes_to_base64(key.sign(message))
