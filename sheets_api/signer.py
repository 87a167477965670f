"""RS256 signing primitives for service account assertions."""

from __future__ import annotations

import base64

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from sheets_api.exceptions import AuthError


def b64url_encode(data: bytes) -> str:
    """Base64url-encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def load_private_key(private_key_pem: str) -> rsa.RSAPrivateKey:
    """Load an unencrypted PEM RSA private key.

    Raises:
        AuthError: key_invalid if the PEM does not hold an RSA private key
    """
    try:
        key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        raise AuthError("key_invalid", f"Could not load private key: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise AuthError("key_invalid", f"Expected an RSA private key, got {type(key).__name__}")
    return key


def sign(payload: bytes, private_key_pem: str) -> bytes:
    """Sign payload with RSASSA-PKCS1-v1_5 over SHA-256."""
    key = load_private_key(private_key_pem)
    return key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
