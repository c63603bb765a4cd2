"""Credential hashing used when provisioning the bootstrap account."""

from __future__ import annotations

import base64
import hashlib
import secrets

_SALT_BYTES = 16
_KEY_LEN = 32
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1

_GENERATED_PASSWORD_BYTES = 24


def _encode(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).decode("ascii").rstrip("=")


def hash_password(password: str) -> str:
    """Hash ``password`` using scrypt with a random salt."""

    candidate = password.strip()
    if not candidate:
        msg = "Password must not be empty"
        raise ValueError(msg)

    salt = secrets.token_bytes(_SALT_BYTES)
    key = hashlib.scrypt(
        candidate.encode("utf-8"),
        salt=salt,
        n=_SCRYPT_N,
        r=_SCRYPT_R,
        p=_SCRYPT_P,
        dklen=_KEY_LEN,
    )
    return (
        f"scrypt${_SCRYPT_N}${_SCRYPT_R}${_SCRYPT_P}$"
        f"{_encode(salt)}${_encode(key)}"
    )


def generate_password() -> str:
    """Return a random URL-safe password for one-time provisioning."""

    return secrets.token_urlsafe(_GENERATED_PASSWORD_BYTES)


__all__ = ["generate_password", "hash_password"]
