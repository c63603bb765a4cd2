import base64
import hashlib

import pytest

from lms_authz.core.security import generate_password, hash_password


def _b64(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def test_hash_is_salted_scrypt() -> None:
    hashed = hash_password("Correct-Horse-1")

    scheme, n, r, p, salt, key = hashed.split("$")
    assert (scheme, n, r, p) == ("scrypt", "16384", "8", "1")
    expected = hashlib.scrypt(
        b"Correct-Horse-1", salt=_b64(salt), n=16384, r=8, p=1, dklen=len(_b64(key))
    )
    assert expected == _b64(key)
    assert hash_password("Correct-Horse-1") != hashed


def test_blank_password_is_rejected() -> None:
    with pytest.raises(ValueError):
        hash_password("   ")


def test_generated_passwords_are_unique() -> None:
    first = generate_password()

    assert len(first) >= 24
    assert first != generate_password()
