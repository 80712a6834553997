try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    plaintext = "sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext

    decrypted = cipher.decrypt(encrypted)
    assert decrypted == plaintext


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_seal_only_touches_access_fields() -> None:
    cipher = TokenCipherService(secret="super-secret-key")

    sealed = cipher.seal(
        {"id": "u1", "access_token": "at1", "accessTokenSecret": "ats1", "requestToken": None}
    )

    assert sealed["id"] == "u1"
    assert sealed["requestToken"] is None
    assert sealed["access_token"] != "at1"
    assert cipher.unseal(sealed) == {
        "id": "u1",
        "access_token": "at1",
        "accessTokenSecret": "ats1",
        "requestToken": None,
    }
