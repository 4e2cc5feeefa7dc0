from __future__ import annotations
import base64
import binascii

from cryptography.fernet import Fernet, InvalidToken

KEY_BYTES = 32
# known plaintext stored encrypted in store_meta; decrypting it proves the key
KEY_CHECK_PLAINTEXT = b"daynotes-key-check-v1"


class WrongKey(Exception):
    pass


def fernet_from_hex(key_hex: str) -> Fernet:
    try:
        raw = bytes.fromhex(key_hex)
    except (ValueError, TypeError) as e:
        # never echo the key itself
        raise ValueError("encryption key is not valid hex") from e
    if len(raw) != KEY_BYTES:
        raise ValueError(f"encryption key must be {KEY_BYTES} bytes, got {len(raw)}")
    return Fernet(base64.urlsafe_b64encode(raw))


class FieldCipher:
    """Encrypts the text columns of a note with the store key."""

    def __init__(self, key_hex: str):
        self._fernet = fernet_from_hex(key_hex)

    def encrypt(self, value: str) -> bytes:
        return self._fernet.encrypt(value.encode("utf-8"))

    def decrypt(self, token: bytes) -> str:
        try:
            return self._fernet.decrypt(bytes(token)).decode("utf-8")
        except (InvalidToken, binascii.Error) as e:
            raise WrongKey("ciphertext does not decrypt with this key") from e

    def make_key_check(self) -> bytes:
        return self._fernet.encrypt(KEY_CHECK_PLAINTEXT)

    def verify_key_check(self, token: bytes) -> None:
        try:
            plain = self._fernet.decrypt(bytes(token))
        except (InvalidToken, binascii.Error) as e:
            raise WrongKey("database was created with a different key") from e
        if plain != KEY_CHECK_PLAINTEXT:
            raise WrongKey("database key check does not match")
