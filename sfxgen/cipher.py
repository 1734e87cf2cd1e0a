from __future__ import annotations

"""AES-256-CBC with PKCS#7 padding, backed by PyCryptodomex.

Blob layout is ``IV (16 bytes) || ciphertext``. There is no
authentication tag, so a wrong key and damaged ciphertext both surface as
DecryptionFailed.
"""

from Cryptodome.Cipher import AES
from Cryptodome.Random import get_random_bytes
from Cryptodome.Util.Padding import pad, unpad

from .constants import BLOCK_SIZE, IV_SIZE, KEY_SIZE
from .errors import DecryptionFailed, MalformedBlob


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes for AES-256")


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    _check_key(key)
    iv = get_random_bytes(IV_SIZE)
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    return iv + cipher.encrypt(pad(plaintext, BLOCK_SIZE, style="pkcs7"))


def decrypt(blob: bytes, key: bytes) -> bytes:
    _check_key(key)
    if len(blob) < IV_SIZE + 1:
        raise MalformedBlob(f"Encrypted payload too short ({len(blob)} bytes)")
    iv = blob[:IV_SIZE]
    ciphertext = blob[IV_SIZE:]
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    try:
        return unpad(cipher.decrypt(ciphertext), BLOCK_SIZE, style="pkcs7")
    except ValueError as exc:
        # misaligned ciphertext or bad padding
        raise DecryptionFailed("Decryption failed: wrong passphrase or corrupted data") from exc
