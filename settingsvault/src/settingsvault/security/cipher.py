"""Authenticated encryption for persisted profile blobs.

What:
  Encrypt the compressed profile payload before it touches disk and reverse
  the operation on load.

Why:
  Profiles can carry credentials and personal preferences. Authenticated
  encryption keeps them confidential and turns any bit flip in the file into
  a hard :class:`DecryptionFailure` instead of a garbage payload.

How:
  Use libsodium's ChaCha20-Poly1305 (IETF) through PyNaCl. Every call to
  :meth:`CipherGuard.encrypt` draws a fresh random 96-bit nonce and prefixes
  it to the ciphertext, so the same key never encrypts two payloads under one
  nonce. A constant associated-data label binds ciphertexts to this format.

Interfaces:
  :class:`CipherGuard`, :data:`KEY_SIZE`, :data:`NONCE_SIZE`.

Invariants & Safety:
  - Keys are exactly 32 bytes; anything else is rejected at construction.
  - The key is fixed for the lifetime of the guard; rotation means building
    a new guard and re-saving every profile.
"""
from __future__ import annotations

from nacl import utils
from nacl.bindings import (
    crypto_aead_chacha20poly1305_ietf_decrypt,
    crypto_aead_chacha20poly1305_ietf_encrypt,
)
from nacl.exceptions import CryptoError

from ..errors import DecryptionFailure


AAD = b"settingsvault:v1"
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


class CipherGuard:
    """Encrypt/decrypt blobs under one process-wide key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise ValueError("Key must be 32 bytes for ChaCha20-Poly1305")
        self._key = bytes(key)

    def encrypt(self, data: bytes) -> bytes:
        nonce = utils.random(NONCE_SIZE)
        cipher = crypto_aead_chacha20poly1305_ietf_encrypt(data, AAD, nonce, self._key)
        return nonce + cipher

    def decrypt(self, blob: bytes) -> bytes:
        """Return the plaintext of ``blob``.

        Raises:
          DecryptionFailure: If the blob is shorter than nonce plus tag or the
            Poly1305 tag does not authenticate (tampering or wrong key).
        """

        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailure("ciphertext truncated")
        nonce, cipher = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return crypto_aead_chacha20poly1305_ietf_decrypt(cipher, AAD, nonce, self._key)
        except CryptoError as exc:
            raise DecryptionFailure("ciphertext failed authentication") from exc
