"""Integrity tags for serialized settings payloads.

What:
  Prefix a payload with a self-describing digest header and verify it on the
  way back in.

Why:
  The tag is computed over the serialized bytes before compression and
  encryption, so a successful decrypt of damaged data (or data written with a
  different key) is still caught before it reaches the JSON decoder.

How:
  The header is ``b"SVT"`` followed by one algorithm byte and a 32-byte
  digest. Algorithm ``1`` is plain SHA-256; algorithm ``2`` is HMAC-SHA256
  under a key derived from the process cipher key. Verification recomputes the
  digest and compares with :func:`hmac.compare_digest`.

Interfaces:
  :class:`IntegrityGuard`, :func:`derive_integrity_key`.

Invariants & Safety:
  - A guard only accepts tags produced with its own algorithm; an unkeyed tag
    is rejected by a keyed guard so the MAC cannot be stripped.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Optional

from ..errors import IntegrityFailure


MAGIC = b"SVT"
ALG_SHA256 = 1
ALG_HMAC_SHA256 = 2
DIGEST_SIZE = 32
HEADER_SIZE = len(MAGIC) + 1 + DIGEST_SIZE
_DERIVATION_LABEL = b"settingsvault:integrity:v1"


def derive_integrity_key(master_key: bytes) -> bytes:
    """Derive the HMAC key from the cipher key so the two never coincide."""

    return hmac.new(master_key, _DERIVATION_LABEL, hashlib.sha256).digest()


class IntegrityGuard:
    """Attach and verify digests.

    Args:
      key: HMAC key. ``None`` selects unkeyed SHA-256 tags.
    """

    def __init__(self, key: Optional[bytes] = None) -> None:
        self._key = key
        self._algorithm = ALG_SHA256 if key is None else ALG_HMAC_SHA256

    @property
    def keyed(self) -> bool:
        return self._key is not None

    def _digest(self, payload: bytes) -> bytes:
        if self._key is None:
            return hashlib.sha256(payload).digest()
        return hmac.new(self._key, payload, hashlib.sha256).digest()

    def attach(self, payload: bytes) -> bytes:
        return MAGIC + bytes([self._algorithm]) + self._digest(payload) + payload

    def extract_and_verify(self, tagged: bytes) -> bytes:
        """Return the payload of ``tagged`` once its digest checks out.

        Raises:
          IntegrityFailure: On a short or unrecognised header, an algorithm
            other than the guard's own, or a digest mismatch.
        """

        if len(tagged) < HEADER_SIZE or not tagged.startswith(MAGIC):
            raise IntegrityFailure("integrity header missing or truncated")
        algorithm = tagged[len(MAGIC)]
        if algorithm != self._algorithm:
            raise IntegrityFailure(f"unexpected integrity algorithm {algorithm}")
        expected = tagged[len(MAGIC) + 1 : HEADER_SIZE]
        payload = tagged[HEADER_SIZE:]
        if not hmac.compare_digest(expected, self._digest(payload)):
            raise IntegrityFailure("integrity digest mismatch")
        return payload
