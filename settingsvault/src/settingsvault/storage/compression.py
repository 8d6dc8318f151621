"""zlib compression stage of the persistence pipeline."""
from __future__ import annotations

import zlib

from ..errors import DecompressionFailure


DEFAULT_LEVEL = 6


class CompressionCodec:
    """Deflate/inflate byte blobs with zlib framing.

    :meth:`decompress` only succeeds when the stream reaches its end marker
    and every input byte was consumed, so a truncated file can never yield a
    partial payload.
    """

    def __init__(self, level: int = DEFAULT_LEVEL) -> None:
        if not 0 <= level <= 9:
            raise ValueError("compression level must be between 0 and 9")
        self._level = level

    def compress(self, payload: bytes) -> bytes:
        return zlib.compress(payload, self._level)

    def decompress(self, blob: bytes) -> bytes:
        inflater = zlib.decompressobj()
        try:
            data = inflater.decompress(blob)
            data += inflater.flush()
        except zlib.error as exc:
            raise DecompressionFailure(f"invalid compressed stream: {exc}") from exc
        if not inflater.eof:
            raise DecompressionFailure("compressed stream is truncated")
        if inflater.unused_data:
            raise DecompressionFailure(
                f"compressed stream has {len(inflater.unused_data)} trailing byte(s)"
            )
        return data
