"""
Chunked Processor
=================

Runs large encodes chunk by chunk, reporting progress and yielding to the
event loop between chunks so other requests sharing the loop keep moving.
"""

import asyncio
import logging
from typing import Callable, Optional, Union

from resilience_patterns import CancellationToken
from codec_pipeline.stages import alphabet as codec
from codec_pipeline.stages.alphabet import Alphabet

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1 MiB

ProgressCallback = Optional[Callable[[float], None]]
BytesLike = Union[bytes, bytearray, memoryview]


def aligned_chunk_size(chunk_size: int) -> int:
    """Round down to a whole number of 3-byte groups.

    Chunks are encoded independently and concatenated, so only the last one
    may end in a partial group.
    """
    if chunk_size < 3:
        raise ValueError("chunk_size must be at least 3 bytes")
    return chunk_size - chunk_size % 3


class ChunkedProcessor:
    """Chunked encode and whole-input decode with progress and cancellation"""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.chunk_size = aligned_chunk_size(chunk_size)

    @staticmethod
    def _check(cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

    async def encode_chunked(self,
                             data: BytesLike,
                             alphabet: Alphabet,
                             on_progress: ProgressCallback = None,
                             cancel_token: Optional[CancellationToken] = None) -> str:
        """Encode ``data`` in chunks; progress after each chunk ends at exactly 1.0."""
        total = len(data)
        self._check(cancel_token)
        if total == 0:
            if on_progress:
                on_progress(1.0)
            return ''

        view = memoryview(data)
        parts = []
        processed = 0
        while processed < total:
            end = min(processed + self.chunk_size, total)
            parts.append(codec.encode(view[processed:end], alphabet))
            processed = end

            if on_progress:
                on_progress(processed / total)

            if processed < total:
                await asyncio.sleep(0)
                self._check(cancel_token)

        logger.debug(f"Encoded {total} bytes in {len(parts)} chunk(s)")
        return ''.join(parts)

    async def encode_whole(self,
                           data: BytesLike,
                           alphabet: Alphabet,
                           on_progress: ProgressCallback = None,
                           cancel_token: Optional[CancellationToken] = None) -> str:
        """Single-pass encode for callers that turned chunking off."""
        self._check(cancel_token)
        encoded = codec.encode(data, alphabet)
        if on_progress:
            on_progress(1.0)
        return encoded

    async def decode_whole(self,
                           text: str,
                           alphabet: Alphabet,
                           on_progress: ProgressCallback = None,
                           cancel_token: Optional[CancellationToken] = None) -> bytes:
        """Decode in one pass.

        4-symbol groups do not line up with byte chunk boundaries, so there is
        no intermediate progress: 0.0 before starting, 1.0 once done.
        """
        self._check(cancel_token)
        if on_progress:
            on_progress(0.0)
        await asyncio.sleep(0)
        self._check(cancel_token)
        decoded = codec.decode(text, alphabet)
        if on_progress:
            on_progress(1.0)
        return decoded
