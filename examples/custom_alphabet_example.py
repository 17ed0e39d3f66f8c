"""
Example Custom Alphabet
=======================

Demonstrates encoding with a custom 64-symbol alphabet through the
processing engine, with progress reporting and cancellation.
"""

import asyncio
import logging
import string

from base_classes import FileRef
from pipeline_configs import CodecOptions
from resilience_patterns import CancellationToken, CancelledError
from codec_pipeline.stages.alphabet import Alphabet
from codec_pipeline.workers import ProcessingEngine

logger = logging.getLogger(__name__)

# Digits first, then letters, with '!' and '~' as the last two symbols
SHUFFLED = Alphabet(
    symbols=string.digits + string.ascii_lowercase + string.ascii_uppercase + '!~',
    padding_char='*',
    name='shuffled',
)


async def main():
    options = CodecOptions(alphabet=SHUFFLED, chunk_size=64 * 1024)
    payload = bytes(range(256)) * 4096  # 1 MiB

    with ProcessingEngine() as engine:
        result = await engine.encode_text("Hello World!", options)
        print(f"Encoded text: {result.encoded_text}")

        decoded = await engine.decode(result.encoded_text, options)
        print(f"Decoded back: {decoded.decoded_text}")

        def on_progress(progress: float) -> None:
            print(f"\rEncoding: {progress:6.1%}", end="")

        encoded = await engine.encode_file(
            FileRef.from_bytes('payload.bin', payload),
            options,
            on_progress,
        )
        print(f"\nEncoded {encoded.byte_size} bytes into {len(encoded.encoded_text)} symbols")

        token = CancellationToken()

        def cancel_halfway(progress: float) -> None:
            if progress >= 0.5:
                token.cancel()

        try:
            await engine.encode_file(
                FileRef.from_bytes('payload.bin', payload),
                CodecOptions(alphabet=SHUFFLED, chunk_size=3 * 1024),
                cancel_halfway,
                token,
            )
        except CancelledError as e:
            print(f"Second encode stopped: {e}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
