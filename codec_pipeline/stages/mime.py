"""
Content Type Sniffer
====================

Classify byte content by its leading signature bytes.
"""

from typing import List, Tuple, Union

TEXT_PLAIN = 'text/plain'
OCTET_STREAM = 'application/octet-stream'

# Checked in order, first match wins
SIGNATURES: List[Tuple[str, bytes]] = [
    ('image/png', b'\x89PNG'),
    ('image/jpeg', b'\xff\xd8\xff'),
    ('image/gif', b'GIF'),
    ('image/webp', b'RIFF'),
    ('image/bmp', b'BM'),
    ('image/tiff', b'II*\x00'),
    ('application/pdf', b'%PDF'),
    ('application/zip', b'PK\x03\x04'),
]

TEXT_SAMPLE_SIZE = 1024
_TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 13}


def detect_mime_type(data: Union[bytes, bytearray, memoryview]) -> str:
    """Return the MIME type for ``data``; pure and deterministic."""
    head = bytes(data[:TEXT_SAMPLE_SIZE])
    for mime_type, signature in SIGNATURES:
        if head.startswith(signature):
            return mime_type

    if all(byte in _TEXT_BYTES for byte in head):
        return TEXT_PLAIN
    return OCTET_STREAM


def is_image(mime_type: str) -> bool:
    return mime_type.startswith('image/')


def is_text(mime_type: str) -> bool:
    return mime_type.startswith('text/')
