"""
Codec stages: alphabet codec, content sniffing, chunking and output formats.
"""

from .alphabet import Alphabet, get_alphabet
from .chunking import ChunkedProcessor
from .formatting import OutputFormatter, generate_formats
from .mime import detect_mime_type

__all__ = [
    'Alphabet',
    'ChunkedProcessor',
    'OutputFormatter',
    'detect_mime_type',
    'generate_formats',
    'get_alphabet',
]
