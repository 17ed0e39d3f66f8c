"""
Alphabet codec pipeline modules.
"""

# Import codec stages; the worker components live in codec_pipeline.workers
from .stages.alphabet import Alphabet, PREDEFINED_ALPHABETS, decode, encode, get_alphabet
from .stages.chunking import ChunkedProcessor
from .stages.mime import detect_mime_type

__all__ = [
    'Alphabet',
    'PREDEFINED_ALPHABETS',
    'ChunkedProcessor',
    'decode',
    'detect_mime_type',
    'encode',
    'get_alphabet',
]
