"""
Alphabet Codec
==============

Binary-to-text encoding over a configurable 64-symbol alphabet.

Bytes are taken three at a time and split into four 6-bit indices into
``Alphabet.symbols``. A final group of one or two bytes is zero-filled for
packing; its missing output positions become the padding character, or are
dropped entirely when the alphabet has no padding.

The bit packing itself is done by :mod:`base64` over the RFC 4648 standard
alphabet and the result is translated index-for-index onto the configured
symbols, so any valid alphabet produces exactly the output of the group
algorithm above.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Dict, Optional, Union

from resilience_patterns import DecodeError, ValidationError

logger = logging.getLogger(__name__)

STANDARD_SYMBOLS = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/'
_ALNUM = STANDARD_SYMBOLS[:62]
_STANDARD_PAD = '='


@dataclass(frozen=True)
class Alphabet:
    """64 unique symbols plus an optional padding character"""
    symbols: str
    padding_char: Optional[str] = '='
    url_safe: bool = False
    name: str = 'custom'

    def __post_init__(self) -> None:
        if not isinstance(self.symbols, str) or len(self.symbols) != 64:
            length = len(self.symbols) if isinstance(self.symbols, str) else 'n/a'
            raise ValidationError(f"Alphabet must contain exactly 64 characters (got {length})")
        if len(set(self.symbols)) != 64:
            raise ValidationError("All characters in the alphabet must be unique")
        if any(ch.isspace() for ch in self.symbols):
            raise ValidationError("Alphabet cannot contain whitespace characters")
        if self.padding_char is None:
            object.__setattr__(self, 'padding_char', '')
        elif not isinstance(self.padding_char, str):
            raise ValidationError(
                f"Padding must be a string or None (got {type(self.padding_char).__name__})")
        if len(self.padding_char) > 1:
            raise ValidationError("Padding must be a single character or empty")
        if self.padding_char:
            if self.padding_char.isspace():
                raise ValidationError("Padding character cannot be whitespace")
            if self.padding_char in self.symbols:
                raise ValidationError(
                    f"Padding character {self.padding_char!r} is also an alphabet symbol")

    @property
    def has_padding(self) -> bool:
        return bool(self.padding_char)

    @cached_property
    def _encode_table(self) -> Dict[int, str]:
        return str.maketrans(STANDARD_SYMBOLS, self.symbols)

    @cached_property
    def _decode_table(self) -> Dict[int, str]:
        return str.maketrans(self.symbols, STANDARD_SYMBOLS)

    @cached_property
    def _symbol_set(self) -> frozenset:
        return frozenset(self.symbols)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbols': self.symbols,
            'paddingChar': self.padding_char,
            'urlSafe': self.url_safe,
            'name': self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Alphabet':
        padding = data.get('paddingChar', '=')
        return cls(
            symbols=data['symbols'],
            padding_char=padding or '',
            url_safe=bool(data.get('urlSafe', False)),
            name=data.get('name', 'custom'),
        )


STANDARD = Alphabet(STANDARD_SYMBOLS, '=', False, 'standard')
URL_SAFE = Alphabet(_ALNUM + '-_', '', True, 'url')
FILENAME_SAFE = Alphabet(_ALNUM + '.-', '_', False, 'filename')
XML_NAME = Alphabet(_ALNUM + '._', '-', False, 'xml-name')
XML_TOKEN = Alphabet(_ALNUM + '.-', '_', False, 'xml-token')

PREDEFINED_ALPHABETS: Dict[str, Alphabet] = {
    alphabet.name: alphabet
    for alphabet in (STANDARD, URL_SAFE, FILENAME_SAFE, XML_NAME, XML_TOKEN)
}


def get_alphabet(spec: Union[Alphabet, str, Dict[str, Any], None] = None) -> Alphabet:
    """Resolve an alphabet from an instance, a predefined name, a wire dict or raw symbols.

    A raw 64-character symbol string gets ``=`` padding unless ``=`` is one
    of its symbols, in which case it is unpadded.
    """
    if spec is None:
        return STANDARD
    if isinstance(spec, Alphabet):
        return spec
    if isinstance(spec, dict):
        return Alphabet.from_dict(spec)
    if not isinstance(spec, str):
        raise ValidationError(f"Unsupported alphabet specification: {type(spec).__name__}")
    if spec in PREDEFINED_ALPHABETS:
        return PREDEFINED_ALPHABETS[spec]
    padding = '' if _STANDARD_PAD in spec else _STANDARD_PAD
    return Alphabet(symbols=spec, padding_char=padding)


def encode(data: Union[bytes, bytearray, memoryview], alphabet: Alphabet = STANDARD) -> str:
    """Encode bytes into text under ``alphabet``."""
    packed = base64.b64encode(data).decode('ascii')
    body = packed.rstrip(_STANDARD_PAD)
    pad_count = len(packed) - len(body)
    return body.translate(alphabet._encode_table) + alphabet.padding_char * pad_count


def _strip_padding(text: str, alphabet: Alphabet) -> str:
    if not alphabet.has_padding:
        return text
    body = text.rstrip(alphabet.padding_char)
    pad_count = len(text) - len(body)
    if pad_count == 0:
        return body
    if pad_count > 2 or len(text) % 4 != 0:
        raise DecodeError(f"Invalid padding: {pad_count} trailing {alphabet.padding_char!r} "
                          f"on input of length {len(text)}")
    return body


def decode(text: str, alphabet: Alphabet = STANDARD) -> bytes:
    """Decode text produced by :func:`encode` with the same alphabet.

    Whitespace is treated as layout and skipped. Padding is accepted only as
    a trailing run that completes the last group. Every other character must
    belong to ``alphabet.symbols``.
    """
    compact = ''.join(text.split())
    body = _strip_padding(compact, alphabet)

    symbols = alphabet._symbol_set
    for position, ch in enumerate(body):
        if ch not in symbols:
            raise DecodeError(f"Invalid character {ch!r} at position {position} "
                              f"for alphabet {alphabet.name!r}")

    remainder = len(body) % 4
    if remainder == 1:
        raise DecodeError(f"Truncated input: {len(body)} symbols leave a dangling group")

    standard = body.translate(alphabet._decode_table)
    if remainder:
        standard += _STANDARD_PAD * (4 - remainder)
    try:
        return base64.b64decode(standard, validate=True)
    except binascii.Error as e:
        raise DecodeError(f"Malformed input: {e}", cause=e) from e
