"""
Unit tests for content type sniffing.
"""

import pytest

from codec_pipeline.stages.mime import (
    OCTET_STREAM, TEXT_PLAIN, TEXT_SAMPLE_SIZE, detect_mime_type, is_image, is_text
)

PNG_HEADER = b'\x89PNG\r\n\x1a\n' + b'\x00' * 24


class TestDetectMimeType:
    """Test signature table and text heuristic"""

    @pytest.mark.parametrize("data,expected", [
        (PNG_HEADER, 'image/png'),
        (b'\xff\xd8\xff\xe0\x00\x10JFIF', 'image/jpeg'),
        (b'GIF89a\x01\x00', 'image/gif'),
        (b'RIFF\x24\x00\x00\x00WEBPVP8 ', 'image/webp'),
        (b'BM\x36\x00\x00\x00', 'image/bmp'),
        (b'II*\x00\x08\x00', 'image/tiff'),
        (b'%PDF-1.7\n', 'application/pdf'),
        (b'PK\x03\x04\x14\x00', 'application/zip'),
    ])
    def test_signatures(self, data, expected):
        assert detect_mime_type(data) == expected

    def test_png_is_deterministic(self):
        assert {detect_mime_type(PNG_HEADER) for _ in range(5)} == {'image/png'}

    def test_empty_is_text(self):
        assert detect_mime_type(b'') == TEXT_PLAIN

    def test_printable_ascii_is_text(self):
        assert detect_mime_type(b'Hello World!\r\n\tindented') == TEXT_PLAIN

    def test_control_bytes_are_binary(self):
        assert detect_mime_type(b'abc\x00def') == OCTET_STREAM

    def test_non_ascii_is_binary(self):
        assert detect_mime_type('héllo'.encode('utf-8')) == OCTET_STREAM

    def test_only_first_sample_inspected(self):
        data = b'a' * TEXT_SAMPLE_SIZE + b'\x00\xff'
        assert detect_mime_type(data) == TEXT_PLAIN

    def test_short_prefix_does_not_match(self):
        # Partial PNG signature falls through to the binary check
        assert detect_mime_type(b'\x89PN') == OCTET_STREAM

    def test_accepts_memoryview(self):
        assert detect_mime_type(memoryview(PNG_HEADER)) == 'image/png'


class TestMimeHelpers:
    """Test MIME classification helpers"""

    def test_is_image(self):
        assert is_image('image/png')
        assert not is_image('text/plain')

    def test_is_text(self):
        assert is_text('text/plain')
        assert not is_text('application/pdf')
