"""
Unit tests for the alphabet codec
=================================

Tests for codec_pipeline/stages/alphabet.py including:
- Alphabet validation
- Encoding and padding policy per alphabet
- Strict decoding
- Alphabet resolution from names, dicts and raw symbols
"""

import base64

import pytest

from resilience_patterns import DecodeError, ValidationError
from codec_pipeline.stages.alphabet import (
    Alphabet, FILENAME_SAFE, PREDEFINED_ALPHABETS, STANDARD, STANDARD_SYMBOLS,
    URL_SAFE, XML_NAME, XML_TOKEN, decode, encode, get_alphabet
)

SAMPLES = [b'', b'f', b'fo', b'foo', b'foob', b'fooba', b'foobar', bytes(range(256)), b'\xfb\xff\xfe' * 7]


class TestAlphabetValidation:
    """Test construction-time validation"""

    def test_predefined_alphabets_are_valid(self):
        assert set(PREDEFINED_ALPHABETS) == {'standard', 'url', 'filename', 'xml-name', 'xml-token'}
        for alphabet in PREDEFINED_ALPHABETS.values():
            assert len(alphabet.symbols) == 64
            assert len(set(alphabet.symbols)) == 64

    def test_wrong_length_rejected(self):
        with pytest.raises(ValidationError, match="exactly 64"):
            Alphabet(STANDARD_SYMBOLS[:63])

    def test_duplicates_rejected(self):
        with pytest.raises(ValidationError, match="unique"):
            Alphabet(STANDARD_SYMBOLS[:63] + 'A')

    def test_whitespace_rejected(self):
        with pytest.raises(ValidationError, match="whitespace"):
            Alphabet(STANDARD_SYMBOLS[:63] + ' ')

    def test_padding_must_not_be_a_symbol(self):
        with pytest.raises(ValidationError):
            Alphabet(STANDARD_SYMBOLS, padding_char='A')

    def test_padding_must_be_single_character(self):
        with pytest.raises(ValidationError):
            Alphabet(STANDARD_SYMBOLS, padding_char='==')

    def test_whitespace_padding_rejected(self):
        with pytest.raises(ValidationError):
            Alphabet(STANDARD_SYMBOLS, padding_char='\n')

    def test_none_padding_means_no_padding(self):
        alphabet = Alphabet(STANDARD_SYMBOLS, padding_char=None)
        assert alphabet.padding_char == ''
        assert not alphabet.has_padding
        assert alphabet == Alphabet(STANDARD_SYMBOLS, padding_char='')

        encoded = encode(b'f', alphabet)
        assert encoded == 'Zg'
        assert decode(encoded, alphabet) == b'f'

    def test_non_string_padding_rejected(self):
        with pytest.raises(ValidationError, match="Padding must be a string"):
            Alphabet(STANDARD_SYMBOLS, padding_char=61)

    def test_validation_error_is_processing_error(self):
        from resilience_patterns import ProcessingError
        with pytest.raises(ProcessingError):
            Alphabet('abc')


class TestEncode:
    """Test encoding and the padding policy"""

    def test_hello_world_standard(self):
        assert encode(b"Hello World!") == "SGVsbG8gV29ybGQh"

    def test_empty_input(self):
        assert encode(b"") == ""

    def test_matches_stdlib_for_standard(self):
        for sample in SAMPLES:
            assert encode(sample) == base64.b64encode(sample).decode('ascii')

    def test_padding_emitted_when_present(self):
        assert encode(b'f') == 'Zg=='
        assert encode(b'fo') == 'Zm8='
        assert encode(b'f', FILENAME_SAFE) == 'Zg__'
        assert encode(b'fo', XML_NAME) == 'Zm8-'

    def test_no_padding_when_absent(self):
        assert encode(b'f', URL_SAFE) == 'Zg'
        assert encode(b'fo', URL_SAFE) == 'Zm8'
        assert not any(encode(sample, URL_SAFE).endswith('=') for sample in SAMPLES)

    def test_last_two_symbols_follow_alphabet(self):
        data = b'\xfb\xff'
        assert encode(data) == '+/8='
        assert encode(data, URL_SAFE) == '-_8'
        assert encode(data, FILENAME_SAFE) == '.-8_'
        assert encode(data, XML_NAME) == '._8-'
        assert encode(data, XML_TOKEN) == '.-8_'

    def test_accepts_memoryview(self):
        view = memoryview(b'Hello World!')
        assert encode(view[0:6]) == encode(b'Hello ')


class TestDecode:
    """Test strict decoding under the configured alphabet"""

    @pytest.mark.parametrize("alphabet", list(PREDEFINED_ALPHABETS.values()), ids=list(PREDEFINED_ALPHABETS))
    def test_round_trip_all_predefined(self, alphabet):
        for sample in SAMPLES:
            assert decode(encode(sample, alphabet), alphabet) == sample

    def test_round_trip_custom_alphabet(self):
        alphabet = get_alphabet(STANDARD_SYMBOLS[::-1])
        for sample in SAMPLES:
            assert decode(encode(sample, alphabet), alphabet) == sample

    def test_hello_world(self):
        assert decode("SGVsbG8gV29ybGQh") == b"Hello World!"

    def test_whitespace_is_ignored(self):
        assert decode("SGVs\nbG8g\r\nV29y bGQh\t") == b"Hello World!"

    def test_not_base64_raises(self):
        with pytest.raises(DecodeError):
            decode("not base64 at all!!")

    def test_foreign_symbols_rejected(self):
        # '+' belongs to the standard alphabet only
        with pytest.raises(DecodeError, match="Invalid character"):
            decode('+/8=', URL_SAFE)

    def test_url_safe_rejects_standard_padding(self):
        with pytest.raises(DecodeError):
            decode('Zg==', URL_SAFE)

    def test_unpadded_input_accepted(self):
        assert decode('Zg') == b'f'
        assert decode('Zm8', URL_SAFE) == b'fo'

    def test_dangling_symbol_rejected(self):
        with pytest.raises(DecodeError, match="Truncated"):
            decode('Zm9vY')

    def test_too_much_padding_rejected(self):
        with pytest.raises(DecodeError, match="padding"):
            decode('Zg===')

    def test_padding_must_complete_group(self):
        with pytest.raises(DecodeError):
            decode('Zg=')

    def test_interior_padding_rejected(self):
        with pytest.raises(DecodeError):
            decode('Zg==Zg==')

    def test_empty_input(self):
        assert decode('') == b''
        assert decode('  \n') == b''


class TestGetAlphabet:
    """Test alphabet resolution"""

    def test_none_is_standard(self):
        assert get_alphabet(None) is STANDARD

    def test_instance_passthrough(self):
        assert get_alphabet(URL_SAFE) is URL_SAFE

    def test_predefined_name(self):
        assert get_alphabet('filename') is FILENAME_SAFE

    def test_raw_symbols_get_standard_padding(self):
        alphabet = get_alphabet(STANDARD_SYMBOLS[::-1])
        assert alphabet.padding_char == '='
        assert alphabet.name == 'custom'

    def test_raw_symbols_containing_pad_are_unpadded(self):
        symbols = STANDARD_SYMBOLS[:62] + '=-'
        alphabet = get_alphabet(symbols)
        assert alphabet.padding_char == ''
        assert not alphabet.has_padding

    def test_wire_dict_round_trip(self):
        assert get_alphabet(XML_NAME.to_dict()) == XML_NAME
        assert get_alphabet(URL_SAFE.to_dict()) == URL_SAFE

    def test_invalid_raw_symbols(self):
        with pytest.raises(ValidationError):
            get_alphabet('abc')

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            get_alphabet(42)
