"""
Unit tests for the core data model.
"""

import dataclasses

import pytest

from base_classes import (
    FileRef, Operation, ProcessingRequest, ProcessingResult, QueueItem, QueueItemStatus
)
from resilience_patterns import ValidationError


class TestFileRef:
    """Test file handles"""

    def test_from_bytes(self):
        ref = FileRef.from_bytes('a.bin', bytearray(b'abc'))
        assert ref.size == 3
        assert ref.data == b'abc'
        assert ref.path is None

    def test_from_path(self, tmp_path):
        path = tmp_path / 'notes.txt'
        path.write_bytes(b'12345')
        ref = FileRef.coerce(str(path))
        assert ref.name == 'notes.txt'
        assert ref.size == 5

    def test_coerce_passthrough(self):
        ref = FileRef.from_bytes('a', b'')
        assert FileRef.coerce(ref) is ref

    def test_needs_path_or_data(self):
        with pytest.raises(ValidationError):
            FileRef(name='nothing')


class TestProcessingRequest:
    """Test request envelopes"""

    def test_to_message(self):
        request = ProcessingRequest(id='abc', operation=Operation.DETECT_MIME, payload=b'x')
        assert request.to_message() == {'id': 'abc', 'type': 'detect-mime', 'data': b'x', 'options': {}}

    def test_immutable(self):
        request = ProcessingRequest(id='abc', operation=Operation.ENCODE, payload='x')
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.payload = 'y'


class TestProcessingResult:
    """Test result wire form"""

    def test_encode_result_round_trip(self):
        result = ProcessingResult(mime_type='text/plain', byte_size=2, is_image=False,
                                  encoded_text='aGk=', formats={'raw': 'aGk='})
        wire = result.to_dict()
        assert wire == {'mimeType': 'text/plain', 'byteSize': 2, 'isImage': False,
                        'encodedText': 'aGk=', 'formats': {'raw': 'aGk='}}
        assert ProcessingResult.from_dict(wire) == result

    def test_decode_result_has_no_formats(self):
        result = ProcessingResult(mime_type='application/octet-stream', byte_size=1,
                                  is_image=False, decoded_bytes=b'\x00')
        assert 'formats' not in result.to_dict()
        assert 'decodedText' not in result.to_dict()


class TestQueueItemStatus:
    """Test status helpers"""

    def test_terminal_states(self):
        assert QueueItemStatus.COMPLETED.is_terminal
        assert QueueItemStatus.ERROR.is_terminal
        assert not QueueItemStatus.PENDING.is_terminal
        assert not QueueItemStatus.PROCESSING.is_terminal

    def test_queue_item_defaults(self):
        item = QueueItem(id='1', file_ref=FileRef.from_bytes('a', b''))
        assert item.status is QueueItemStatus.PENDING
        assert item.progress == 0.0
        assert item.result is None and item.error is None
