"""
Unit tests for configuration dataclasses and presets.
"""

import logging

import pytest

from pipeline_configs import (
    MAX_FILE_SIZE, CodecOptions, ConfigPresets, EngineConfig, QueueConfig
)
from resilience_patterns import RetryConfig, ValidationError
from codec_pipeline.stages.alphabet import STANDARD, URL_SAFE, Alphabet


class TestCodecOptions:
    """Test per-call codec options"""

    def test_defaults(self):
        options = CodecOptions()
        assert options.alphabet is STANDARD
        assert options.chunked is True
        assert options.chunk_size == 1024 * 1024

    def test_alphabet_resolved_by_name(self):
        assert CodecOptions(alphabet='url').alphabet is URL_SAFE

    def test_bad_alphabet(self):
        with pytest.raises(ValidationError):
            CodecOptions(alphabet='not sixty-four characters')

    def test_chunk_size_too_small(self):
        with pytest.raises(ValidationError):
            CodecOptions(chunk_size=2)

    def test_wire_round_trip(self):
        options = CodecOptions(alphabet='xml-name', chunked=False, chunk_size=999)
        wire = options.to_wire()
        assert wire == {
            'alphabet': {'symbols': options.alphabet.symbols, 'paddingChar': '-',
                         'urlSafe': False, 'name': 'xml-name'},
            'chunked': False,
            'chunkSize': 999,
        }
        restored = CodecOptions.from_wire(wire)
        assert restored == options
        assert isinstance(restored.alphabet, Alphabet)

    def test_from_empty_wire(self):
        assert CodecOptions.from_wire(None) == CodecOptions()


class TestEngineConfig:
    """Test engine configuration validation"""

    def test_defaults(self):
        config = EngineConfig()
        assert config.use_worker is True
        assert config.start_method == 'spawn'
        assert config.worker_log_level == logging.WARNING

    @pytest.mark.parametrize("kwargs", [
        {'start_method': 'thread'},
        {'poll_interval': 0},
        {'shutdown_timeout': -1},
        {'read_retry': RetryConfig(max_attempts=0)},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)


class TestQueueConfig:
    """Test queue configuration validation"""

    def test_defaults(self):
        config = QueueConfig()
        assert config.max_concurrent == 3
        assert config.max_file_size == MAX_FILE_SIZE == 50 * 1024 * 1024

    def test_invalid(self):
        with pytest.raises(ValueError):
            QueueConfig(max_concurrent=0)
        with pytest.raises(ValueError):
            QueueConfig(max_file_size=0)


class TestConfigPresets:
    """Test preset configurations"""

    def test_presets_return_pairs(self):
        for preset in (ConfigPresets.default, ConfigPresets.large_files,
                       ConfigPresets.in_process, ConfigPresets.development_mode):
            engine_config, queue_config = preset()
            assert isinstance(engine_config, EngineConfig)
            assert isinstance(queue_config, QueueConfig)

    def test_in_process(self):
        engine_config, _ = ConfigPresets.in_process()
        assert engine_config.use_worker is False

    def test_development_mode(self):
        engine_config, queue_config = ConfigPresets.development_mode()
        assert engine_config.worker_log_level == logging.DEBUG
        assert queue_config.max_concurrent == 1
