"""
Pipeline Configurations
=======================

Per-call codec options, engine and queue settings, and pre-configured
presets for common workloads.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from resilience_patterns import RetryConfig, ValidationError
from codec_pipeline.stages.alphabet import Alphabet, get_alphabet
from codec_pipeline.stages.chunking import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB
START_METHODS = ('spawn', 'fork', 'forkserver')


@dataclass
class CodecOptions:
    """Options carried by every encode/decode request"""

    alphabet: Union[Alphabet, str, None] = 'standard'
    chunked: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        # Resolving here surfaces a bad alphabet before anything is dispatched
        self.alphabet = get_alphabet(self.alphabet)
        if self.chunk_size < 3:
            raise ValidationError("chunk_size must be at least 3 bytes")

    def to_wire(self) -> Dict[str, Any]:
        return {
            'alphabet': self.alphabet.to_dict(),
            'chunked': self.chunked,
            'chunkSize': self.chunk_size,
        }

    @classmethod
    def from_wire(cls, data: Optional[Dict[str, Any]]) -> 'CodecOptions':
        data = data or {}
        return cls(
            alphabet=data.get('alphabet'),
            chunked=bool(data.get('chunked', True)),
            chunk_size=int(data.get('chunkSize', DEFAULT_CHUNK_SIZE)),
        )


@dataclass
class EngineConfig:
    """Configuration settings for the processing engine"""

    # Worker settings
    use_worker: bool = True
    start_method: str = 'spawn'
    poll_interval: float = 0.1
    shutdown_timeout: float = 3.0
    worker_log_level: int = logging.WARNING

    # File input
    read_retry: RetryConfig = field(default_factory=RetryConfig)

    # Monitoring
    enable_monitoring: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters"""
        if self.start_method not in START_METHODS:
            raise ValueError(f"Invalid start_method: {self.start_method}")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout cannot be negative")
        if self.read_retry.max_attempts <= 0:
            raise ValueError("read_retry.max_attempts must be positive")


@dataclass
class QueueConfig:
    """Configuration settings for the batch queue"""

    max_concurrent: int = 3
    max_file_size: int = MAX_FILE_SIZE
    options: CodecOptions = field(default_factory=CodecOptions)

    def __post_init__(self) -> None:
        if self.max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")
        if self.max_file_size <= 0:
            raise ValueError("max_file_size must be positive")


class ConfigPresets:
    """Pre-configured settings for common use cases"""

    @staticmethod
    def default() -> Tuple[EngineConfig, QueueConfig]:
        """Worker process, 1 MiB chunks, three files at a time"""
        return EngineConfig(), QueueConfig()

    @staticmethod
    def large_files() -> Tuple[EngineConfig, QueueConfig]:
        """
        Optimized for few, large files
        - Bigger chunks, fewer progress events
        - Two files in flight to bound memory
        """
        return (
            EngineConfig(shutdown_timeout=10.0),
            QueueConfig(
                max_concurrent=2,
                options=CodecOptions(chunk_size=4 * 1024 * 1024),
            ),
        )

    @staticmethod
    def in_process() -> Tuple[EngineConfig, QueueConfig]:
        """
        No worker process: everything runs on the caller's event loop.
        Useful where spawning processes is not allowed.
        """
        return EngineConfig(use_worker=False), QueueConfig()

    @staticmethod
    def development_mode() -> Tuple[EngineConfig, QueueConfig]:
        """
        Optimized for debugging
        - Single file at a time
        - Small chunks so progress is visible on small inputs
        - Verbose worker logging
        """
        return (
            EngineConfig(worker_log_level=logging.DEBUG),
            QueueConfig(
                max_concurrent=1,
                options=CodecOptions(chunk_size=64 * 1024),
            ),
        )
