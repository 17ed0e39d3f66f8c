"""
Base Classes for the Alphabet Codec Pipeline
============================================

Contains core data structures and abstract base classes used throughout the pipeline.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from resilience_patterns import ValidationError


class Operation(str, Enum):
    """Operations understood by the worker"""
    ENCODE = "encode"
    DECODE = "decode"
    DETECT_MIME = "detect-mime"


class QueueItemStatus(str, Enum):
    """Lifecycle of a batch queue item"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueItemStatus.COMPLETED, QueueItemStatus.ERROR)


ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class FileRef:
    """Handle on a file to encode: a filesystem path or an in-memory buffer"""
    name: str
    path: Optional[Path] = None
    data: Optional[bytes] = None

    def __post_init__(self) -> None:
        if self.path is None and self.data is None:
            raise ValidationError(f"FileRef {self.name!r} needs a path or data")

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike]) -> 'FileRef':
        path = Path(path)
        return cls(name=path.name, path=path)

    @classmethod
    def from_bytes(cls, name: str, data: bytes) -> 'FileRef':
        return cls(name=name, data=bytes(data))

    @classmethod
    def coerce(cls, file: Union['FileRef', str, os.PathLike]) -> 'FileRef':
        if isinstance(file, FileRef):
            return file
        return cls.from_path(file)

    @property
    def size(self) -> int:
        if self.data is not None:
            return len(self.data)
        return self.path.stat().st_size


@dataclass(frozen=True)
class ProcessingRequest:
    """One dispatch to the worker; immutable once created"""
    id: str
    operation: Operation
    payload: Union[bytes, str, None]
    options: Dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> Dict[str, Any]:
        """Outbound wire envelope"""
        return {
            'id': self.id,
            'type': self.operation.value,
            'data': self.payload,
            'options': self.options,
        }


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of an encode or decode operation"""
    mime_type: str
    byte_size: int
    is_image: bool
    encoded_text: Optional[str] = None
    decoded_bytes: Optional[bytes] = None
    decoded_text: Optional[str] = None
    formats: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form, using the protocol's camelCase keys"""
        data: Dict[str, Any] = {
            'mimeType': self.mime_type,
            'byteSize': self.byte_size,
            'isImage': self.is_image,
        }
        if self.encoded_text is not None:
            data['encodedText'] = self.encoded_text
            data['formats'] = dict(self.formats)
        if self.decoded_bytes is not None:
            data['decodedBytes'] = self.decoded_bytes
        if self.decoded_text is not None:
            data['decodedText'] = self.decoded_text
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProcessingResult':
        return cls(
            mime_type=data['mimeType'],
            byte_size=data['byteSize'],
            is_image=data['isImage'],
            encoded_text=data.get('encodedText'),
            decoded_bytes=data.get('decodedBytes'),
            decoded_text=data.get('decodedText'),
            formats=dict(data.get('formats') or {}),
        )


@dataclass
class QueueItem:
    """Bookkeeping for one file submitted to the batch queue"""
    id: str
    file_ref: FileRef
    status: QueueItemStatus = QueueItemStatus.PENDING
    progress: float = 0.0
    result: Optional[ProcessingResult] = None
    error: Optional[str] = None


class WorkerChannel(ABC):
    """Parent-side handle on an execution context that speaks the wire protocol.

    Implementations deliver inbound envelopes to ``on_message`` and report a
    failure of the channel itself to ``on_error``, both on the event loop
    thread of whoever started the channel.
    """

    @abstractmethod
    def start(self, on_message: Callable[[Dict[str, Any]], None],
              on_error: Callable[[Exception], None]) -> None:
        pass

    @abstractmethod
    def post_message(self, message: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def terminate(self) -> None:
        pass

    async def aclose(self) -> None:
        """Terminate from a coroutine; blocking implementations override this."""
        self.terminate()

    @property
    @abstractmethod
    def is_alive(self) -> bool:
        pass
