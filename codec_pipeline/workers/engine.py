"""
Processing Engine
=================

Async front end for encode, decode and content-type detection.

Every call gets a correlation id and an entry in the pending table, is
posted to the worker channel, and is settled by the first terminal
envelope carrying its id. Progress envelopes in between are forwarded to
the caller's callback. When no worker process can be started the same
request handler runs on the caller's event loop instead.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set, Union

import aiofiles

from base_classes import FileRef, Operation, ProcessingRequest, ProcessingResult, ProgressCallback, WorkerChannel
from pipeline_configs import CodecOptions, EngineConfig
from pipeline_monitoring import PipelineMonitor
from resilience_patterns import (
    CancellationToken, ProcessingError, ValidationError, WorkerError, error_from_name, with_retry
)
from codec_pipeline.workers import protocol
from codec_pipeline.workers.channel import InProcessChannel, ProcessWorkerChannel

logger = logging.getLogger(__name__)

OptionsLike = Union[CodecOptions, Dict[str, Any], None]
FileLike = Union[FileRef, str, os.PathLike]


@dataclass
class PendingOperation:
    """Correlation table entry, live from dispatch to the first terminal envelope"""
    future: asyncio.Future
    operation: Operation
    on_progress: Optional[ProgressCallback] = None
    last_progress: float = 0.0
    stage_id: Optional[str] = None
    cancel_token: Optional[CancellationToken] = None
    cancel_callback: Optional[Callable[[], None]] = None


class ProcessingEngine:
    """Routes codec requests to a worker and correlates the replies"""

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 monitor: Optional[PipelineMonitor] = None,
                 channel_factory: Optional[Callable[[], WorkerChannel]] = None):
        self.config = config or EngineConfig()
        self.monitor = monitor
        if self.monitor is None and self.config.enable_monitoring:
            self.monitor = PipelineMonitor()
        self._channel_factory = channel_factory or self._create_process_channel
        self._channel: Optional[WorkerChannel] = None
        self._pending: Dict[str, PendingOperation] = {}
        self._destroyed = False
        self._closing: Set[asyncio.Future] = set()
        self._read_with_retry = with_retry(self.config.read_retry)(self._read_file_once)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.destroy()
        return False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def uses_worker_process(self) -> bool:
        return isinstance(self._channel, ProcessWorkerChannel)

    # Public API

    async def encode_text(self,
                          text: str,
                          options: OptionsLike = None,
                          on_progress: Optional[ProgressCallback] = None,
                          cancel_token: Optional[CancellationToken] = None) -> ProcessingResult:
        """Encode a string's UTF-8 bytes; the result is always ``text/plain``."""
        if not isinstance(text, str):
            raise ValidationError(f"encode_text expects str, got {type(text).__name__}")
        codec_options = self._resolve_options(options)
        result = await self._dispatch(Operation.ENCODE, text, codec_options, on_progress, cancel_token)
        return ProcessingResult.from_dict(result)

    async def encode_file(self,
                          file: FileLike,
                          options: OptionsLike = None,
                          on_progress: Optional[ProgressCallback] = None,
                          cancel_token: Optional[CancellationToken] = None) -> ProcessingResult:
        """Encode a file's bytes; the MIME type is sniffed from its content."""
        codec_options = self._resolve_options(options)
        file_ref = FileRef.coerce(file)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        data = await self._load(file_ref)
        result = await self._dispatch(Operation.ENCODE, data, codec_options, on_progress, cancel_token)
        return ProcessingResult.from_dict(result)

    async def decode(self,
                     text: str,
                     options: OptionsLike = None,
                     on_progress: Optional[ProgressCallback] = None,
                     cancel_token: Optional[CancellationToken] = None) -> ProcessingResult:
        codec_options = self._resolve_options(options)
        result = await self._dispatch(Operation.DECODE, text, codec_options, on_progress, cancel_token)
        return ProcessingResult.from_dict(result)

    async def detect_mime_type(self, data: Union[bytes, str]) -> str:
        result = await self._dispatch(Operation.DETECT_MIME, data, None, None, None)
        return result['mimeType']

    def get_stats(self) -> Dict[str, Any]:
        """Per-operation summaries from the monitor"""
        if self.monitor is None:
            return {}
        return {name: self.monitor.get_stage_summary(name) for name in self.monitor.stage_names()}

    def destroy(self) -> None:
        """Terminate the worker and reject everything still pending.

        Blocks until the worker process has exited; prefer ``aclose`` on a
        running event loop.
        """
        channel = self._shutdown()
        if channel is not None:
            channel.terminate()

    async def aclose(self) -> None:
        """Same as ``destroy`` but waits for the worker off the event loop."""
        channel = self._shutdown()
        if channel is not None:
            await channel.aclose()
        if self._closing:
            await asyncio.wait(set(self._closing))

    def _shutdown(self) -> Optional[WorkerChannel]:
        if self._destroyed:
            return None
        self._destroyed = True
        channel, self._channel = self._channel, None
        self._reject_all("engine destroyed")
        logger.info("Processing engine destroyed")
        return channel

    # Options and input

    @staticmethod
    def _resolve_options(options: OptionsLike) -> CodecOptions:
        if options is None:
            return CodecOptions()
        if isinstance(options, CodecOptions):
            return options
        if isinstance(options, dict):
            try:
                return CodecOptions(**options)
            except TypeError as e:
                raise ValidationError(f"Invalid codec options: {e}", cause=e) from e
        raise ValidationError(f"Unsupported options type: {type(options).__name__}")

    async def _read_file_once(self, path) -> bytes:
        async with aiofiles.open(path, 'rb') as f:
            return await f.read()

    async def _load(self, file_ref: FileRef) -> bytes:
        if file_ref.data is not None:
            return file_ref.data
        try:
            data = await self._read_with_retry(file_ref.path)
        except OSError as e:
            raise ProcessingError(f"Cannot read {file_ref.path}: {e}", cause=e) from e
        logger.debug(f"Read {len(data)} bytes from {file_ref.path}")
        return data

    # Channel lifecycle

    def _create_process_channel(self) -> WorkerChannel:
        return ProcessWorkerChannel(
            start_method=self.config.start_method,
            poll_interval=self.config.poll_interval,
            shutdown_timeout=self.config.shutdown_timeout,
            log_level=self.config.worker_log_level,
        )

    def _start_channel(self, channel: WorkerChannel) -> None:
        channel.start(self._handle_message, lambda error: self._handle_fault(channel, error))

    def _ensure_channel(self) -> WorkerChannel:
        if self._destroyed:
            raise WorkerError("engine destroyed")
        if self._channel is not None:
            return self._channel

        channel = None
        if self.config.use_worker:
            candidate = self._channel_factory()
            try:
                self._start_channel(candidate)
                channel = candidate
            except (OSError, RuntimeError, ValueError, WorkerError) as e:
                logger.warning(f"Worker unavailable, processing in-process: {e}")
                # Release whatever the partial start created
                self._close_in_background(candidate)

        if channel is None:
            channel = InProcessChannel()
            self._start_channel(channel)

        self._channel = channel
        return channel

    def _handle_fault(self, channel: WorkerChannel, error: Exception) -> None:
        if channel is not self._channel:
            return
        logger.error(f"Worker fault, rejecting {len(self._pending)} pending operation(s): {error}")
        self._channel = None
        self._close_in_background(channel)
        self._reject_all(str(error))

    def _close_in_background(self, channel: WorkerChannel) -> None:
        task = asyncio.ensure_future(channel.aclose())
        self._closing.add(task)
        task.add_done_callback(self._channel_closed)

    def _channel_closed(self, task: asyncio.Future) -> None:
        self._closing.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Failed to stop worker channel: {task.exception()}")

    def _reject_all(self, reason: str) -> None:
        for request_id, pending in list(self._pending.items()):
            self._finish(request_id, pending)
            future = pending.future
            if not future.done() and not future.get_loop().is_closed():
                future.set_exception(WorkerError(reason))

    # Correlation

    def _new_request_id(self) -> str:
        request_id = uuid.uuid4().hex
        while request_id in self._pending:
            request_id = uuid.uuid4().hex
        return request_id

    def _finish(self, request_id: str, pending: PendingOperation) -> None:
        self._pending.pop(request_id, None)
        if pending.cancel_token is not None and pending.cancel_callback is not None:
            pending.cancel_token.remove_callback(pending.cancel_callback)
        if self.monitor is not None and pending.stage_id is not None:
            self.monitor.stage_end(pending.stage_id)

    def _post_cancel(self, request_id: str) -> None:
        channel = self._channel
        if request_id not in self._pending or channel is None:
            return
        try:
            channel.post_message(protocol.cancel_message(request_id))
        except (WorkerError, OSError, ValueError) as e:
            logger.debug(f"Could not post cancel for {request_id}: {e}")

    async def _dispatch(self,
                        operation: Operation,
                        payload: Union[bytes, str, None],
                        options: Optional[CodecOptions],
                        on_progress: Optional[ProgressCallback],
                        cancel_token: Optional[CancellationToken]) -> Dict[str, Any]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        loop = asyncio.get_running_loop()
        channel = self._ensure_channel()
        request = ProcessingRequest(
            id=self._new_request_id(),
            operation=operation,
            payload=payload,
            options=options.to_wire() if options is not None else {},
        )
        pending = PendingOperation(
            future=loop.create_future(),
            operation=operation,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )
        if self.monitor is not None:
            pending.stage_id = self.monitor.stage_start(operation.value)
            self.monitor.update_stage_progress(pending.stage_id, items=1,
                                               bytes_count=len(payload) if payload else 0)
        self._pending[request.id] = pending

        if cancel_token is not None:
            def on_cancel() -> None:
                try:
                    loop.call_soon_threadsafe(self._post_cancel, request.id)
                except RuntimeError:
                    logger.debug(f"Event loop closed before cancelling {request.id}")

            pending.cancel_callback = on_cancel
            cancel_token.add_callback(on_cancel)

        try:
            channel.post_message(request.to_message())
        except (WorkerError, OSError, ValueError) as e:
            self._finish(request.id, pending)
            raise WorkerError(f"Failed to post {operation.value} request: {e}", cause=e) from e
        logger.debug(f"Dispatched {operation.value} request {request.id}")

        try:
            return await pending.future
        except asyncio.CancelledError:
            if request.id in self._pending:
                self._post_cancel(request.id)
                self._finish(request.id, pending)
            raise

    def _handle_message(self, message: Dict[str, Any]) -> None:
        """Route one inbound envelope; runs on the event loop thread."""
        request_id = message.get('id')
        kind = message.get('type')
        pending = self._pending.get(request_id)
        if pending is None:
            logger.debug(f"Ignoring {kind} message for unknown request {request_id}")
            return

        if kind == protocol.PROGRESS:
            progress = min(1.0, max(pending.last_progress, float(message.get('progress', 0.0))))
            pending.last_progress = progress
            if pending.on_progress is not None:
                try:
                    pending.on_progress(progress)
                except Exception as e:
                    logger.error(f"Progress callback for {request_id} failed: {e}", exc_info=True)

        elif kind == protocol.SUCCESS:
            self._finish(request_id, pending)
            if not pending.future.done():
                pending.future.set_result(message.get('result') or {})

        elif kind == protocol.ERROR:
            error = error_from_name(message.get('errorType'), message.get('error') or 'Unknown worker error')
            if self.monitor is not None and pending.stage_id is not None:
                self.monitor.record_error(pending.stage_id, error)
            self._finish(request_id, pending)
            if not pending.future.done():
                pending.future.set_exception(error)

        else:
            logger.warning(f"Unknown message type {kind!r} for request {request_id}")
