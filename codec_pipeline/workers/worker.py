"""
Codec Worker
============

Request handling shared by the worker process and the in-process fallback.

A request envelope is executed by :func:`handle_request`, which reports
progress and exactly one terminal envelope through a ``post`` callable.
:class:`WorkerDispatcher` runs each request as its own task so several
requests interleave on one event loop, and routes ``cancel`` envelopes to
the matching request's token. :func:`worker_main` is the process entry
point.
"""

import asyncio
import logging
import os
import threading
from typing import Any, Callable, Dict, Set

from base_classes import Operation, ProcessingResult
from pipeline_configs import CodecOptions
from resilience_patterns import CancellationToken, DecodeError, ProcessingError, ValidationError
from codec_pipeline.stages.chunking import ChunkedProcessor
from codec_pipeline.stages.formatting import generate_formats
from codec_pipeline.stages.mime import TEXT_PLAIN, detect_mime_type, is_image, is_text
from codec_pipeline.workers import protocol

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

Post = Callable[[Dict[str, Any]], None]


def _as_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode('utf-8')
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise ValidationError(f"Unsupported payload type: {type(data).__name__}")


def _as_text(data: Any) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        try:
            return bytes(data).decode('ascii')
        except UnicodeDecodeError as e:
            raise DecodeError(f"Encoded input is not ASCII text: {e}", cause=e) from e
    raise ValidationError(f"Unsupported payload type: {type(data).__name__}")


async def _encode(data: Any, options: CodecOptions, on_progress, cancel_token) -> Dict[str, Any]:
    # Text payloads are labelled text/plain without sniffing
    if isinstance(data, str):
        payload = data.encode('utf-8')
        mime_type = TEXT_PLAIN
    else:
        payload = _as_bytes(data)
        mime_type = detect_mime_type(payload)

    processor = ChunkedProcessor(options.chunk_size)
    if options.chunked:
        encoded = await processor.encode_chunked(payload, options.alphabet, on_progress, cancel_token)
    else:
        encoded = await processor.encode_whole(payload, options.alphabet, on_progress, cancel_token)

    return ProcessingResult(
        mime_type=mime_type,
        byte_size=len(payload),
        is_image=is_image(mime_type),
        encoded_text=encoded,
        formats=generate_formats(encoded, mime_type),
    ).to_dict()


async def _decode(data: Any, options: CodecOptions, on_progress, cancel_token) -> Dict[str, Any]:
    processor = ChunkedProcessor(options.chunk_size)
    decoded = await processor.decode_whole(_as_text(data), options.alphabet, on_progress, cancel_token)
    mime_type = detect_mime_type(decoded)

    return ProcessingResult(
        mime_type=mime_type,
        byte_size=len(decoded),
        is_image=is_image(mime_type),
        decoded_bytes=decoded,
        decoded_text=decoded.decode('utf-8', errors='replace') if is_text(mime_type) else None,
    ).to_dict()


async def execute(message: Dict[str, Any], post: Post, cancel_token: CancellationToken) -> Dict[str, Any]:
    """Run one request and return its wire-form result."""
    request_id = message.get('id')
    kind = message.get('type')
    data = message.get('data')

    def on_progress(progress: float) -> None:
        post(protocol.progress_message(request_id, progress))

    if kind == Operation.DETECT_MIME.value:
        return {'mimeType': detect_mime_type(_as_bytes(data if data is not None else b''))}

    if kind not in (Operation.ENCODE.value, Operation.DECODE.value):
        raise ProcessingError(f"Unknown operation: {kind!r}")
    if data is None:
        raise ValidationError(f"{kind} request {request_id} carries no data")

    options = CodecOptions.from_wire(message.get('options'))
    if kind == Operation.ENCODE.value:
        return await _encode(data, options, on_progress, cancel_token)
    return await _decode(data, options, on_progress, cancel_token)


async def handle_request(message: Dict[str, Any], post: Post, cancel_token: CancellationToken) -> None:
    """Execute ``message`` and post exactly one ``success`` or ``error`` envelope."""
    request_id = message.get('id')
    try:
        result = await execute(message, post, cancel_token)
    except ProcessingError as e:
        logger.debug(f"Request {request_id} failed: {e!r}")
        post(protocol.error_message(request_id, e))
    except Exception as e:
        logger.error(f"Unexpected error handling request {request_id}: {e}", exc_info=True)
        post(protocol.error_message(request_id, e))
    else:
        post(protocol.success_message(request_id, result))


class WorkerDispatcher:
    """Runs requests as concurrent tasks on the current event loop"""

    def __init__(self, post: Post):
        self.post = post
        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def dispatch(self, message: Dict[str, Any]) -> None:
        """Start a request or cancel a running one; must run on the loop thread."""
        request_id = message.get('id')
        if message.get('type') == protocol.CANCEL:
            token = self._tokens.get(request_id)
            if token is not None:
                logger.debug(f"Cancelling request {request_id}")
                token.cancel()
            return

        token = CancellationToken()
        self._tokens[request_id] = token
        task = asyncio.get_running_loop().create_task(self._run(message, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, message: Dict[str, Any], token: CancellationToken) -> None:
        try:
            await handle_request(message, self.post, token)
        finally:
            self._tokens.pop(message.get('id'), None)

    def cancel_all(self) -> None:
        for token in list(self._tokens.values()):
            token.cancel()
        for task in list(self._tasks):
            task.cancel()

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def _serve(request_queue, response_queue) -> None:
    loop = asyncio.get_running_loop()
    stopped = loop.create_future()
    dispatcher = WorkerDispatcher(response_queue.put)

    def on_message(message) -> None:
        if message is None:
            if not stopped.done():
                stopped.set_result(None)
            return
        dispatcher.dispatch(message)

    def reader() -> None:
        # Blocking queue reads stay off the loop thread
        while True:
            try:
                message = request_queue.get()
            except (EOFError, OSError) as e:
                logger.error(f"Request queue closed: {e}")
                message = None
            try:
                loop.call_soon_threadsafe(on_message, message)
            except RuntimeError:
                return
            if message is None:
                return

    threading.Thread(target=reader, name='codec-worker-reader', daemon=True).start()
    logger.info(f"Worker {os.getpid()} ready")

    await stopped
    dispatcher.cancel_all()
    await dispatcher.drain()
    logger.info(f"Worker {os.getpid()} stopped")


def worker_main(request_queue, response_queue, log_level: int = logging.WARNING) -> None:
    """Process entry point: serve requests until a ``None`` sentinel arrives."""
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    try:
        asyncio.run(_serve(request_queue, response_queue))
    except KeyboardInterrupt:
        logger.debug("Worker interrupted")
