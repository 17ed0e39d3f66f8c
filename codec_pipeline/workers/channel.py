"""
Worker Channels
===============

Parent-side transports for the worker protocol: a separate process fed
through ``multiprocessing`` queues, and an in-process fallback running the
same request handler on the caller's event loop.
"""

import asyncio
import logging
import multiprocessing as mp
import pickle
import queue
import threading
from typing import Any, Callable, Dict, Optional

from base_classes import WorkerChannel
from resilience_patterns import WorkerError
from codec_pipeline.workers.worker import WorkerDispatcher, worker_main

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], None]
ErrorHandler = Callable[[Exception], None]


class ProcessWorkerChannel(WorkerChannel):
    """Worker process plus a daemon thread draining its response queue"""

    def __init__(self,
                 start_method: str = 'spawn',
                 poll_interval: float = 0.1,
                 shutdown_timeout: float = 3.0,
                 log_level: int = logging.WARNING):
        self.poll_interval = poll_interval
        self.shutdown_timeout = shutdown_timeout
        self.log_level = log_level
        self._context = mp.get_context(start_method)
        self._process = None
        self._request_queue = None
        self._response_queue = None
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @property
    def is_alive(self) -> bool:
        return (self._process is not None
                and self._process.is_alive()
                and not self._stop.is_set())

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def start(self, on_message: MessageHandler, on_error: ErrorHandler) -> None:
        """Spawn the worker; must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        self._request_queue = self._context.Queue()
        self._response_queue = self._context.Queue()
        self._process = self._context.Process(
            target=worker_main,
            args=(self._request_queue, self._response_queue, self.log_level),
            name='codec-worker',
            daemon=True,
        )
        self._process.start()

        self._reader = threading.Thread(
            target=self._read_loop,
            args=(loop, on_message, on_error),
            name='codec-worker-responses',
            daemon=True,
        )
        self._reader.start()
        logger.info(f"Started worker process {self._process.pid}")

    def _read_loop(self, loop: asyncio.AbstractEventLoop,
                   on_message: MessageHandler, on_error: ErrorHandler) -> None:
        while not self._stop.is_set():
            try:
                message = self._response_queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if not self._process.is_alive() and not self._stop.is_set():
                    error = WorkerError(f"Worker process exited unexpectedly "
                                        f"(exit code {self._process.exitcode})")
                    self._deliver(loop, on_error, error)
                    return
                continue
            except (EOFError, OSError, pickle.UnpicklingError) as e:
                if not self._stop.is_set():
                    self._deliver(loop, on_error, WorkerError(f"Worker channel broken: {e}", cause=e))
                return
            self._deliver(loop, on_message, message)

    @staticmethod
    def _deliver(loop: asyncio.AbstractEventLoop, callback: Callable[[Any], None], arg: Any) -> None:
        if loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(callback, arg)
        except RuntimeError:
            logger.debug("Event loop closed, dropping worker message")

    def post_message(self, message: Dict[str, Any]) -> None:
        if not self.is_alive:
            raise WorkerError("Worker process is not running")
        self._request_queue.put(message)

    def terminate(self) -> None:
        """Stop the worker: sentinel first, then SIGTERM after the timeout."""
        if self._stop.is_set():
            return
        self._stop.set()

        process = self._process
        if process is not None:
            if process.is_alive():
                try:
                    self._request_queue.put(None)
                except (OSError, ValueError) as e:
                    logger.debug(f"Could not send stop sentinel: {e}")
                process.join(self.shutdown_timeout)
            if process.is_alive():
                logger.warning(f"Worker {process.pid} did not stop in time, terminating")
                process.terminate()
                process.join(1.0)
            logger.info(f"Worker process {process.pid} stopped (exit code {process.exitcode})")

        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(self.poll_interval * 5)

        for q in (self._request_queue, self._response_queue):
            if q is not None:
                q.close()
                q.cancel_join_thread()

    async def aclose(self) -> None:
        """Run ``terminate`` in the default executor so its joins never block the loop."""
        await asyncio.get_running_loop().run_in_executor(None, self.terminate)


class InProcessChannel(WorkerChannel):
    """Runs the worker's request handler on the caller's event loop"""

    def __init__(self):
        self._dispatcher: Optional[WorkerDispatcher] = None
        self._closed = False

    @property
    def is_alive(self) -> bool:
        return self._dispatcher is not None and not self._closed

    def start(self, on_message: MessageHandler, on_error: ErrorHandler) -> None:
        self._dispatcher = WorkerDispatcher(on_message)
        logger.debug("Using in-process channel")

    def post_message(self, message: Dict[str, Any]) -> None:
        if not self.is_alive:
            raise WorkerError("In-process channel is closed")
        self._dispatcher.dispatch(message)

    def terminate(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._dispatcher is not None:
            self._dispatcher.cancel_all()
