"""
Batch Queue
===========

Encodes many files with at most ``max_concurrent`` in flight.

Items move ``pending -> processing -> completed | error`` and a failing
item never affects its neighbours. Submission returns immediately; the
processing passes run as a task on the caller's event loop.
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from base_classes import FileRef, QueueItem, QueueItemStatus
from pipeline_configs import QueueConfig
from resilience_patterns import CancellationToken, ProcessingError, SizeLimitError
from codec_pipeline.workers.engine import FileLike, ProcessingEngine

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[List[QueueItem]], None]
RejectedCallback = Callable[[SizeLimitError], None]


class BatchQueue:
    """Bounded-concurrency encode queue with per-item failure isolation"""

    def __init__(self,
                 engine: Optional[ProcessingEngine] = None,
                 config: Optional[QueueConfig] = None,
                 on_update: Optional[UpdateCallback] = None,
                 on_rejected: Optional[RejectedCallback] = None):
        self.config = config or QueueConfig()
        self._owns_engine = engine is None
        self.engine = engine if engine is not None else ProcessingEngine()
        self.on_update = on_update
        self.on_rejected = on_rejected

        # Insertion order is submission order
        self._items: Dict[str, QueueItem] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._is_processing = False
        self._task: Optional[asyncio.Task] = None
        self._destroyed = False

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
    def is_processing(self) -> bool:
        return self._is_processing

    def add_files(self, files: Iterable[FileLike]) -> List[str]:
        """Enqueue files and return their ids; must be called inside a running loop.

        Files over ``max_file_size`` are rejected here and never enqueued.
        """
        if self._destroyed:
            raise ProcessingError("Batch queue destroyed")
        loop = asyncio.get_running_loop()
        ids = []
        for file in files:
            file_ref = FileRef.coerce(file)
            if not self._admit(file_ref):
                continue
            item_id = self._new_item_id()
            self._items[item_id] = QueueItem(id=item_id, file_ref=file_ref)
            self._tokens[item_id] = CancellationToken()
            ids.append(item_id)

        if ids:
            logger.info(f"Queued {len(ids)} file(s), {len(self._items)} in queue")
            self._notify()
            self._schedule(loop)
        return ids

    def get_snapshot(self) -> List[QueueItem]:
        """Copies of every item, in submission order"""
        return [replace(item) for item in self._items.values()]

    def get_stats(self) -> Dict[str, int]:
        stats = {status.value: 0 for status in QueueItemStatus}
        for item in self._items.values():
            stats[item.status.value] += 1
        stats['total'] = len(self._items)
        return stats

    def remove_item(self, item_id: str) -> bool:
        """Drop an item, cancelling it if it is in flight."""
        item = self._items.pop(item_id, None)
        token = self._tokens.pop(item_id, None)
        if token is not None:
            token.cancel()
        if item is None:
            return False
        logger.debug(f"Removed {item.file_ref.name} ({item.status.value})")
        self._notify()
        return True

    def clear_completed(self) -> int:
        """Remove completed and failed items; returns how many were removed."""
        finished = [item_id for item_id, item in self._items.items() if item.status.is_terminal]
        for item_id in finished:
            del self._items[item_id]
            self._tokens.pop(item_id, None)
        if finished:
            self._notify()
        return len(finished)

    def clear_all(self) -> None:
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()
        self._items.clear()
        self._notify()

    async def join(self) -> None:
        """Wait until no item is pending or processing."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def destroy(self) -> None:
        """Cancel everything; the queue accepts no files afterwards."""
        self._teardown()
        if self._owns_engine:
            self.engine.destroy()

    async def aclose(self) -> None:
        self._teardown()
        if self._owns_engine:
            await self.engine.aclose()

    def _teardown(self) -> None:
        self._destroyed = True
        for token in self._tokens.values():
            token.cancel()
        self._tokens.clear()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._is_processing = False
        self._items.clear()
        logger.debug("Batch queue destroyed")

    # Internals

    def _new_item_id(self) -> str:
        item_id = uuid.uuid4().hex
        while item_id in self._items:
            item_id = uuid.uuid4().hex
        return item_id

    def _admit(self, file_ref: FileRef) -> bool:
        try:
            size = file_ref.size
        except OSError as e:
            # Unreadable files are enqueued and fail on their own
            logger.debug(f"Cannot stat {file_ref.name}: {e}")
            return True

        limit = self.config.max_file_size
        if size <= limit:
            return True

        error = SizeLimitError(
            f"File {file_ref.name} is too large ({size} bytes, limit {limit} bytes)",
            file_name=file_ref.name, size=size, limit=limit,
        )
        logger.warning(f"Rejected {file_ref.name}: {error}")
        if self.on_rejected is not None:
            self.on_rejected(error)
        return False

    def _notify(self) -> None:
        if self.on_update is None:
            return
        try:
            self.on_update(self.get_snapshot())
        except Exception as e:
            logger.error(f"Queue update callback failed: {e}", exc_info=True)

    def _schedule(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._is_processing:
            return
        self._is_processing = True
        self._task = loop.create_task(self._process_queue())

    async def _process_queue(self) -> None:
        try:
            while True:
                batch = [item for item in self._items.values()
                         if item.status is QueueItemStatus.PENDING][:self.config.max_concurrent]
                if not batch:
                    break
                for item in batch:
                    item.status = QueueItemStatus.PROCESSING
                self._notify()
                logger.debug(f"Processing {len(batch)} item(s)")
                await asyncio.gather(*(self._process_item(item) for item in batch))
        finally:
            self._is_processing = False

    def _is_current(self, item: QueueItem) -> bool:
        return self._items.get(item.id) is item

    async def _process_item(self, item: QueueItem) -> None:
        def on_progress(progress: float) -> None:
            if self._is_current(item):
                item.progress = progress
                self._notify()

        try:
            result = await self.engine.encode_file(
                item.file_ref,
                self.config.options,
                on_progress,
                self._tokens.get(item.id),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._is_current(item):
                item.status = QueueItemStatus.ERROR
                item.error = str(e)
                logger.warning(f"Failed to encode {item.file_ref.name}: {e}")
        else:
            if self._is_current(item):
                item.status = QueueItemStatus.COMPLETED
                item.result = result
                item.progress = 1.0
                logger.debug(f"Encoded {item.file_ref.name} ({result.byte_size} bytes)")
        finally:
            if self._is_current(item):
                self._tokens.pop(item.id, None)
                self._notify()
