"""
Worker components: processing engine, worker process and batch queue.
"""

from .batch_queue import BatchQueue
from .engine import ProcessingEngine

__all__ = [
    'BatchQueue',
    'ProcessingEngine',
]
