"""
Pipeline Monitoring
===================

Per-operation timing, throughput, memory and error accounting for the
processing engine.
"""

import json
import logging
import statistics
import threading
import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass
class MetricPoint:
    """Single metric measurement"""
    timestamp: float
    value: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StageMetrics:
    """Metrics for one engine operation (encode, decode, detect-mime)"""
    stage_name: str
    start_time: float
    end_time: Optional[float] = None
    items_processed: int = 0
    bytes_processed: int = 0
    errors: int = 0
    memory_start: int = 0
    memory_peak: int = 0

    @property
    def duration(self) -> float:
        if self.end_time:
            return self.end_time - self.start_time
        return time.time() - self.start_time

    @property
    def throughput_mb_per_sec(self) -> float:
        if self.duration > 0:
            return (self.bytes_processed / 1024 / 1024) / self.duration
        return 0.0


class PipelineMonitor:
    """Operation-level metrics collected by the processing engine"""

    def __init__(self, window_size: int = 1000):
        self.window_size = window_size
        self.metrics: Dict[str, Deque[MetricPoint]] = defaultdict(lambda: deque(maxlen=window_size))
        self.stage_metrics: Dict[str, StageMetrics] = {}
        self.active_stages: Dict[str, StageMetrics] = {}
        self._metrics_lock = threading.Lock()
        self._process = psutil.Process()

    def _rss(self) -> int:
        try:
            return self._process.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug(f"Cannot read process memory: {e}")
            return 0

    def stage_start(self, stage_name: str) -> str:
        """Mark stage start"""
        stage_id = f"{stage_name}_{uuid.uuid4().hex[:12]}"
        memory = self._rss()
        stage_metrics = StageMetrics(
            stage_name=stage_name,
            start_time=time.time(),
            memory_start=memory,
            memory_peak=memory,
        )
        with self._metrics_lock:
            self.active_stages[stage_id] = stage_metrics
            self.stage_metrics[stage_id] = stage_metrics
        return stage_id

    def stage_end(self, stage_id: str) -> None:
        """Mark stage completion"""
        with self._metrics_lock:
            stage = self.active_stages.pop(stage_id, None)
        if stage is None:
            return
        stage.end_time = time.time()
        stage.memory_peak = max(stage.memory_peak, self._rss())

        self.record_metric(f"{stage.stage_name}_duration", stage.duration, {'stage_id': stage_id})
        self.record_metric(f"{stage.stage_name}_throughput", stage.throughput_mb_per_sec,
                           {'stage_id': stage_id})

    def record_metric(self,
                      metric_name: str,
                      value: float,
                      metadata: Optional[Dict[str, Any]] = None) -> None:
        """Record a metric value with thread safety"""
        point = MetricPoint(timestamp=time.time(), value=value, metadata=metadata or {})
        with self._metrics_lock:
            self.metrics[metric_name].append(point)

    def update_stage_progress(self, stage_id: str, items: int = 0, bytes_count: int = 0) -> None:
        """Update stage progress with thread safety"""
        with self._metrics_lock:
            stage = self.active_stages.get(stage_id)
            if stage is not None:
                stage.items_processed += items
                stage.bytes_processed += bytes_count

    def record_error(self, stage_id: str, error: Exception) -> None:
        """Record stage error"""
        with self._metrics_lock:
            stage = self.stage_metrics.get(stage_id)
            if stage is not None:
                stage.errors += 1
        self.record_metric('errors', 1, {
            'stage_id': stage_id,
            'error_type': type(error).__name__,
            'error_msg': str(error),
        })

    def get_stage_summary(self, stage_name: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics for stages"""
        with self._metrics_lock:
            stages = [s for s in self.stage_metrics.values()
                      if stage_name is None or s.stage_name == stage_name]

        if not stages:
            return {}

        durations = [s.duration for s in stages if s.end_time]
        return {
            'count': len(stages),
            'active': sum(1 for s in stages if s.end_time is None),
            'avg_duration': statistics.mean(durations) if durations else 0,
            'min_duration': min(durations) if durations else 0,
            'max_duration': max(durations) if durations else 0,
            'total_items': sum(s.items_processed for s in stages),
            'total_bytes': sum(s.bytes_processed for s in stages),
            'total_errors': sum(s.errors for s in stages),
            'peak_memory': max(s.memory_peak for s in stages),
        }

    def stage_names(self) -> List[str]:
        with self._metrics_lock:
            return sorted({s.stage_name for s in self.stage_metrics.values()})

    def to_json(self) -> str:
        """Export per-operation summaries as JSON"""
        return json.dumps({
            'timestamp': time.time(),
            'stages': {name: self.get_stage_summary(name) for name in self.stage_names()},
        }, indent=2)
