"""
System Resource Monitoring for Benchmark Runs

Periodic sampling of process and host resource utilization, independent of
and concurrent with any load test. A single background thread takes one
ResourceSnapshot per interval; snapshots are appended under a short-held
lock and read back as copies.

Sampling is best effort. Each field of a snapshot is measured on its own and
a field the host cannot provide is recorded as None ("unavailable"), which
consumers must not confuse with a measured zero. A failing field never
aborts the sampling loop.

Key Features:
- CPU and memory utilization via psutil
- Lightweight task (thread) count and open handle count
- Garbage collection pause durations through gc.callbacks
- Network and disk I/O rates derived from counter deltas
"""

import gc
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import psutil

from perfbench.monitoring.logging import get_logger
from perfbench.monitoring.metrics import EngineMetricsCollector


logger = get_logger(__name__)

BYTES_PER_MB = 1024 * 1024
BYTES_PER_KB = 1024


@dataclass(frozen=True)
class ResourceSnapshot:
    """
    One periodic resource sample.

    Every metric field is Optional: None means the value was unavailable on
    this host or failed to sample.
    """

    timestamp: datetime
    cpu_percent: Optional[float] = None
    memory_used_mb: Optional[float] = None
    memory_total_mb: Optional[float] = None
    memory_percent: Optional[float] = None
    task_count: Optional[int] = None
    gc_pauses_ms: Optional[Tuple[float, ...]] = None
    open_handles: Optional[int] = None
    network_in_kbps: Optional[float] = None
    network_out_kbps: Optional[float] = None
    disk_read_kbps: Optional[float] = None
    disk_write_kbps: Optional[float] = None

    def value_or_zero(self, name: str) -> float:
        """Return a metric field with unavailable values collapsed to 0."""
        value = getattr(self, name)
        if value is None:
            return 0.0
        if isinstance(value, tuple):
            return float(sum(value))
        return float(value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'cpu_percent': self.cpu_percent,
            'memory_used_mb': self.memory_used_mb,
            'memory_total_mb': self.memory_total_mb,
            'memory_percent': self.memory_percent,
            'task_count': self.task_count,
            'gc_pauses_ms': list(self.gc_pauses_ms) if self.gc_pauses_ms is not None else None,
            'open_handles': self.open_handles,
            'network_in_kbps': self.network_in_kbps,
            'network_out_kbps': self.network_out_kbps,
            'disk_read_kbps': self.disk_read_kbps,
            'disk_write_kbps': self.disk_write_kbps,
        }


class GCPauseTracker:
    """Collects garbage collection pause durations between two drains."""

    def __init__(self):
        self._lock = threading.Lock()
        self._start: Optional[float] = None
        self._pauses: List[float] = []
        self._installed = False

    def _callback(self, phase: str, info: Dict[str, Any]) -> None:
        if phase == 'start':
            self._start = time.perf_counter()
        elif phase == 'stop' and self._start is not None:
            pause_ms = (time.perf_counter() - self._start) * 1000.0
            self._start = None
            with self._lock:
                self._pauses.append(pause_ms)

    def install(self) -> None:
        if not self._installed:
            gc.callbacks.append(self._callback)
            self._installed = True

    def uninstall(self) -> None:
        if self._installed:
            try:
                gc.callbacks.remove(self._callback)
            except ValueError:
                pass
            self._installed = False

    def drain(self) -> Tuple[float, ...]:
        with self._lock:
            pauses, self._pauses = tuple(self._pauses), []
        return pauses


class ResourceMonitor:
    """
    Background resource sampler.

    start(interval) begins sampling; stop() halts it and is idempotent (safe
    to call repeatedly or before start); get_metrics() returns a copy of the
    snapshots collected so far and is safe to call while sampling continues.
    """

    def __init__(self, process: Optional[psutil.Process] = None,
                 metrics: Optional[EngineMetricsCollector] = None,
                 track_gc: bool = True):
        self._process = process or psutil.Process()
        self._metrics = metrics
        self._snapshots: List[ResourceSnapshot] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._interval: float = 1.0
        self._gc_tracker = GCPauseTracker() if track_gc else None
        self._last_io: Dict[str, Tuple[float, Any]] = {}

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval: float = 1.0) -> None:
        """Begin periodic sampling every ``interval`` seconds."""
        if interval <= 0:
            raise ValueError("Sampling interval must be positive")
        if self.running and self._stop_event.is_set():
            # previous loop was told to stop but has not exited yet
            self._thread.join(timeout=self._interval + 1.0)
        if self.running:
            logger.warning("Resource monitor already running", interval=self._interval,
                           stopping=self._stop_event.is_set())
            return

        self._interval = interval
        self._stop_event.clear()
        if self._gc_tracker is not None:
            self._gc_tracker.install()

        # Prime the cpu_percent counters so the first sample is meaningful
        self._safe_measure('cpu_percent', lambda: self._process.cpu_percent(interval=None))
        self._last_io = {}
        self._prime_io_counters()

        self._thread = threading.Thread(
            target=self._sampling_loop,
            name='perfbench-resource-monitor',
            daemon=True
        )
        self._thread.start()
        logger.info("Resource monitor started", interval_seconds=interval)

    def stop(self) -> None:
        """
        Halt sampling. Safe to call multiple times or before start().

        A sampling thread that outlives the join timeout stays referenced, so
        a later start() waits for it instead of running a second loop beside it.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._interval + 1.0)
        if thread is not None and thread.is_alive():
            logger.warning("Resource monitor thread still running after stop",
                           timeout_seconds=self._interval + 1.0)
        else:
            self._thread = None
        if self._gc_tracker is not None:
            self._gc_tracker.uninstall()

    def get_metrics(self) -> List[ResourceSnapshot]:
        """Return a copy of the accumulated snapshots."""
        with self._lock:
            return list(self._snapshots)

    def _sampling_loop(self) -> None:
        # Event.wait returns True as soon as stop() is called
        while not self._stop_event.wait(self._interval):
            snapshot = self.capture_snapshot()
            with self._lock:
                self._snapshots.append(snapshot)
            if self._metrics is not None:
                self._metrics.resource_samples_total.inc()

    def _safe_measure(self, name: str, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        except Exception as e:  # any field may fail on any platform
            logger.debug("Resource field unavailable", field=name, error=str(e))
            if self._metrics is not None:
                self._metrics.resource_sample_field_failures.labels(field=name).inc()
            return None

    def _prime_io_counters(self) -> None:
        now = time.monotonic()
        net = self._safe_measure('network_io', psutil.net_io_counters)
        if net is not None:
            self._last_io['net'] = (now, net)
        disk = self._safe_measure('disk_io', psutil.disk_io_counters)
        if disk is not None:
            self._last_io['disk'] = (now, disk)

    def _io_rates(self, key: str, current: Any, in_attr: str,
                  out_attr: str) -> Tuple[Optional[float], Optional[float]]:
        now = time.monotonic()
        previous = self._last_io.get(key)
        if current is None:
            return None, None
        self._last_io[key] = (now, current)
        if previous is None:
            return None, None
        elapsed = now - previous[0]
        if elapsed <= 0:
            return None, None
        rate_in = (getattr(current, in_attr) - getattr(previous[1], in_attr)) / BYTES_PER_KB / elapsed
        rate_out = (getattr(current, out_attr) - getattr(previous[1], out_attr)) / BYTES_PER_KB / elapsed
        return max(rate_in, 0.0), max(rate_out, 0.0)

    def _open_handles(self) -> Optional[int]:
        if hasattr(self._process, 'num_fds'):
            return self._process.num_fds()
        if hasattr(self._process, 'num_handles'):
            return self._process.num_handles()
        return None

    def capture_snapshot(self) -> ResourceSnapshot:
        """Capture one snapshot; never raises."""
        cpu_percent = self._safe_measure('cpu_percent', lambda: self._process.cpu_percent(interval=None))
        memory_used = self._safe_measure('memory_used_mb',
                                         lambda: self._process.memory_info().rss / BYTES_PER_MB)
        virtual_memory = self._safe_measure('memory_total_mb', psutil.virtual_memory)
        memory_total = virtual_memory.total / BYTES_PER_MB if virtual_memory is not None else None
        memory_percent = self._safe_measure('memory_percent', self._process.memory_percent)
        task_count = self._safe_measure('task_count', threading.active_count)
        open_handles = self._safe_measure('open_handles', self._open_handles)

        gc_pauses = None
        if self._gc_tracker is not None:
            gc_pauses = self._safe_measure('gc_pauses_ms', self._gc_tracker.drain)

        net_in, net_out = self._io_rates(
            'net', self._safe_measure('network_io', psutil.net_io_counters), 'bytes_recv', 'bytes_sent'
        )
        disk_read, disk_write = self._io_rates(
            'disk', self._safe_measure('disk_io', psutil.disk_io_counters), 'read_bytes', 'write_bytes'
        )

        return ResourceSnapshot(
            timestamp=datetime.now(timezone.utc),
            cpu_percent=cpu_percent,
            memory_used_mb=memory_used,
            memory_total_mb=memory_total,
            memory_percent=memory_percent,
            task_count=task_count,
            gc_pauses_ms=gc_pauses,
            open_handles=open_handles,
            network_in_kbps=net_in,
            network_out_kbps=net_out,
            disk_read_kbps=disk_read,
            disk_write_kbps=disk_write,
        )
