"""
Concurrent HTTP Load Generation

Drives a target request rate against one endpoint for a configured duration
using a bounded pool of worker threads, collecting per-request phase timing
through httpx's request trace extension.

Key Features:
- ThreadPoolExecutor sized exactly to the configured concurrency
- Per-worker pacing: interval = concurrency / target_rps seconds
- Warmup window whose results are tagged and excluded from statistics
- Connection, TLS, time-to-first-byte and download phase timing
- Transport failures and timeouts recorded as data (status 0), never raised
- Cooperative stop observed within one pacing interval, with in-flight
  requests abandoned after one request timeout and reported as errors

Results are handed from the workers to the consumer through a queue and
yielded by LoadGenerator.run(); emission order across workers is not
guaranteed.
"""

import queue
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

import httpx

from perfbench.monitoring.logging import get_logger
from perfbench.monitoring.metrics import EngineMetricsCollector
from perfbench.utils.exceptions import LoadGenerationError


logger = get_logger(__name__)

ABANDONED_ERROR = "abandoned: request still in flight after stop grace period"
QUEUE_POLL_SECONDS = 0.05


@dataclass
class LoadGeneratorConfig:
    """
    Load generator configuration for a single endpoint.

    ``target_rps <= 0`` runs every worker unthrottled. Durations are seconds.
    """

    url: str
    method: str = 'GET'
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    concurrency: int = 1
    target_rps: float = 0.0
    duration: float = 10.0
    warmup: float = 0.0
    timeout: float = 10.0
    keep_alive: bool = True
    follow_redirects: bool = False
    verify_tls: bool = True
    expected_status: Optional[int] = None

    @property
    def pacing_interval(self) -> float:
        """Seconds between two requests of one worker; 0 means unthrottled."""
        if self.target_rps <= 0:
            return 0.0
        return self.concurrency / self.target_rps

    def validate(self) -> None:
        problems = []
        if not self.url:
            problems.append("url is required")
        if self.concurrency < 1:
            problems.append("concurrency must be >= 1")
        if self.duration <= 0:
            problems.append("duration must be positive")
        if self.warmup < 0 or self.warmup >= self.duration:
            problems.append("warmup must be >= 0 and shorter than duration")
        if self.timeout <= 0:
            problems.append("timeout must be positive")
        if problems:
            raise LoadGenerationError(
                "Invalid load generator configuration",
                details={'url': self.url, 'problems': problems}
            )


@dataclass(frozen=True)
class WorkerResult:
    """
    Outcome of one load request.

    Phase durations are milliseconds and None when the phase did not occur
    (for example TLS on plain HTTP, or connect on a reused connection).
    Name resolution is reported inside the connect phase by the transport,
    so ``resolution_ms`` stays None unless a transport reports it separately.
    """

    worker_id: int
    request_id: str
    timestamp: datetime
    duration_ms: float
    status_code: int
    response_size: int = 0
    error: Optional[str] = None
    resolution_ms: Optional[float] = None
    connect_ms: Optional[float] = None
    tls_ms: Optional[float] = None
    first_byte_ms: Optional[float] = None
    download_ms: Optional[float] = None
    warmup: bool = False

    def is_error(self, expected_status: Optional[int] = None) -> bool:
        """Transport failures always count; otherwise the status decides."""
        if self.error is not None or self.status_code <= 0:
            return True
        if expected_status is not None:
            return self.status_code != expected_status
        return not 200 <= self.status_code < 300

    def to_dict(self) -> Dict[str, Any]:
        return {
            'worker_id': self.worker_id,
            'request_id': self.request_id,
            'timestamp': self.timestamp.isoformat(),
            'duration_ms': self.duration_ms,
            'status_code': self.status_code,
            'response_size': self.response_size,
            'error': self.error,
            'resolution_ms': self.resolution_ms,
            'connect_ms': self.connect_ms,
            'tls_ms': self.tls_ms,
            'first_byte_ms': self.first_byte_ms,
            'download_ms': self.download_ms,
            'warmup': self.warmup,
        }


class PhaseTracer:
    """
    httpx trace extension callback recording phase boundaries.

    httpcore emits '<phase>.started' and '<phase>.complete' events, for
    example 'connection.connect_tcp.started' or
    'http11.receive_response_headers.complete'.
    """

    def __init__(self, started_at: float):
        self.started_at = started_at
        self.marks: Dict[str, float] = {}

    def __call__(self, event_name: str, info: Dict[str, Any]) -> None:
        self.marks[event_name] = time.perf_counter()

    def _find(self, phase: str, suffix: str) -> Optional[float]:
        for name, mark in self.marks.items():
            if name.endswith(f"{phase}.{suffix}"):
                return mark
        return None

    def span_ms(self, phase: str) -> Optional[float]:
        start = self._find(phase, 'started')
        end = self._find(phase, 'complete')
        if start is None or end is None:
            return None
        return (end - start) * 1000.0

    def first_byte_ms(self) -> Optional[float]:
        headers_done = self._find('receive_response_headers', 'complete')
        if headers_done is None:
            return None
        return (headers_done - self.started_at) * 1000.0


class LoadWorker:
    """One pacing loop issuing requests until the generator stops it."""

    def __init__(self, worker_id: int, generator: 'LoadGenerator', client: httpx.Client):
        self.worker_id = worker_id
        self.generator = generator
        self.client = client
        self.requests_sent = 0

    def run(self) -> int:
        config = self.generator.config
        interval = config.pacing_interval
        stop_event = self.generator.stop_event
        next_due = time.monotonic()

        while not stop_event.is_set() and time.monotonic() < self.generator.deadline:
            if interval > 0:
                wait = next_due - time.monotonic()
                if wait > 0 and stop_event.wait(wait):
                    break
                next_due = max(next_due + interval, time.monotonic())
                if time.monotonic() >= self.generator.deadline:
                    break
            self.execute_once()
            self.requests_sent += 1

        return self.requests_sent

    def execute_once(self) -> None:
        config = self.generator.config
        request_id = str(uuid.uuid4())
        timestamp = datetime.now(timezone.utc)
        warmup = time.monotonic() < self.generator.warmup_until
        started = time.perf_counter()

        if not self.generator.register_in_flight(self.worker_id, request_id, timestamp, started, warmup):
            return

        tracer = PhaseTracer(started)
        status_code = 0
        response_size = 0
        error: Optional[str] = None

        try:
            response = self.client.request(
                config.method,
                config.url,
                content=config.body.encode('utf-8') if config.body is not None else None,
                extensions={'trace': tracer},
            )
            status_code = response.status_code
            response_size = len(response.content)
        except httpx.TimeoutException as e:
            error = f"timeout: {e.__class__.__name__}"
        except httpx.HTTPError as e:
            error = f"{e.__class__.__name__}: {e}"
        except Exception as e:  # worker thread boundary
            logger.warning("Unexpected load request failure", worker_id=self.worker_id, error=str(e))
            error = f"{e.__class__.__name__}: {e}"

        duration_ms = (time.perf_counter() - started) * 1000.0
        self.generator.complete(WorkerResult(
            worker_id=self.worker_id,
            request_id=request_id,
            timestamp=timestamp,
            duration_ms=duration_ms,
            status_code=status_code,
            response_size=response_size,
            error=error,
            resolution_ms=None,
            connect_ms=tracer.span_ms('connect_tcp'),
            tls_ms=tracer.span_ms('start_tls'),
            first_byte_ms=tracer.first_byte_ms(),
            download_ms=tracer.span_ms('receive_response_body'),
            warmup=warmup,
        ))


class LoadGenerator:
    """
    Bounded-concurrency load generator for one endpoint.

    Usage:
        generator = LoadGenerator(LoadGeneratorConfig(url=..., concurrency=8, target_rps=200))
        for result in generator.run():
            ...

    stop() may be called from any thread; every worker observes it within
    one pacing interval.

    A generator drives a single run: once run() has started, calling it again
    raises LoadGenerationError. Calling stop() before run() makes that run
    end without sending requests. Create a new generator per run.
    """

    def __init__(self, config: LoadGeneratorConfig,
                 metrics: Optional[EngineMetricsCollector] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 target_label: Optional[str] = None):
        self.config = config
        self.metrics = metrics
        self.transport = transport
        self.target_label = target_label or f"{config.method} {config.url}"

        self.stop_event = threading.Event()
        self.deadline = 0.0
        self.warmup_until = 0.0
        self._stopped_at: Optional[float] = None
        self._results: 'queue.Queue[WorkerResult]' = queue.Queue()
        self._lock = threading.Lock()
        self._in_flight: Dict[str, Tuple[int, datetime, float, bool]] = {}
        self._abandoned = False
        self._started = False

    def stop(self) -> None:
        """Request all workers to stop."""
        if self._stopped_at is None:
            self._stopped_at = time.monotonic()
        self.stop_event.set()
        logger.info("Load generator stop requested", target=self.target_label)

    def _build_client(self) -> httpx.Client:
        config = self.config
        headers = dict(config.headers)
        if not config.keep_alive:
            headers.setdefault('Connection', 'close')
        limits = httpx.Limits(
            max_connections=config.concurrency,
            max_keepalive_connections=config.concurrency if config.keep_alive else 0,
        )
        return httpx.Client(
            headers=headers,
            timeout=httpx.Timeout(config.timeout),
            limits=limits,
            follow_redirects=config.follow_redirects,
            verify=config.verify_tls,
            transport=self.transport,
        )

    def register_in_flight(self, worker_id: int, request_id: str, timestamp: datetime,
                           started: float, warmup: bool) -> bool:
        with self._lock:
            if self._abandoned:
                return False
            self._in_flight[request_id] = (worker_id, timestamp, started, warmup)
            return True

    def complete(self, result: WorkerResult) -> None:
        """Publish a finished request unless its worker was already abandoned."""
        with self._lock:
            if self._abandoned:
                return
            self._in_flight.pop(result.request_id, None)
            self._results.put(result)

        if self.metrics is not None:
            self.metrics.observe_request(
                self.target_label,
                result.status_code,
                result.duration_ms / 1000.0,
                failed=result.error is not None,
            )

    def _abandon_in_flight(self) -> List[WorkerResult]:
        now = time.perf_counter()
        with self._lock:
            self._abandoned = True
            pending, self._in_flight = self._in_flight, {}

        abandoned = [
            WorkerResult(
                worker_id=worker_id,
                request_id=request_id,
                timestamp=timestamp,
                duration_ms=(now - started) * 1000.0,
                status_code=0,
                error=ABANDONED_ERROR,
                warmup=warmup,
            )
            for request_id, (worker_id, timestamp, started, warmup) in pending.items()
        ]
        if abandoned:
            logger.warning(
                "Abandoned in-flight requests after stop grace period",
                target=self.target_label,
                abandoned=len(abandoned)
            )
        return abandoned

    def _drain(self) -> Iterator[WorkerResult]:
        while True:
            try:
                yield self._results.get_nowait()
            except queue.Empty:
                return

    def run(self) -> Iterator[WorkerResult]:
        """Yield WorkerResults until the duration elapses or stop() is called."""
        config = self.config
        config.validate()
        if self._started:
            raise LoadGenerationError(
                "Load generator has already run; create a new generator",
                details={'target': self.target_label}
            )
        self._started = True

        started = time.monotonic()
        self.deadline = started + config.duration
        self.warmup_until = started + config.warmup
        self._abandoned = False
        self._in_flight = {}

        logger.info(
            "Load generation started",
            target=self.target_label,
            concurrency=config.concurrency,
            target_rps=config.target_rps,
            duration_seconds=config.duration,
            warmup_seconds=config.warmup
        )

        client = self._build_client()
        executor = ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix='perfbench-load')
        futures: List[Future] = []
        if self.metrics is not None:
            self.metrics.active_workers.set(config.concurrency)

        try:
            for worker_id in range(config.concurrency):
                futures.append(executor.submit(LoadWorker(worker_id, self, client).run))

            while True:
                try:
                    yield self._results.get(timeout=QUEUE_POLL_SECONDS)
                    continue
                except queue.Empty:
                    pass

                if all(future.done() for future in futures):
                    break

                now = time.monotonic()
                if now >= self.deadline:
                    self.stop_event.set()
                stop_time = self._stopped_at if self._stopped_at is not None else self.deadline
                if self.stop_event.is_set() and now >= min(stop_time, self.deadline) + config.timeout:
                    break

            abandoned = self._abandon_in_flight()
            yield from self._drain()
            yield from abandoned
        finally:
            self.stop_event.set()
            with self._lock:
                self._abandoned = True
            executor.shutdown(wait=False, cancel_futures=True)
            # Abandoned workers may still hold pooled connections
            if all(future.done() for future in futures):
                client.close()
            if self.metrics is not None:
                self.metrics.active_workers.set(0)

            logger.info(
                "Load generation finished",
                target=self.target_label,
                requests_sent=self._summarize_workers(futures),
                elapsed_seconds=round(time.monotonic() - started, 3)
            )

    def _summarize_workers(self, futures: List[Future]) -> int:
        sent = 0
        for worker_id, future in enumerate(futures):
            if not future.done() or future.cancelled():
                continue
            error = future.exception()
            if error is not None:
                logger.error("Load worker crashed", target=self.target_label,
                             worker_id=worker_id, error=str(error))
                continue
            sent += future.result()
        return sent
