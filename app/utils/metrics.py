"""
Metrics for the upload pipeline.

Provides:
- Thread-safe counters, gauges and a duration histogram
- Prometheus text exposition for the /metrics endpoint
- Optional periodic push to a Prometheus Pushgateway
"""

import threading
from bisect import bisect_left
from typing import Dict, List, Optional, Tuple

import httpx
from loguru import logger


NAMESPACE = "s3_file_uploader"

# Same buckets for histograms as the NGINX Ingress controller
SECONDS_DURATION_BUCKETS = [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10]

COUNTERS: Dict[str, str] = {
    "uploads_total": "The total number of objects sent to s3 endpoint",
    "uploads_bytes_sum": "The total number of bytes sent to s3 endpoint",
    "files_bytes_sum": "The total number of bytes of processed files before packing and encryption",
    "uploads_success_total": "The total number of requests successfully sent to remote endpoint",
    "uploads_errors_total": "The total number of errors when sending requests",
    "runtime_channel_full_events": "Number of events when worker channel was full",
    "files_skipped_total": "Number of files skipped because another worker was processing them",
    "cleanup_errors_total": "Number of local artifacts that could not be deleted after upload",
}

GAUGES: Dict[str, str] = {
    "config_workers": "Number of workers",
    "config_channel_length": "Max channel length",
    "runtime_channel_length": "Number of messages in the main channel",
}

HISTOGRAM = "uploads_hist_duration_seconds"
HISTOGRAM_HELP = "Histogram distribution of request durations, in seconds"


class Metrics:
    """
    Counters and gauges shared by the producer and all workers.

    Every mutation takes the internal lock, so workers can record
    results concurrently.
    """

    def __init__(
        self,
        version: str,
        channel_capacity: int,
        workers: int,
        buckets: Optional[List[float]] = None,
    ):
        self._lock = threading.Lock()
        self.version = version
        self.buckets = sorted(buckets or SECONDS_DURATION_BUCKETS)

        self._counters = {name: 0.0 for name in COUNTERS}
        self._gauges = {name: 0.0 for name in GAUGES}
        self._bucket_counts = [0] * len(self.buckets)
        self._hist_sum = 0.0
        self._hist_count = 0

        self._gauges["config_workers"] = float(workers)
        self._gauges["config_channel_length"] = float(channel_capacity)

    def inc(self, name: str, value: float = 1.0):
        if name not in self._counters:
            raise KeyError(f"Unknown counter: {name}")
        if value < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._counters[name] += value

    def set_gauge(self, name: str, value: float):
        if name not in self._gauges:
            raise KeyError(f"Unknown gauge: {name}")
        with self._lock:
            self._gauges[name] = float(value)

    def observe_duration(self, seconds: float):
        """Record one upload duration in the histogram."""
        index = bisect_left(self.buckets, seconds)
        with self._lock:
            if index < len(self.buckets):
                self._bucket_counts[index] += 1
            self._hist_sum += seconds
            self._hist_count += 1

    def value(self, name: str) -> float:
        """Current value of a counter or gauge."""
        with self._lock:
            if name in self._counters:
                return self._counters[name]
            return self._gauges[name]

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            out = dict(self._counters)
            out.update(self._gauges)
            out[f"{HISTOGRAM}_count"] = float(self._hist_count)
            out[f"{HISTOGRAM}_sum"] = self._hist_sum
            return out

    def _histogram_lines(self) -> List[Tuple[str, float]]:
        with self._lock:
            counts = list(self._bucket_counts)
            total = self._hist_count
            hist_sum = self._hist_sum

        lines = []
        cumulative = 0
        for bound, count in zip(self.buckets, counts):
            cumulative += count
            lines.append((f'{NAMESPACE}_{HISTOGRAM}_bucket{{le="{bound:g}"}}', cumulative))
        lines.append((f'{NAMESPACE}_{HISTOGRAM}_bucket{{le="+Inf"}}', total))
        lines.append((f"{NAMESPACE}_{HISTOGRAM}_sum", hist_sum))
        lines.append((f"{NAMESPACE}_{HISTOGRAM}_count", total))
        return lines

    def render(self) -> str:
        """Render all metrics in the Prometheus text exposition format."""
        snap = self.snapshot()
        lines = [
            f"# HELP {NAMESPACE}_config App config info",
            f"# TYPE {NAMESPACE}_config gauge",
            f'{NAMESPACE}_config{{version="{self.version}"}} 1',
        ]

        for name, help_text in COUNTERS.items():
            full = f"{NAMESPACE}_{name}"
            lines.append(f"# HELP {full} {help_text}")
            lines.append(f"# TYPE {full} counter")
            lines.append(f"{full} {snap[name]:g}")

        for name, help_text in GAUGES.items():
            full = f"{NAMESPACE}_{name}"
            lines.append(f"# HELP {full} {help_text}")
            lines.append(f"# TYPE {full} gauge")
            lines.append(f"{full} {snap[name]:g}")

        lines.append(f"# HELP {NAMESPACE}_{HISTOGRAM} {HISTOGRAM_HELP}")
        lines.append(f"# TYPE {NAMESPACE}_{HISTOGRAM} histogram")
        for series, value in self._histogram_lines():
            lines.append(f"{series} {value:g}")

        return "\n".join(lines) + "\n"


class MetricsPusher:
    """Pushes metrics to a Prometheus Pushgateway on a fixed interval."""

    def __init__(self, metrics: Metrics, gateway: str, interval: float, job: str = NAMESPACE):
        self.metrics = metrics
        self.url = f"{gateway.rstrip('/')}/metrics/job/{job}"
        self.interval = interval

    def push(self) -> bool:
        """Push the current snapshot once. Returns True on success."""
        logger.info("Pushing metrics to Prometheus Pushgateway")
        try:
            response = httpx.post(
                self.url,
                content=self.metrics.render(),
                headers={"Content-Type": "text/plain; version=0.0.4"},
                timeout=10.0,
            )
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Could not push to Pushgateway: {e}")
            return False

    def run(self, stop: threading.Event):
        """Push every interval until ``stop`` is set."""
        while not stop.wait(self.interval):
            self.push()
