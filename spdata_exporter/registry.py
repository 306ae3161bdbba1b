"""Dynamic gauge registry backed by prometheus_client."""
from typing import Dict, List, Optional, Sequence
from prometheus_client import (
    Counter, Gauge, Histogram,
    CollectorRegistry, generate_latest
)
import logging
import threading

from spdata_exporter.records import MetricSeries

logger = logging.getLogger(__name__)

VERSION = "1.0502.0"

LABEL_NAMES = ("device", "name", "value")


class MetricRegistry:
    """Owns every dynamically created gauge and the registry they export from."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        # Use a custom registry to avoid exporting default Python/process metrics
        self.registry = registry if registry is not None else CollectorRegistry()

        # Live gauges by metric name, guarded by _lock for writes
        self._series: Dict[str, Gauge] = {}
        self._lock = threading.RLock()

    def get_or_create(self, name: str) -> Gauge:
        """
        Return the gauge for a metric name, creating it on first use.

        Creation is insert-if-absent under the lock, so concurrent first
        references all receive the same gauge.
        """
        gauge = self._series.get(name)
        if gauge is not None:
            return gauge

        with self._lock:
            # Another caller may have created it while we waited
            gauge = self._series.get(name)
            if gauge is None:
                gauge = Gauge(
                    name,
                    f"Metric {name} dynamically created",
                    list(LABEL_NAMES),
                    registry=self.registry
                )
                self._series[name] = gauge
                logger.debug(f"Registered dynamic gauge: {name}")
            return gauge

    def set(self, handle: Gauge, label_values: Sequence[str], value: float):
        """Set the sample for one (device, name, value) label tuple."""
        handle.labels(*label_values).set(value)

    def reset_all(self) -> int:
        """Unregister and forget every dynamic gauge."""
        with self._lock:
            count = len(self._series)
            for gauge in self._series.values():
                self.registry.unregister(gauge)
            self._series.clear()

        if count:
            logger.debug(f"Discarded {count} dynamic gauges")
        return count

    def snapshot(self) -> List[MetricSeries]:
        """Return a per-series consistent view of every live gauge."""
        with self._lock:
            items = list(self._series.items())

        snapshot = []
        for name, gauge in items:
            series = MetricSeries(name=name, label_schema=LABEL_NAMES)
            for metric in gauge.collect():
                for sample in metric.samples:
                    key = tuple(sample.labels[label] for label in LABEL_NAMES)
                    series.samples[key] = sample.value
            snapshot.append(series)
        return snapshot

    def series_count(self) -> int:
        """Number of live dynamic gauges."""
        with self._lock:
            return len(self._series)

    def render(self) -> bytes:
        """Render the registry in the text exposition format."""
        return generate_latest(self.registry)


class SelfMetrics:
    """Self-monitoring metrics for the exporter."""

    def __init__(self, registry=None, prefix="spdata_exporter_"):
        if registry is None:
            registry = CollectorRegistry()

        self.build_info = Gauge(
            "spdata_version",
            "Build information for the spdata exporter, including version.",
            ["version"],
            registry=registry
        )
        self.build_info.labels(version=VERSION).set(1)

        self.scrapes_total = Counter(
            f"{prefix}scrapes",
            "Total number of scrape cycles",
            registry=registry
        )

        self.scrape_duration_seconds = Histogram(
            f"{prefix}scrape_duration_seconds",
            "Duration of each scrape cycle in seconds",
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=registry
        )

        self.fetch_errors_total = Counter(
            f"{prefix}fetch_errors",
            "Total number of data source failures",
            ["data_type"],
            registry=registry
        )

        self.records_total = Counter(
            f"{prefix}records",
            "Total number of flat records routed into gauges",
            ["data_type"],
            registry=registry
        )

        self.dropped_records_total = Counter(
            f"{prefix}dropped_records",
            "Total number of flat records dropped as malformed",
            ["data_type"],
            registry=registry
        )

        self.active_series = Gauge(
            f"{prefix}active_series",
            "Number of live dynamic gauges",
            registry=registry
        )

    def record_scrape(self, duration: float):
        """Record a completed scrape cycle."""
        self.scrapes_total.inc()
        self.scrape_duration_seconds.observe(duration)

    def record_fetch_error(self, data_type: str):
        """Record data source failure."""
        self.fetch_errors_total.labels(data_type=data_type).inc()

    def record_routed(self, data_type: str, routed: int, dropped: int):
        """Record routed and dropped record counts for a data type."""
        if routed:
            self.records_total.labels(data_type=data_type).inc(routed)
        if dropped:
            self.dropped_records_total.labels(data_type=data_type).inc(dropped)

    def set_active_series(self, count: int):
        """Set active series count."""
        self.active_series.set(count)
