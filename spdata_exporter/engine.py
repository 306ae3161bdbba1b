"""Scrape engine: fetch, flatten and route profiler data on each request."""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional
import logging
import threading
import time

from spdata_exporter.config import Config
from spdata_exporter.flatten import flatten_document
from spdata_exporter.probes import HostProbes, collect_probes
from spdata_exporter.records import FlatRecord
from spdata_exporter.registry import MetricRegistry, SelfMetrics
from spdata_exporter.routing import route_records
from spdata_exporter.sources import DataSource, DataSourceError

logger = logging.getLogger(__name__)


class ScrapeEngine:
    """
    Runs one scrape cycle per call and renders the resulting metrics.

    A cycle resets the dynamic gauges, fetches every configured data type,
    flattens the output, routes each record into the registry, runs the
    enabled host probes and renders the registry. Cycles are serialized by
    a lock, so a reset never overlaps another request's update or render.
    """

    def __init__(
        self,
        config: Config,
        source: DataSource,
        registry: Optional[MetricRegistry] = None,
        probes: Optional[HostProbes] = None
    ):
        self.config = config
        self.source = source
        self.registry = registry if registry is not None else MetricRegistry()
        self.probes = probes if probes is not None else HostProbes(config.probes.cores_dir)
        self.self_metrics = SelfMetrics(registry=self.registry.registry)

        self.scrape_count = 0
        self.last_scrape_duration: Optional[float] = None
        self.start_time = time.time()

        self._scrape_lock = threading.Lock()

        logger.info(
            f"Scrape engine initialized for {len(config.data_types)} data types: "
            f"{', '.join(config.data_types)}"
        )

    def scrape(self) -> bytes:
        """
        Execute one scrape cycle.

        Raises:
            FlattenError: If any fetched document is not valid profiler JSON
        """
        with self._scrape_lock:
            scrape_start = time.time()

            if self.config.reset_between_scrapes:
                self.registry.reset_all()

            outputs = self._fetch_all()

            # Flatten everything before touching the registry
            records_by_type: Dict[str, List[FlatRecord]] = {}
            for data_type, output in outputs.items():
                records_by_type[data_type] = flatten_document(output)

            for data_type, records in records_by_type.items():
                routed, dropped = route_records(records, self.registry)
                self.self_metrics.record_routed(data_type, routed, dropped)
                logger.debug(f"{data_type}: routed {routed} records, dropped {dropped}")

            collect_probes(self.probes, self.config.probes, self.registry)

            self.self_metrics.set_active_series(self.registry.series_count())

            duration = time.time() - scrape_start
            self.self_metrics.record_scrape(duration)
            self.scrape_count += 1
            self.last_scrape_duration = duration

            logger.info(
                f"Scrape {self.scrape_count}: {len(outputs)}/{len(self.config.data_types)} "
                f"data types in {duration:.3f}s"
            )

            return self.registry.render()

    def _fetch_all(self) -> Dict[str, str]:
        """Fetch every data type in parallel, skipping failed ones."""
        data_types = self.config.data_types
        workers = min(self.config.fetch_workers, len(data_types))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch") as executor:
            futures = {
                data_type: executor.submit(self.source.fetch, data_type)
                for data_type in data_types
            }

        outputs: Dict[str, str] = {}
        for data_type, future in futures.items():
            try:
                outputs[data_type] = future.result()
            except DataSourceError as e:
                logger.error(f"Skipping data type {data_type}: {e}")
                self.self_metrics.record_fetch_error(data_type)

        return outputs
