"""Main entry point for the system profiler data exporter."""
import argparse
import logging
import sys

from spdata_exporter.api import ExporterAPI
from spdata_exporter.config import DEFAULT_CONFIG_PATH, load_config
from spdata_exporter.engine import ScrapeEngine
from spdata_exporter.probes import HostProbes
from spdata_exporter.registry import VERSION, MetricRegistry
from spdata_exporter.sources import SystemProfilerSource


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    # json format shares the structured text layout
    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="System Profiler Data Exporter - Publish system_profiler data as Prometheus metrics"
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration YAML file"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.logging.level, config.logging.format)
    logger = logging.getLogger(__name__)

    logger.info(f"spdata exporter {VERSION}")
    logger.info(f"Configuration loaded from: {args.config}")
    logger.info(f"Data types: {', '.join(config.data_types)}")
    logger.info(f"Reset between scrapes: {config.reset_between_scrapes}")

    source = SystemProfilerSource(
        command=config.profiler_command,
        timeout_s=config.fetch_timeout_s
    )
    engine = ScrapeEngine(
        config,
        source,
        registry=MetricRegistry(),
        probes=HostProbes(config.probes.cores_dir)
    )
    api = ExporterAPI(engine)

    # Run API (blocking)
    logger.info(f"Starting server on {config.bind_address}:{config.port}")
    try:
        api.run(host=config.bind_address, port=config.port)
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
