"""HTTP API serving the scrape endpoint using FastAPI."""
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST
import logging
import time

from spdata_exporter.flatten import FlattenError

logger = logging.getLogger(__name__)


class ExporterAPI:
    """FastAPI application exposing /metrics, /healthz and /status."""

    def __init__(self, engine):
        """
        Initialize the exporter API.

        Args:
            engine: Scrape engine run on every /metrics request
        """
        self.engine = engine
        self.app = FastAPI(title="System Profiler Data Exporter")

        # Setup routes
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        # Sync handler: FastAPI runs it in the threadpool, since scrapes block on subprocesses
        @self.app.get("/metrics")
        def metrics():
            """Run one scrape cycle and return the exposition text."""
            try:
                body = self.engine.scrape()
            except FlattenError as e:
                logger.error(f"Error converting JSON to pairs: {e}")
                return PlainTextResponse(
                    f"Error converting JSON to pairs: {e}",
                    status_code=500
                )
            except Exception as e:
                logger.error(f"Error collecting metrics: {e}", exc_info=True)
                return PlainTextResponse(
                    f"Error collecting metrics: {e}",
                    status_code=500
                )

            return Response(content=body, media_type=CONTENT_TYPE_LATEST)

        @self.app.get("/healthz")
        async def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get("/status")
        async def status():
            """Get current exporter status."""
            return {
                "uptime_seconds": time.time() - self.engine.start_time,
                "scrape_count": self.engine.scrape_count,
                "last_scrape_duration_seconds": self.engine.last_scrape_duration,
                "data_types": list(self.engine.config.data_types),
                "active_series": self.engine.registry.series_count(),
            }

    def run(self, host: str = "0.0.0.0", port: int = 9100):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
