"""Data sources that return raw profiler JSON for a data type."""
from typing import Optional, Protocol
import logging
import subprocess

logger = logging.getLogger(__name__)


class DataSourceError(RuntimeError):
    """Raised when a data source cannot produce output for a data type."""

    def __init__(self, data_type: str, message: str):
        super().__init__(f"{data_type}: {message}")
        self.data_type = data_type


class DataSource(Protocol):
    """Anything that can fetch raw JSON text for a data type."""

    def fetch(self, data_type: str) -> str:
        ...


class SystemProfilerSource:
    """Runs ``system_profiler -json <data_type>`` and returns its output."""

    def __init__(self, command: str = "system_profiler", timeout_s: Optional[float] = None):
        self.command = command
        self.timeout_s = timeout_s

    def fetch(self, data_type: str) -> str:
        args = [self.command, "-json", data_type]
        logger.debug(f"Running {' '.join(args)}")

        try:
            result = subprocess.run(
                args,
                capture_output=True,
                check=True,
                timeout=self.timeout_s
            )
        except subprocess.CalledProcessError as e:
            stderr = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else ""
            raise DataSourceError(
                data_type,
                f"{self.command} exited with status {e.returncode}: {stderr}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise DataSourceError(
                data_type,
                f"{self.command} timed out after {self.timeout_s}s"
            ) from e
        except OSError as e:
            raise DataSourceError(data_type, f"Error running {self.command}: {e}") from e

        return result.stdout.decode("utf-8", errors="replace")
