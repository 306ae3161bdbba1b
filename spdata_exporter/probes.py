"""Best-effort auxiliary host probes published next to profiler data."""
from typing import Tuple
import logging
import os
import subprocess

from spdata_exporter.config import ProbesConfig
from spdata_exporter.registry import MetricRegistry

logger = logging.getLogger(__name__)

SYSTEMSETUP = "/usr/sbin/systemsetup"


class HostProbes:
    """Shell commands and filesystem checks for host status."""

    def __init__(self, cores_dir: str = "/cores"):
        self.cores_dir = cores_dir

    def _run(self, args) -> str:
        result = subprocess.run(args, capture_output=True, check=True)
        return result.stdout.decode("utf-8", errors="replace")

    def cvlabel_count(self) -> int:
        """Number of Xsan volume labels reported by ``cvlabel -l``."""
        return int(self._run(["sh", "-c", "cvlabel -l | wc -l"]).strip())

    def latest_backup_time(self) -> str:
        """Timestamp of the latest Time Machine backup."""
        return self._run(["tmutil", "latestbackup", "-t"]).rstrip("\n")

    def core_file_counts(self) -> Tuple[int, int]:
        """Return (fsm core files, all files) under the cores directory."""
        fsm_count = 0
        total_count = 0

        def raise_error(error):
            raise error

        for _, _, files in os.walk(self.cores_dir, onerror=raise_error):
            for filename in files:
                total_count += 1
                if filename.startswith("core.fsm"):
                    fsm_count += 1

        return fsm_count, total_count

    def _systemsetup_value(self, flag: str) -> str:
        # Output looks like "Network Time Server: time.apple.com"
        try:
            output = self._run([SYSTEMSETUP, flag]).strip()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Error running {SYSTEMSETUP} {flag}: {e}")
            return ""

        parts = output.split(": ")
        if len(parts) != 2:
            logger.warning(f"Unexpected {SYSTEMSETUP} {flag} output: {output!r}")
            return ""
        return parts[1]

    def ntp_settings(self) -> Tuple[str, str, str]:
        """Return (network time server, using network time, time zone)."""
        return (
            self._systemsetup_value("-getnetworktimeserver"),
            self._systemsetup_value("-getusingnetworktime"),
            self._systemsetup_value("-gettimezone"),
        )


def collect_probes(probes: HostProbes, config: ProbesConfig, registry: MetricRegistry):
    """Run enabled probes and publish their gauges, logging any failure."""
    if config.cvlabel_count:
        try:
            count = probes.cvlabel_count()
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            logger.warning(f"Error getting cvlabel count: {e}")
            count = 0
        gauge = registry.get_or_create("spdata_cvlabelcount")
        registry.set(gauge, ("0", "cvlabel", str(count)), count)

    if config.latest_backup:
        try:
            latest = probes.latest_backup_time()
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Error getting latest backup time: {e}")
            latest = ""
        gauge = registry.get_or_create("spdata_latestbackuptime")
        registry.set(gauge, ("0", "latestbackup", latest), 1 if latest else 0)

    if config.core_files:
        try:
            fsm_count, total_count = probes.core_file_counts()
        except OSError as e:
            logger.warning(f"Error counting core files in {probes.cores_dir}: {e}")
            fsm_count, total_count = 0, 0
        gauge = registry.get_or_create("spdata_corefilescount")
        registry.set(gauge, ("0", "total", str(total_count)), total_count)
        registry.set(gauge, ("0", "fsm", str(fsm_count)), fsm_count)

    if config.ntp:
        server, using_network_time, time_zone = probes.ntp_settings()
        gauge = registry.get_or_create("spdata_ntp")
        registry.set(gauge, ("0", "server", server), 1 if server else 0)
        registry.set(
            gauge,
            ("0", "usingnetworktime", using_network_time),
            1 if using_network_time.lower() == "on" else 0
        )
        registry.set(gauge, ("0", "timezone", time_zone), 1 if time_zone else 0)
