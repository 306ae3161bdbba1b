#!/usr/bin/env python3
"""End-to-end scrape cycle tests with in-memory data sources."""
import json
import threading

import pytest

from spdata_exporter.config import Config, ProbesConfig
from spdata_exporter.engine import ScrapeEngine
from spdata_exporter.flatten import FlattenError
from spdata_exporter.probes import HostProbes
from spdata_exporter.sources import DataSourceError


CAMERA_OUTPUT = json.dumps({
    "SPCameraDataType": [
        {"_name": "FaceTime HD", "spcamera_model-id": "abc"}
    ]
})

POWER_OUTPUT = json.dumps({
    "SPPowerDataType": [
        {"_name": "spbattery_information", "sppower_battery_health_info": {"sppower_battery_cycle_count": 87}}
    ]
})


class FakeSource:
    """Data source returning fixed outputs, failing for unknown data types."""

    def __init__(self, outputs):
        self.outputs = dict(outputs)
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, data_type):
        with self._lock:
            self.calls.append(data_type)
        if data_type not in self.outputs:
            raise DataSourceError(data_type, "system_profiler exited with status 1")
        return self.outputs[data_type]


class FakeProbes(HostProbes):
    """Host probes with canned results."""

    def cvlabel_count(self):
        return 3

    def latest_backup_time(self):
        return "2024-05-02-101500"

    def core_file_counts(self):
        raise OSError("no such directory: /cores")

    def ntp_settings(self):
        return ("time.apple.com", "On", "")


def make_engine(outputs, data_types, **overrides):
    config = Config(port=9100, data_types=data_types, **overrides)
    return ScrapeEngine(config, FakeSource(outputs), probes=FakeProbes())


def samples_by_name(engine):
    return {series.name: series.samples for series in engine.registry.snapshot()}


def test_camera_scrape_end_to_end():
    """Array index becomes the device label and text values are presence flags."""
    engine = make_engine({"SPCameraDataType": CAMERA_OUTPUT}, ["SPCameraDataType"])

    output = engine.scrape().decode("utf-8")

    samples = samples_by_name(engine)["spdata_spcameradatatype"]
    assert samples == {
        ("0", "_name", "FaceTime HD"): 1.0,
        ("0", "spcamera_model_id", "abc"): 1.0,
    }
    assert 'spdata_spcameradatatype{device="0",name="spcamera_model_id",value="abc"} 1.0' in output


def test_numeric_leaf_keeps_its_value():
    engine = make_engine({"SPPowerDataType": POWER_OUTPUT}, ["SPPowerDataType"])
    engine.scrape()

    samples = samples_by_name(engine)["spdata_sppowerdatatype"]
    assert samples[("0", "sppower_battery_health_info-sppower_battery_cycle_count", "87")] == 87.0


def test_failing_data_source_skips_only_that_type():
    """A data type whose profiler call fails is skipped; the others are published."""
    engine = make_engine(
        {"SPCameraDataType": CAMERA_OUTPUT},
        ["SPCameraDataType", "SPBrokenDataType"]
    )

    output = engine.scrape().decode("utf-8")

    assert "spdata_spcameradatatype{" in output
    assert 'spdata_exporter_fetch_errors_total{data_type="SPBrokenDataType"} 1.0' in output
    assert sorted(engine.source.calls) == ["SPBrokenDataType", "SPCameraDataType"]


def test_malformed_json_fails_scrape():
    engine = make_engine({"SPCameraDataType": "{broken"}, ["SPCameraDataType"])
    with pytest.raises(FlattenError):
        engine.scrape()


def test_reset_between_scrapes_drops_stale_series():
    engine = make_engine({"SPCameraDataType": CAMERA_OUTPUT}, ["SPCameraDataType"])
    engine.scrape()

    engine.source.outputs["SPCameraDataType"] = json.dumps({"SPCameraDataType": []})
    output = engine.scrape().decode("utf-8")

    assert "spdata_spcameradatatype" not in output
    assert samples_by_name(engine) == {}
    assert engine.scrape_count == 2


def test_without_reset_series_linger():
    engine = make_engine(
        {"SPCameraDataType": CAMERA_OUTPUT},
        ["SPCameraDataType"],
        reset_between_scrapes=False
    )
    engine.scrape()

    engine.source.outputs["SPCameraDataType"] = json.dumps({"SPCameraDataType": []})
    engine.scrape()

    assert ("0", "spcamera_model_id", "abc") in samples_by_name(engine)["spdata_spcameradatatype"]


def test_probes_publish_with_fallbacks():
    engine = make_engine(
        {"SPCameraDataType": CAMERA_OUTPUT},
        ["SPCameraDataType"],
        probes=ProbesConfig(cvlabel_count=True, latest_backup=True, core_files=True, ntp=True)
    )
    engine.scrape()

    samples = samples_by_name(engine)
    assert samples["spdata_cvlabelcount"] == {("0", "cvlabel", "3"): 3.0}
    assert samples["spdata_latestbackuptime"] == {("0", "latestbackup", "2024-05-02-101500"): 1.0}
    assert samples["spdata_corefilescount"] == {
        ("0", "total", "0"): 0.0,
        ("0", "fsm", "0"): 0.0,
    }
    assert samples["spdata_ntp"] == {
        ("0", "server", "time.apple.com"): 1.0,
        ("0", "usingnetworktime", "On"): 1.0,
        ("0", "timezone", ""): 0.0,
    }


def test_probes_disabled_by_default():
    engine = make_engine({"SPCameraDataType": CAMERA_OUTPUT}, ["SPCameraDataType"])
    engine.scrape()
    assert set(samples_by_name(engine)) == {"spdata_spcameradatatype"}


def test_concurrent_scrapes_are_serialized():
    engine = make_engine({"SPCameraDataType": CAMERA_OUTPUT}, ["SPCameraDataType"])
    outputs = []

    def scrape():
        outputs.append(engine.scrape().decode("utf-8"))

    threads = [threading.Thread(target=scrape) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(outputs) == 10
    for output in outputs:
        assert 'spdata_spcameradatatype{device="0",name="_name",value="FaceTime HD"} 1.0' in output
    assert engine.scrape_count == 10
