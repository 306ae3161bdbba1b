"""Route flat records into the dynamic gauge registry."""
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
import logging
import math
import re

from spdata_exporter.records import FIELD_SEPARATOR, FlatRecord
from spdata_exporter.registry import MetricRegistry

logger = logging.getLogger(__name__)

METRIC_PREFIX = "spdata_"
MIN_FIELDS = 4

_INVALID_NAME_CHARS = re.compile(r'[^a-zA-Z0-9_:]')
_NUMBER = re.compile(
    r'[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|(?P<special>inf(?:inity)?|nan))',
    re.IGNORECASE
)


@dataclass
class RoutedSample:
    """Gauge name, labels and value derived from one text line."""
    metric_name: str
    device: str
    name: str
    value_repr: str
    value: float

    @property
    def label_values(self) -> Tuple[str, str, str]:
        return (self.device, self.name, self.value_repr)


def metric_name_for(data_type: str) -> str:
    """Derive the gauge name for a data type."""
    normalized = data_type.replace("-", "_").lower()
    return METRIC_PREFIX + _INVALID_NAME_CHARS.sub("_", normalized)


def encode_value(text: str) -> Tuple[str, float]:
    """
    Split a leaf text into its value label and numeric sample.

    Numeric text is stored as its integer-truncated form with the parsed
    number as the sample. Anything else keeps its text and the sample is 1,
    marking presence only.
    """
    match = _NUMBER.fullmatch(text)
    if match is None:
        return text, 1.0

    number = float(text)
    if not math.isfinite(number):
        # Out-of-range literals such as 1e400 are not numbers
        if match.group("special") is None:
            return text, 1.0
        return text, number

    return str(int(number)), number


def parse_line(line: str) -> Optional[RoutedSample]:
    """
    Parse one flat text line into a routed sample.

    Returns None if the line has fewer than four fields.
    """
    line = line.replace("-", "_")
    fields = line.split(FIELD_SEPARATOR)
    if len(fields) < MIN_FIELDS:
        return None

    value_repr, value = encode_value(fields[-1])
    return RoutedSample(
        metric_name=metric_name_for(fields[0]),
        device=fields[1],
        name="-".join(fields[2:-1]),
        value_repr=value_repr,
        value=value
    )


def route_record(record: FlatRecord, registry: MetricRegistry) -> bool:
    """Set the gauge sample for one record. Returns False if it was dropped."""
    line = record.to_line()
    sample = parse_line(line)
    if sample is None:
        logger.warning(f"Invalid pair format: {line}")
        return False

    try:
        gauge = registry.get_or_create(sample.metric_name)
    except ValueError as e:
        logger.error(f"Failed to register metric {sample.metric_name}: {e}")
        return False

    registry.set(gauge, sample.label_values, sample.value)
    return True


def route_records(records: Iterable[FlatRecord], registry: MetricRegistry) -> Tuple[int, int]:
    """Route records in order and return (routed, dropped) counts."""
    routed = 0
    dropped = 0
    for record in records:
        if route_record(record, registry):
            routed += 1
        else:
            dropped += 1
    return routed, dropped
