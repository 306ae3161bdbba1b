"""Data structures for flattened observations and metric series."""
from dataclasses import dataclass, field
from typing import Dict, Tuple, Union

FIELD_SEPARATOR = ", "

LeafValue = Union[str, int, float, bool, None]


def format_leaf(value: LeafValue) -> str:
    """Render a JSON scalar the way it appears in a flat text line."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class FlatRecord:
    """A single leaf of a nested JSON document with its path."""
    data_type: str
    path_segments: Tuple[str, ...]
    leaf_value: LeafValue

    def to_line(self) -> str:
        """Join data type, path and leaf into one delimited text line."""
        fields = [self.data_type, *self.path_segments, format_leaf(self.leaf_value)]
        return FIELD_SEPARATOR.join(fields)


@dataclass
class MetricSeries:
    """Point-in-time view of one dynamic gauge."""
    name: str
    label_schema: Tuple[str, ...]
    samples: Dict[Tuple[str, ...], float] = field(default_factory=dict)
