"""Flatten nested system profiler JSON into flat records."""
import json
from typing import Any, Iterator, List, Tuple

from spdata_exporter.records import FlatRecord


class FlattenError(ValueError):
    """Raised when profiler output cannot be parsed into records."""


def _reject_constant(name: str):
    # NaN and Infinity are not valid JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def flatten(data_type: str, root: Any) -> Iterator[FlatRecord]:
    """
    Walk a parsed JSON value depth-first and yield one record per leaf.

    Object keys and array indices become path segments. An array index is
    placed between the parent path and the child key, so
    ``{"T": [{"a": 1}]}`` yields the path ``("0", "a")``.

    A scalar stored directly under the data type yields nothing, since
    there is no key to name it by. Empty objects and arrays yield nothing.

    Args:
        data_type: Name of the top-level collection the value came from
        root: Parsed JSON value

    Returns:
        Iterator of flat records in key/index order
    """
    if isinstance(root, (dict, list)):
        yield from _walk(data_type, root, ())


def _walk(data_type: str, value: Any, path: Tuple[str, ...]) -> Iterator[FlatRecord]:
    if isinstance(value, dict):
        for key, child in value.items():
            yield from _walk(data_type, child, path + (str(key),))
    elif isinstance(value, list):
        for index, child in enumerate(value):
            yield from _walk(data_type, child, path + (str(index),))
    else:
        yield FlatRecord(data_type, path, value)


def flatten_document(text: str) -> List[FlatRecord]:
    """
    Parse raw profiler output and flatten every top-level data type.

    The document must be a JSON object keyed by data type, as produced by
    ``system_profiler -json``.

    Raises:
        FlattenError: If the text is not JSON or not an object
    """
    try:
        document = json.loads(text, parse_constant=_reject_constant)
    except (TypeError, ValueError) as e:
        raise FlattenError(f"Invalid JSON from data source: {e}") from e

    if not isinstance(document, dict):
        raise FlattenError(
            f"Expected a JSON object keyed by data type, got {type(document).__name__}"
        )

    records: List[FlatRecord] = []
    for data_type, value in document.items():
        records.extend(flatten(data_type, value))
    return records
