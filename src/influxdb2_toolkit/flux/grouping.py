"""Merge per-field Flux rows back into one record per series point.

InfluxDB v2 stores every field of a measurement in its own table, so a query
returns one row per (tags, time, field). Rows that agree on every column
except ``_field``, ``_value`` and ``table`` belong to the same point and are
folded into a single map holding all of its fields.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Hashable, Iterable, List, Tuple
import logging

from ..exceptions import MappingError
from ..models import FluxRecord
from ..value import GenericMap, Value

logger = logging.getLogger(__name__)

IGNORED_COLUMNS: FrozenSet[str] = frozenset({"_field", "_value", "table"})

GroupKey = Tuple[Tuple[str, Value], ...]


def grouping_key(values: GenericMap) -> GroupKey:
    """Identity of the point a row belongs to, independent of column order."""
    return tuple(sorted(
        ((name, value) for name, value in values.items() if name not in IGNORED_COLUMNS),
        key=lambda item: item[0],
    ))


def group_records(records: Iterable[FluxRecord]) -> List[GenericMap]:
    """Fold field rows into composite maps, in first-seen key order.

    The first row of a key contributes all of its columns plus
    ``{<_field>: <_value>}``; later rows with the same key only add their
    own field pair.
    """
    build_table: Dict[Hashable, GenericMap] = {}
    rows = 0
    for record in records:
        rows += 1
        values = record.values
        pair = _field_pair(values)
        if pair is None:
            # rows without a field are never merged
            build_table[object()] = dict(values)
            continue
        key = grouping_key(values)
        entry = build_table.get(key)
        if entry is None:
            entry = dict(values)
            build_table[key] = entry
        entry[pair[0]] = pair[1]
    logger.debug("Grouped %d rows into %d records", rows, len(build_table))
    return list(build_table.values())


def _field_pair(values: GenericMap):
    field = values.get("_field")
    if field is None:
        return None
    name = field.as_str()
    if name is None:
        raise MappingError(f"_field column must hold a string, got {field!r}")
    return name, values.get("_value", Value.unknown())
