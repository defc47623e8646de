"""Ordering of the displayed index list and the per-row gradient position."""

from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

from elastic_ingest_top.models import Health


class SortKey(Enum):
    NAME = "name"
    DOC_COUNT = "doc_count"
    RATE = "rate_per_sec"
    SIZE = "size_bytes"
    HEALTH = "health"

    def next(self) -> "SortKey":
        keys = list(SortKey)
        return keys[(keys.index(self) + 1) % len(keys)]

    def prev(self) -> "SortKey":
        keys = list(SortKey)
        return keys[(keys.index(self) - 1) % len(keys)]


class SortOrder(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    def toggle(self) -> "SortOrder":
        if self is SortOrder.ASCENDING:
            return SortOrder.DESCENDING
        return SortOrder.ASCENDING


def sort_value(record: Any, key: SortKey) -> Any:
    """Natural comparison value of ``record`` for ``key``. Health uses its severity."""
    value = getattr(record, key.value)
    if isinstance(value, Health):
        return value.severity
    return value


def order_records(records: Sequence[Any], key: SortKey, order: SortOrder) -> List[Any]:
    """
    Order records by ``key``; equal keys always fall back to name ascending,
    whatever the direction, so rows don't jitter between cycles.
    """
    by_name = sorted(records, key=lambda record: record.name)
    if key is SortKey.NAME:
        return by_name if order is SortOrder.ASCENDING else by_name[::-1]
    # list.sort is stable under reverse=True as well, so name order survives ties
    by_name.sort(key=lambda record: sort_value(record, key), reverse=order is SortOrder.DESCENDING)
    return by_name


def gradient_positions(records: Sequence[Any], key: SortKey) -> Dict[str, float]:
    """
    Position of each record in [0, 1] within the value range of the records
    given (not historical extremes). All-equal values map to 0.5.

    Names have no magnitude, so for the name key a record's rank among the
    distinct names stands in for its value.
    """
    if not records:
        return {}

    if key is SortKey.NAME:
        ranks = {name: rank for rank, name in enumerate(sorted({r.name for r in records}))}
        values = {record.name: float(ranks[record.name]) for record in records}
    else:
        values = {record.name: float(sort_value(record, key)) for record in records}

    low, high = min(values.values()), max(values.values())
    if high == low:
        return {name: 0.5 for name in values}
    span = high - low
    return {name: (value - low) / span for name, value in values.items()}


class SortState:
    """Current sort key and direction. Defaults to rate, descending."""

    def __init__(self, key: SortKey = SortKey.RATE, order: SortOrder = SortOrder.DESCENDING):
        self.key = key
        self.order = order

    def next_key(self) -> None:
        self.key = self.key.next()

    def prev_key(self) -> None:
        self.key = self.key.prev()

    def set_key(self, key: SortKey) -> None:
        self.key = key

    def toggle_order(self) -> None:
        self.order = self.order.toggle()

    def apply(self, records: Sequence[Any]) -> List[Tuple[Any, float]]:
        """Ordered (record, gradient position) pairs."""
        positions = gradient_positions(records, self.key)
        return [(record, positions[record.name]) for record in order_records(records, self.key, self.order)]
