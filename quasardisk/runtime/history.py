"""Per-tick history containers used by the batch driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pyarrow as pa


class ColumnarBuffer:
    """Column-oriented record buffer for streaming-friendly output."""

    def __init__(self, columns: Optional[Iterable[str]] = None) -> None:
        self._columns: Dict[str, List[Any]] = {}
        self._column_order: List[str] = []
        self._row_count = 0
        if columns:
            for name in columns:
                self._columns[name] = []
                self._column_order.append(name)

    def __len__(self) -> int:
        return self._row_count

    def __bool__(self) -> bool:
        return self._row_count > 0

    def append_row(self, record: Mapping[str, Any]) -> None:
        if record is None:
            return
        for key in record:
            if key not in self._columns:
                self._columns[key] = [None] * self._row_count
                self._column_order.append(key)
        for name in self._column_order:
            self._columns[name].append(record.get(name))
        self._row_count += 1

    def clear(self) -> None:
        for values in self._columns.values():
            values.clear()
        self._row_count = 0

    def to_table(self) -> pa.Table:
        """Columns in first-seen order; rows missing a key hold nulls."""
        return pa.Table.from_pydict({name: self._columns[name] for name in self._column_order})


@dataclass
class TickHistory:
    """Per-tick statistics plus discrete events (disruption, resets, faults)."""

    records: ColumnarBuffer = field(default_factory=lambda: ColumnarBuffer(["tick", "time", "dt"]))
    events: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, tick: int, time: float, dt: float, stats: Mapping[str, float]) -> None:
        row: Dict[str, Any] = {"tick": tick, "time": time, "dt": dt}
        row.update(stats)
        self.records.append_row(row)

    def event(self, tick: int, time: float, kind: str, **details: Any) -> None:
        entry: Dict[str, Any] = {"tick": tick, "time": time, "event": kind}
        entry.update(details)
        self.events.append(entry)

    def clear(self) -> None:
        self.records.clear()
        self.events.clear()

    def __len__(self) -> int:
        return len(self.records)
