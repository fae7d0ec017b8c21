"""Column-oriented particle storage.

Two containers back every particle population:

``ParticlePool``
    Fixed-size columns allocated once.  Slots are never removed, only reset
    by the owning system, so the population size is constant.
``ParticleQueue``
    Columns with an explicit capacity holding a variable number of live
    rows in creation order.  Pushing past capacity evicts the oldest rows
    and counts them.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Tuple

import numpy as np

logger = logging.getLogger(__name__)

ColumnSpec = Mapping[str, Tuple[type, int]]


def _allocate(size: int, columns: ColumnSpec) -> Dict[str, np.ndarray]:
    arrays: Dict[str, np.ndarray] = {}
    for name, (dtype, width) in columns.items():
        shape = (size,) if width == 1 else (size, width)
        arrays[name] = np.zeros(shape, dtype=dtype)
    return arrays


class ParticlePool:
    """Fixed-size pool of named NumPy columns."""

    def __init__(self, size: int, columns: ColumnSpec) -> None:
        if size < 1:
            raise ValueError("pool size must be positive")
        self._size = int(size)
        self._spec = dict(columns)
        self._arrays = _allocate(self._size, self._spec)

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, name: str) -> np.ndarray:
        return self._arrays[name]

    def __setitem__(self, name: str, value) -> None:
        self._arrays[name][...] = value

    def columns(self) -> list[str]:
        return list(self._spec)

    def zero(self) -> None:
        for values in self._arrays.values():
            values[...] = 0

    def export(self, names: Iterable[str] | None = None) -> Dict[str, np.ndarray]:
        """Return read-only copies of the requested columns."""

        selected = self._spec if names is None else names
        out: Dict[str, np.ndarray] = {}
        for name in selected:
            copy = self._arrays[name].copy()
            copy.setflags(write=False)
            out[name] = copy
        return out


class ParticleQueue:
    """Capped FIFO of named NumPy columns.

    Live rows occupy ``[0, count)`` ordered from oldest to newest.  Column
    views returned by :meth:`__getitem__` cover only the live rows and stay
    valid until the next :meth:`push` or :meth:`keep`.
    """

    def __init__(self, capacity: int, columns: ColumnSpec) -> None:
        if capacity < 1:
            raise ValueError("queue capacity must be positive")
        self._capacity = int(capacity)
        self._spec = dict(columns)
        self._arrays = _allocate(self._capacity, self._spec)
        self._count = 0
        self.evicted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def __bool__(self) -> bool:
        return self._count > 0

    def __getitem__(self, name: str) -> np.ndarray:
        return self._arrays[name][: self._count]

    def __setitem__(self, name: str, value) -> None:
        self._arrays[name][: self._count] = value

    def columns(self) -> list[str]:
        return list(self._spec)

    def clear(self) -> None:
        self._count = 0

    def push(self, rows: Mapping[str, np.ndarray]) -> int:
        """Append a batch of rows, evicting the oldest ones when full.

        Parameters
        ----------
        rows:
            Mapping of column name to an array whose leading dimension is the
            batch size.  Columns that are omitted are zero-filled.

        Returns
        -------
        int
            Number of rows that did not fit, i.e. evicted old rows plus any
            part of the batch itself that exceeded capacity.
        """

        unknown = set(rows) - set(self._spec)
        if unknown:
            raise KeyError(f"unknown particle columns: {sorted(unknown)}")
        sizes = {len(np.atleast_1d(values)) for values in rows.values()}
        if len(sizes) > 1:
            raise ValueError("all pushed columns must share the batch size")
        batch = sizes.pop() if sizes else 0
        if batch == 0:
            return 0
        skip = max(0, batch - self._capacity)
        batch_kept = batch - skip
        overflow = max(0, self._count + batch_kept - self._capacity)
        if overflow:
            keep = self._count - overflow
            for values in self._arrays.values():
                values[:keep] = values[overflow : self._count]
            self._count = keep
        start, stop = self._count, self._count + batch_kept
        for name, values in self._arrays.items():
            if name in rows:
                values[start:stop] = np.asarray(rows[name])[skip:]
            else:
                values[start:stop] = 0
        self._count = stop
        dropped = overflow + skip
        if dropped:
            self.evicted += dropped
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("ParticleQueue.push: evicted %d rows (capacity=%d)", dropped, self._capacity)
        return dropped

    def keep(self, mask: np.ndarray) -> int:
        """Compact the queue to the rows where ``mask`` is true.

        Returns the number of removed rows.
        """

        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (self._count,):
            raise ValueError("mask must cover exactly the live rows")
        survivors = int(mask.sum())
        removed = self._count - survivors
        if removed == 0:
            return 0
        for values in self._arrays.values():
            values[:survivors] = values[: self._count][mask]
        self._count = survivors
        return removed

    def export(self, names: Iterable[str] | None = None) -> Dict[str, np.ndarray]:
        """Return read-only copies of the live rows of the requested columns."""

        selected = self._spec if names is None else names
        out: Dict[str, np.ndarray] = {}
        for name in selected:
            copy = self._arrays[name][: self._count].copy()
            copy.setflags(write=False)
            out[name] = copy
        return out


__all__ = ["ParticlePool", "ParticleQueue"]
