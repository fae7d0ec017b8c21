import numpy as np
import pytest

from quasardisk.particles import ParticlePool, ParticleQueue

COLUMNS = {"x": (np.float64, 1), "v": (np.float64, 3)}


def test_pool_is_fixed_size_and_export_is_read_only():
    pool = ParticlePool(5, COLUMNS)
    assert pool.size == len(pool) == 5
    assert pool["v"].shape == (5, 3)
    pool["x"][:] = 1.0
    exported = pool.export()
    pool["x"][0] = 2.0
    assert exported["x"][0] == 1.0
    with pytest.raises(ValueError):
        exported["x"][0] = 3.0


def test_pool_rejects_empty_size():
    with pytest.raises(ValueError):
        ParticlePool(0, COLUMNS)


def test_queue_evicts_oldest_rows():
    queue = ParticleQueue(4, COLUMNS)
    assert queue.push({"x": np.arange(3.0)}) == 0
    dropped = queue.push({"x": np.array([10.0, 11.0, 12.0])})
    assert dropped == 2
    assert queue.count == 4
    assert list(queue["x"]) == [2.0, 10.0, 11.0, 12.0]
    assert queue.evicted == 2


def test_queue_batch_larger_than_capacity_keeps_newest():
    queue = ParticleQueue(3, COLUMNS)
    assert queue.push({"x": np.arange(5.0)}) == 2
    assert list(queue["x"]) == [2.0, 3.0, 4.0]


def test_queue_zero_fills_omitted_columns():
    queue = ParticleQueue(3, COLUMNS)
    queue.push({"v": np.ones((2, 3))})
    queue.push({"x": np.array([5.0])})
    assert np.all(queue["v"][1] == 1.0)
    assert np.all(queue["v"][2] == 0.0)
    assert list(queue["x"]) == [0.0, 0.0, 5.0]


def test_queue_keep_compacts_in_order():
    queue = ParticleQueue(8, COLUMNS)
    queue.push({"x": np.arange(4.0)})
    removed = queue.keep(queue["x"] % 2 == 0)
    assert removed == 2
    assert list(queue["x"]) == [0.0, 2.0]
    assert len(queue.export()["x"]) == 2


def test_queue_rejects_bad_input():
    queue = ParticleQueue(4, COLUMNS)
    queue.push({"x": np.arange(2.0)})
    with pytest.raises(ValueError):
        queue.keep(np.ones(3, dtype=bool))
    with pytest.raises(KeyError):
        queue.push({"y": np.zeros(1)})
    with pytest.raises(ValueError):
        queue.push({"x": np.zeros(2), "v": np.zeros((3, 3))})


def test_queue_clear():
    queue = ParticleQueue(4, COLUMNS)
    queue.push({"x": np.arange(2.0)})
    queue.clear()
    assert not queue
    assert queue.count == 0


def test_augmented_column_updates_write_in_place():
    pool = ParticlePool(3, COLUMNS)
    column = pool["x"]
    pool["x"] += 2.0
    pool["v"] += np.array([1.0, 0.0, 0.0])
    assert column is pool["x"]
    assert list(pool["x"]) == [2.0, 2.0, 2.0]
    assert pool["v"][:, 0].tolist() == [1.0, 1.0, 1.0]

    queue = ParticleQueue(4, COLUMNS)
    queue.push({"x": np.array([1.0, 2.0])})
    queue["x"] += 0.5
    assert queue.count == 2
    assert list(queue["x"]) == [1.5, 2.5]
    queue["x"] = 0.0
    assert list(queue["x"]) == [0.0, 0.0]
    queue.push({"x": np.array([7.0])})
    assert list(queue["x"]) == [0.0, 0.0, 7.0]
