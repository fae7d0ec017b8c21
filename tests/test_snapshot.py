from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from quasardisk.physics.tidal import TidalPhase


def test_snapshot_arrays_are_read_only(make_sim):
    sim = make_sim()
    sim.advance()
    snap = sim.snapshot()
    with pytest.raises(ValueError):
        snap.disk.positions[0, 0] = 1.0
    with pytest.raises(ValueError):
        snap.disk["radius"][0] = 1.0
    with pytest.raises(ValueError):
        snap.companion.position[0] = 1.0
    with pytest.raises(TypeError):
        snap.statistics["capture_count"] = 5.0
    with pytest.raises(TypeError):
        snap.disk.columns["radius"] = np.zeros(3)
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap.tick = 99


def test_old_snapshot_does_not_follow_engine(make_sim):
    sim = make_sim()
    sim.advance()
    snap = sim.snapshot()
    radius = np.array(snap.disk["radius"])
    for _ in range(5):
        sim.advance()
    assert snap.tick == 1
    assert np.array_equal(snap.disk["radius"], radius)
    assert not np.array_equal(sim.disk.pool["radius"], radius)
    assert snap != sim.snapshot()


def test_snapshot_contents(make_sim):
    sim = make_sim()
    snap = sim.snapshot()
    assert snap.tick == 0
    assert snap.tidal_body.phase == TidalPhase.APPROACHING
    assert snap.population_sizes() == {
        "disk": 300,
        "outflow": 0,
        "debris": 0,
        "wind": 100,
        "pairs": 100,
        "photons": 0,
    }
    assert snap.disk.positions.shape == (300, 3)
    assert "uid" in snap.debris.columns
    assert np.linalg.norm(snap.tidal_body.stretch_axis) == pytest.approx(1.0)
    assert snap.statistics["particles_in_disk"] == 300.0
    assert snap == sim.snapshot()
