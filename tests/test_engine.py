import numpy as np
import pytest

from quasardisk import RESET_SCENARIOS, Simulation
from quasardisk.errors import ConfigurationError, NumericalError
from quasardisk.physics.tidal import TidalPhase
from quasardisk.warnings import PhysicsWarning


def test_population_sizes_are_conserved(make_sim):
    sim = make_sim()
    for _ in range(300):
        sim.advance()
        sizes = sim.snapshot().population_sizes()
        assert sizes["disk"] == 300
        assert sizes["wind"] == 100
        assert sizes["pairs"] == 100
        assert sizes["outflow"] <= 100
        assert sizes["debris"] <= 500
        assert sizes["photons"] <= 20


def test_disk_radius_never_stays_below_plunge_edge(make_sim):
    sim = make_sim()
    edge = sim.geometry.r_isco - sim.config.disk.isco_margin
    for _ in range(400):
        sim.advance()
        assert sim.disk.pool["radius"].min() >= edge


def test_default_simulation_advances():
    sim = Simulation(seed=1)
    sim.advance()
    sim.advance(0.01)
    assert sim.clock.tick == 2
    assert sim.clock.time == pytest.approx(0.026)
    assert sim.faults == 0


def test_configure_rejects_negative_mass_and_keeps_state(make_sim):
    sim = make_sim()
    for _ in range(20):
        sim.advance()
    before = sim.snapshot()
    with pytest.raises(ConfigurationError):
        sim.configure({"centralMass": -1})
    after = sim.snapshot()
    assert before == after
    assert sim.config.central.mass == pytest.approx(66.0e9)


def test_configure_rejects_unknown_option(make_sim):
    sim = make_sim()
    config = sim.config
    with pytest.raises(ConfigurationError):
        sim.configure({"warpFactor": 9})
    assert sim.config is config


def test_configure_companion_recomputes_influence_radius(make_sim):
    sim = make_sim()
    before = sim.snapshot().companion.influence_radius
    sim.configure({"companionMass": 80.0})
    snap = sim.snapshot()
    assert snap.companion.mass == 80.0
    assert snap.companion.influence_radius == pytest.approx(2.0 ** (1.0 / 3.0) * before)


def test_configure_central_mass_updates_geometry(make_sim):
    sim = make_sim()
    sim.configure({"centralMass": 33.0e9, "spinParameter": 0.0})
    assert sim.geometry.r_s == pytest.approx(5.0)
    assert sim.geometry.r_isco == pytest.approx(15.0)
    sim.advance()


def test_configure_emits_physics_warning(make_sim):
    sim = make_sim()
    with pytest.warns(PhysicsWarning):
        sim.configure({"companionOrbitalRadius": 60.0})


def test_pause_freezes_state(make_sim):
    sim = make_sim()
    sim.advance()
    sim.configure({"paused": True})
    before = sim.snapshot()
    for _ in range(5):
        sim.advance()
    assert sim.snapshot() == before
    assert before.paused
    sim.configure({"paused": False})
    sim.advance()
    assert sim.clock.tick == 2


def test_population_size_applies_on_reset(make_sim):
    sim = make_sim()
    sim.configure({"disk": {"particle_count": 120}})
    assert sim.disk.size == 300
    sim.reset("disk")
    assert sim.disk.size == 120


@pytest.mark.filterwarnings("ignore::quasardisk.warnings.PhysicsWarning")
def test_reset_tidal_leaves_disk_untouched(make_sim):
    sim = make_sim(tidal={"start_radius": 70.0})
    for _ in range(30):
        sim.advance()
    assert sim.tidal.body.phase == TidalPhase.STRETCHING
    radius = sim.disk.pool["radius"].copy()
    pool = sim.disk.pool
    sim.reset("tidal")
    assert sim.tidal.body.phase == TidalPhase.APPROACHING
    assert sim.tidal.stream.count == 0
    assert sim.disk.pool is pool
    assert np.array_equal(sim.disk.pool["radius"], radius)


def test_reset_multiple_and_all(make_sim):
    sim = make_sim(disk={"launch_probability": 1.0})
    for _ in range(300):
        sim.advance()
    sim.reset(["outflow", "photons"])
    assert sim.outflow.count == 0
    assert sim.photons.queue.count == 0
    assert sim.clock.tick == 300
    sim.reset()
    assert sim.clock.tick == 0
    assert sim.snapshot().statistics["capture_count"] == 0.0
    assert set(RESET_SCENARIOS) == {"disk", "outflow", "tidal", "companion", "pairs", "photons"}


@pytest.mark.parametrize("scenario", ["bogus", ["disk", "nope"], []])
def test_reset_rejects_unknown_scenarios(make_sim, scenario):
    sim = make_sim()
    with pytest.raises(ConfigurationError):
        sim.reset(scenario)


def test_internal_fault_is_absorbed(make_sim, monkeypatch):
    sim = make_sim(record_history=True)

    def broken(dt):
        raise NumericalError("synthetic failure")

    monkeypatch.setattr(sim.tidal, "advance", broken)
    sim.advance()
    assert sim.faults == 1
    assert sim.clock.tick == 1
    assert sim.snapshot().statistics["faults"] == 1.0
    assert any(event["event"] == "fault" for event in sim.history.events)


def test_unexpected_errors_are_counted_as_faults(make_sim, monkeypatch):
    sim = make_sim(record_history=True)

    def broken(force_field):
        raise TypeError("synthetic failure")

    monkeypatch.setattr(sim.disk, "prepare", broken)
    radius = sim.disk.pool["radius"].copy()
    sim.advance()
    sim.advance()
    assert sim.faults == 2
    assert sim.clock.tick == 2
    assert np.array_equal(sim.disk.pool["radius"], radius)
    systems = [event["system"] for event in sim.history.events if event["event"] == "fault"]
    assert systems == ["disk.prepare", "disk.prepare"]


def test_default_configuration_advances_many_ticks():
    sim = Simulation(seed=3)
    for _ in range(25):
        sim.advance()
    assert sim.clock.tick == 25
    assert sim.faults == 0
    assert sim.snapshot().statistics["disk_particles"] == 2000.0


def test_history_records_every_tick(make_sim):
    sim = make_sim(record_history=True)
    for _ in range(10):
        sim.advance()
    table = sim.history.records.to_table()
    assert table.num_rows == 10
    assert "capture_count" in table.column_names
    assert table.column("tick").to_pylist() == list(range(1, 11))


def test_time_scale_sets_ticks_per_frame(make_sim):
    sim = make_sim(companion={"enabled": False}, tidal={"enabled": False})
    sim.configure({"timeScale": 2.0})
    sim.advance()
    assert sim.clock.tick == 2
    assert 0.001 <= sim.clock.last_dt <= 0.016

    sim.configure({"timeScale": 0.5})
    sim.advance()
    assert sim.clock.tick == 2
    sim.advance()
    assert sim.clock.tick == 3
    assert 0.001 <= sim.clock.last_dt <= 0.016

    sim.configure({"timeScale": 0.0})
    for _ in range(4):
        sim.advance()
    assert sim.clock.tick == 3


@pytest.mark.parametrize(
    "options, frame_dt",
    [
        ({"timeScale": 2.0}, None),
        ({"timeScale": 0.05}, None),
        ({"timeScale": 1.0}, 0.0001),
        ({"timeScale": 3.0}, 10.0),
    ],
)
def test_step_stays_between_dt_min_and_dt_base(make_sim, options, frame_dt):
    sim = make_sim()
    sim.configure(options)
    for _ in range(40):
        sim.advance(frame_dt)
        if sim.clock.tick:
            assert 0.001 <= sim.clock.last_dt <= 0.016
    assert sim.clock.tick >= 1


def test_mapping_config_and_seed_are_reproducible(make_sim):
    a = make_sim(seed=11)
    b = make_sim(seed=11)
    for _ in range(50):
        a.advance()
        b.advance()
    assert a.snapshot() == b.snapshot()
