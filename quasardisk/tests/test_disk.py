import numpy as np
import pytest

from quasardisk import orbits
from quasardisk.physics.disk import DiskParticleSystem, disk_density, scale_height
from quasardisk.physics.forces import ForceField
from quasardisk.schema import Config, Disk


def _system(geometry, rng, **disk_options) -> DiskParticleSystem:
    disk_options.setdefault("particle_count", 300)
    return DiskParticleSystem(Config(disk=Disk(**disk_options)), geometry, rng)


def _tick(system: DiskParticleSystem, field: ForceField, dt: float = 0.016):
    system.prepare(field)
    return system.advance(dt, 0.016)


def test_seed_radii_within_bounds(geometry, rng):
    system = _system(geometry, rng)
    r = system.pool["radius"]
    assert r.min() >= 18.0
    assert r.max() <= 98.0
    assert system.seed_max_radius == r.max()
    assert np.array_equal(system.pool["seed_radius"], r)


def test_seed_radius_respects_isco_band(geometry, rng):
    system = _system(geometry, rng, r_in=5.0, r_out=40.0)
    assert system.r_seed_min == pytest.approx(geometry.r_isco + 3.0)
    assert system.pool["radius"].min() >= system.r_seed_min


def test_plunging_particles_are_reset(geometry, rng):
    system = _system(geometry, rng)
    system.pool["radius"][:5] = 5.0
    result = _tick(system, ForceField(geometry.mu))
    assert result.plunges >= 5
    assert result.captures >= result.plunges
    assert np.allclose(system.pool["radius"][:5], system.pool["seed_radius"][:5])
    assert system.pool["captured"][:5].all()
    assert system.pool["radius"].min() >= geometry.r_isco - 3.0


def test_band_particles_launch_outflow(geometry, rng):
    system = _system(geometry, rng, launch_probability=1.0)
    system.pool["radius"][:10] = geometry.r_isco
    result = _tick(system, ForceField(geometry.mu))
    assert result.launches.size >= 10
    assert set(np.unique(result.launches.polarity)) <= {-1, 1}
    assert np.all(result.launches.lorentz >= 1.0)
    assert system.launches_total == result.launches.size


def test_keplerian_floor_convergence(geometry, rng):
    system = _system(geometry, rng, drift_coefficient=0.0, particle_count=100)
    field = ForceField(geometry.mu)
    system.pool["v_tangential"] += 5.0
    for _ in range(150):
        _tick(system, field)
    r = system.pool["radius"]
    assert np.allclose(system.pool["v_tangential"], 407.4 * r**-1.5, rtol=1e-3)


def test_non_finite_particle_is_reset(geometry, rng):
    system = _system(geometry, rng)
    field = ForceField(geometry.mu)
    system.prepare(field)
    system.pool["v_radial"][0] = np.nan
    result = system.advance(0.016, 0.016)
    assert result.numeric_resets == 1
    assert np.isfinite(system.pool["radius"]).all()
    assert system.pool["v_radial"][0] == 0.0


def test_drift_moves_particles_inward(geometry, rng):
    system = _system(geometry, rng)
    start = system.pool["radius"].copy()
    field = ForceField(geometry.mu)
    for _ in range(20):
        _tick(system, field)
    assert np.all(system.pool["radius"] <= start)
    assert system.statistics()["avg_infall_speed"] > 0.0


def test_thermal_profile(geometry, rng):
    system = _system(geometry, rng)
    stats = system.statistics()
    assert 0.0 <= stats["disk_peak_temperature"] <= 1.0 + 0.3
    assert np.all(system.pool["density"] > 0.0)
    assert np.all(system.pool["stretch"] >= 1.0)
    assert scale_height(50.0, 0.1) == pytest.approx(5.0)
    assert disk_density(50.0, 0.0, 5.0) == pytest.approx(1.0)
    assert orbits.v_kepler_floor(18.0, system.kepler_coefficient) == pytest.approx(407.4 * 18.0**-1.5)
