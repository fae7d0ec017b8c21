import numpy as np
import pytest

from quasardisk import orbits, vecmath
from quasardisk.errors import QuasarDiskError
from quasardisk.physics.forces import ForceField
from quasardisk.physics.tidal import (
    DebrisState,
    DebrisStream,
    TidalBody,
    TidalEncounter,
    TidalPhase,
    check_transition,
)
from quasardisk.schema import Tidal


def _tick(encounter: TidalEncounter, field: ForceField, dt: float = 0.016):
    encounter.prepare(field)
    return encounter.advance(dt)


def test_transitions_only_move_forward():
    assert check_transition(TidalPhase.STRETCHING, TidalPhase.DISRUPTED) == TidalPhase.DISRUPTED
    assert check_transition(TidalPhase.APPROACHING, TidalPhase.SWALLOWED) == TidalPhase.SWALLOWED
    with pytest.raises(QuasarDiskError):
        check_transition(TidalPhase.DISRUPTED, TidalPhase.STRETCHING)
    with pytest.raises(QuasarDiskError):
        check_transition(TidalPhase.APPROACHING, TidalPhase.DISRUPTED)


def test_new_body_starts_inbound(geometry, rng):
    encounter = TidalEncounter(Tidal(), geometry, rng)
    body = encounter.body
    assert body.phase == TidalPhase.APPROACHING
    assert body.distance == pytest.approx(300.0)
    assert body.tidal_radius == pytest.approx(80.0)
    assert np.dot(body.position, body.velocity) < 0.0


def test_body_stretches_inside_tidal_radius(geometry, rng):
    encounter = TidalEncounter(Tidal(start_radius=70.0), geometry, rng)
    _tick(encounter, ForceField(geometry.mu))
    body = encounter.body
    assert body.phase == TidalPhase.STRETCHING
    assert body.integrity < 1.0
    assert body.stretch_radial > 1.0 > body.stretch_transverse


def test_disruption_emits_debris_with_angular_momentum(geometry, rng):
    encounter = TidalEncounter(Tidal(start_radius=70.0, debris_per_tick=10), geometry, rng)
    encounter.body.transition(TidalPhase.STRETCHING)
    encounter.body.integrity = 0.301
    result = _tick(encounter, ForceField(geometry.mu))
    body = encounter.body
    assert body.phase == TidalPhase.DISRUPTED
    assert body.disruption_radius is not None
    assert result.emitted == 10
    queue = encounter.stream.queue
    assert queue.count == 10
    assert np.allclose(queue["angular_momentum"], np.cross(queue["position"], queue["velocity"]))
    assert np.all(queue["state"] == DebrisState.IN_STREAM)
    assert np.allclose(queue["mass"], 2.5e-4)
    assert body.remnant_mass == pytest.approx(1.0 - 10 * 2.5e-4)


def test_plunging_body_is_swallowed(geometry, rng):
    encounter = TidalEncounter(Tidal(start_radius=10.0), geometry, rng)
    _tick(encounter, ForceField(geometry.mu))
    body = encounter.body
    assert body.phase == TidalPhase.SWALLOWED
    assert body.capture_time is not None
    position = body.position.copy()
    _tick(encounter, ForceField(geometry.mu))
    assert np.array_equal(body.position, position)


def _circular_body(geometry, radius: float) -> TidalBody:
    speed = float(orbits.circular_speed(geometry.mu, radius))
    return TidalBody(
        position=np.array([radius, 0.0, 0.0]),
        velocity=np.array([0.0, speed, 0.0]),
        mass=1.0,
        tidal_radius=80.0,
    )


def test_debris_circularizes_decays_and_is_captured(geometry, rng):
    cfg = Tidal(debris_spread=0.0, debris_velocity_jitter=0.0)
    stream = DebrisStream(cfg, geometry)
    stream.emit(_circular_body(geometry, 30.0), 5, 2.5e-4, rng)
    field = ForceField(geometry.mu)
    stream.prepare(field)
    result = stream.advance(0.016)
    assert result.circularized == 5
    assert np.all(stream.queue["state"] == DebrisState.CIRCULARIZED)
    previous = vecmath.length(stream.queue["position"])
    for _ in range(100):
        stream.prepare(field)
        stream.advance(0.016)
        assert np.all(stream.queue["state"] == DebrisState.CIRCULARIZED)
        radius = vecmath.length(stream.queue["position"])
        assert np.all(radius < previous)
        previous = radius
    for _ in range(800):
        stream.prepare(field)
        stream.advance(0.016)
    assert stream.count == 0
    assert stream.captured_total == 5


def test_debris_queue_evicts_oldest(geometry, rng):
    stream = DebrisStream(Tidal(debris_capacity=20), geometry)
    body = _circular_body(geometry, 60.0)
    assert stream.emit(body, 15, 1.0e-3, rng) == 0
    assert stream.emit(body, 15, 1.0e-3, rng) == 10
    assert stream.count == 20
    assert stream.queue["uid"][0] == 10
    assert stream.statistics()["debris_evicted"] == 10.0


def test_disabled_encounter_is_inert(geometry, rng):
    encounter = TidalEncounter(Tidal(enabled=False), geometry, rng)
    position = encounter.body.position.copy()
    assert encounter.prepare(ForceField(geometry.mu)) == 0.0
    encounter.advance(0.016)
    assert np.array_equal(encounter.body.position, position)
