import math

import pytest

from quasardisk.errors import NumericalError
from quasardisk.runtime.clock import SimulationClock, adaptive_step
from quasardisk.schema import Numerics

KW = dict(dt_min=0.001, courant_factor=0.3, characteristic_length=1.0, noise_floor=0.1)


def test_below_noise_floor_uses_base():
    assert adaptive_step(0.05, 0.016, **KW) == 0.016
    assert adaptive_step(0.0, 0.016, **KW) == 0.016


@pytest.mark.parametrize("a_max", [math.nan, math.inf])
def test_non_finite_acceleration_uses_base(a_max):
    assert adaptive_step(a_max, 0.016, **KW) == 0.016


@pytest.mark.parametrize("a_max", [0.2, 1.0, 50.0, 1.0e3, 1.0e6, 1.0e12])
def test_step_stays_within_bounds(a_max):
    dt = adaptive_step(a_max, 0.016, **KW)
    assert 0.001 <= dt <= 0.016


def test_courant_limited_step():
    assert adaptive_step(1.0e3, 0.016, **KW) == pytest.approx(0.3 * math.sqrt(1.0e-3))
    assert adaptive_step(1.0e12, 0.016, **KW) == 0.001


def test_invalid_base_raises():
    with pytest.raises(NumericalError):
        adaptive_step(1.0, math.nan, **KW)


def test_nominal_step_clamps_frame_interval():
    clock = SimulationClock.from_config(Numerics())
    assert clock.nominal_step() == pytest.approx(0.016)
    assert clock.nominal_step(1.0) == pytest.approx(0.016)
    assert clock.nominal_step(0.008) == pytest.approx(0.008)
    assert clock.nominal_step(0.0001) == pytest.approx(0.001)
    assert clock.nominal_step(-1.0) == pytest.approx(0.001)
    assert clock.nominal_step(math.nan) == pytest.approx(0.001)


@pytest.mark.parametrize("time_scale", [0.0, 0.05, 0.5, 1.0, 2.0, 16.0])
@pytest.mark.parametrize("frame_dt", [None, 0.0, 0.0001, 0.01, 5.0])
@pytest.mark.parametrize("a_max", [0.0, 1.0, 1.0e3, 1.0e12, math.inf])
def test_clock_step_stays_within_bounds(time_scale, frame_dt, a_max):
    clock = SimulationClock.from_config(Numerics(time_scale=time_scale))
    dt = clock.adaptive_step(a_max, clock.nominal_step(frame_dt))
    assert clock.dt_min <= dt <= clock.dt_base


def test_time_scale_sets_substeps():
    clock = SimulationClock.from_config(Numerics(time_scale=2.0))
    assert [clock.substeps() for _ in range(3)] == [2, 2, 2]
    clock = SimulationClock.from_config(Numerics(time_scale=0.5))
    assert [clock.substeps() for _ in range(4)] == [0, 1, 0, 1]
    clock = SimulationClock.from_config(Numerics(time_scale=1.5))
    assert sum(clock.substeps() for _ in range(10)) == 15
    clock = SimulationClock.from_config(Numerics(time_scale=0.1))
    assert sum(clock.substeps() for _ in range(10)) == 1
    clock.reset()
    assert clock.scale_credit == 0.0
    assert clock.adaptive_step(0.0, clock.nominal_step()) == pytest.approx(0.016)


def test_clock_advance_and_reset():
    clock = SimulationClock.from_config(Numerics(), paused=True)
    assert clock.paused
    clock.advance(0.016)
    clock.advance(0.010)
    assert clock.tick == 2
    assert clock.time == pytest.approx(0.026)
    assert clock.last_dt == pytest.approx(0.010)
    clock.reset()
    assert clock.tick == 0
    assert clock.time == 0.0

