"""Tick timing, pause state and the adaptive time step."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from ..errors import NumericalError
from ..schema import Numerics

logger = logging.getLogger(__name__)

__all__ = ["SimulationClock", "adaptive_step"]


def adaptive_step(
    a_max: float,
    base: float,
    *,
    dt_min: float,
    courant_factor: float,
    characteristic_length: float,
    noise_floor: float,
) -> float:
    """Return the acceleration-limited step.

    Parameters
    ----------
    a_max:
        Largest acceleration magnitude in the scanned populations.
    base:
        Upper bound for the step (the nominal tick, at most ``dt_base``).
    dt_min:
        Lower bound for the step.

    Returns
    -------
    float
        ``base`` when ``a_max`` is below ``noise_floor`` (or not finite),
        otherwise ``courant_factor * sqrt(L / a_max)`` clamped to
        ``[dt_min, base]``.
    """
    if not math.isfinite(base) or base < 0.0:
        raise NumericalError(f"invalid base step {base!r}")
    if not math.isfinite(a_max) or a_max < noise_floor:
        return base
    limited = courant_factor * math.sqrt(characteristic_length / a_max)
    return min(base, max(dt_min, limited))


@dataclass
class SimulationClock:
    """Global tick counter and simulated time."""

    dt_base: float
    dt_min: float
    courant_factor: float
    characteristic_length: float
    noise_floor: float
    max_frame_dt: float
    time_scale: float = 1.0
    paused: bool = False
    tick: int = 0
    time: float = 0.0
    last_dt: float = 0.0
    last_a_max: float = 0.0
    scale_credit: float = 0.0

    @classmethod
    def from_config(cls, numerics: Numerics, *, paused: bool = False) -> "SimulationClock":
        return cls(
            dt_base=numerics.dt_base,
            dt_min=numerics.dt_min,
            courant_factor=numerics.courant_factor,
            characteristic_length=numerics.characteristic_length,
            noise_floor=numerics.accel_noise_floor,
            max_frame_dt=numerics.max_frame_dt,
            time_scale=numerics.time_scale,
            paused=paused,
        )

    def apply_config(self, numerics: Numerics, *, paused: bool) -> None:
        self.dt_base = numerics.dt_base
        self.dt_min = numerics.dt_min
        self.courant_factor = numerics.courant_factor
        self.characteristic_length = numerics.characteristic_length
        self.noise_floor = numerics.accel_noise_floor
        self.max_frame_dt = numerics.max_frame_dt
        self.time_scale = numerics.time_scale
        self.paused = paused

    def nominal_step(self, frame_dt: Optional[float] = None) -> float:
        """Return the tick length for an external frame interval.

        ``None`` means one base tick.  Frame intervals are capped at
        ``max_frame_dt`` and ``dt_base`` and floored at ``dt_min``; non-finite
        or negative intervals count as ``dt_min``.
        """

        if frame_dt is None:
            return self.dt_base
        frame_dt = float(frame_dt)
        if not math.isfinite(frame_dt) or frame_dt < 0.0:
            frame_dt = 0.0
        return max(self.dt_min, min(frame_dt, self.max_frame_dt, self.dt_base))

    def substeps(self) -> int:
        """Number of ticks to run for one external frame.

        ``time_scale`` is a rate: every call adds it to a running credit and
        the whole part of the credit is spent as ticks.  A scale of 2 runs two
        ticks per frame, 0.5 runs one tick every second frame and 0 freezes
        the simulation.  Tick lengths stay within ``[dt_min, dt_base]``.
        """

        self.scale_credit += self.time_scale
        count = int(self.scale_credit + 1.0e-9)
        self.scale_credit -= count
        return count

    def adaptive_step(self, a_max: float, base: float) -> float:
        dt = adaptive_step(
            a_max,
            base,
            dt_min=self.dt_min,
            courant_factor=self.courant_factor,
            characteristic_length=self.characteristic_length,
            noise_floor=self.noise_floor,
        )
        self.last_a_max = float(a_max)
        if logger.isEnabledFor(logging.DEBUG) and dt < base:
            logger.debug("SimulationClock.adaptive_step: a_max=%.4g -> dt=%.4g (base %.4g)", a_max, dt, base)
        return dt

    def advance(self, dt: float) -> None:
        self.tick += 1
        self.time += dt
        self.last_dt = dt

    def reset(self) -> None:
        self.tick = 0
        self.time = 0.0
        self.last_dt = 0.0
        self.last_a_max = 0.0
        self.scale_credit = 0.0
