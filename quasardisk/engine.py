"""Tick orchestration for the quasar disk engine.

:class:`Simulation` owns every particle population and advances them in a
fixed coupling order once per tick::

    companion force state (frozen)
        -> acceleration scan (disk + tidal) -> adaptive dt
        -> disk -> outflow launches -> outflow
        -> tidal body + debris
        -> pairs -> photon orbiters
        -> companion orbit + wind (between ticks)
        -> clock

Presentation layers consume :meth:`Simulation.snapshot`, which never exposes
internal buffers.  Configuration changes go through
:meth:`Simulation.configure` and are validated before anything is touched.
"""
from __future__ import annotations

import logging
import math
import warnings
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

import numpy as np

from . import vecmath
from .config_utils import build_config, merge_config, normalise_options
from .config_validator import Severity, validate_config
from .errors import ConfigurationError, QuasarDiskError
from .orbits import CentralGeometry
from .physics.companion import CompanionBody
from .physics.disk import DiskParticleSystem
from .physics.forces import ForceField
from .physics.outflow import OutflowSystem
from .physics.pairs import PairEventSystem
from .physics.photons import PhotonRingSystem
from .physics.tidal import TidalEncounter, TidalPhase
from .runtime.clock import SimulationClock
from .runtime.helpers import format_exception_short
from .runtime.history import TickHistory
from .schema import Config
from .snapshot import CompanionView, PopulationView, Snapshot, TidalBodyView, frozen_array
from .warnings import PhysicsWarning

logger = logging.getLogger(__name__)

__all__ = ["Simulation", "RESET_SCENARIOS"]

RESET_SCENARIOS = ("disk", "outflow", "tidal", "companion", "pairs", "photons")

# Returned by _guarded when a system raised
_FAULT = object()

_DISK_EXPORT = (
    "radius",
    "angle",
    "height",
    "v_radial",
    "v_tangential",
    "v_vertical",
    "mass",
    "density",
    "temperature",
    "time_in_band",
    "heat",
    "stretch",
    "captured",
    "channel",
)


class Simulation:
    """Real-time particle engine around a spinning central body.

    Parameters
    ----------
    config:
        A :class:`~quasardisk.schema.Config`, a mapping accepted by
        :meth:`configure`, or ``None`` for the defaults.
    seed:
        Seed for the random generator; falls back to ``numerics.seed``.
    record_history:
        Keep per-tick statistics in :attr:`history`.
    """

    def __init__(
        self,
        config: Union[Config, Mapping[str, Any], None] = None,
        *,
        seed: Optional[int] = None,
        record_history: bool = False,
    ) -> None:
        if config is None:
            cfg = Config()
        elif isinstance(config, Config):
            cfg = config
        else:
            cfg = build_config(normalise_options(config))
        self._cfg = cfg
        self._rng = np.random.default_rng(seed if seed is not None else cfg.numerics.seed)
        self._geometry = CentralGeometry.from_config(cfg)
        self._base_field = self._make_force_field()
        self._clock = SimulationClock.from_config(cfg.numerics, paused=cfg.paused)
        self._disk = DiskParticleSystem(cfg, self._geometry, self._rng)
        self._outflow = OutflowSystem(cfg.outflow)
        self._tidal = TidalEncounter(cfg.tidal, self._geometry, self._rng)
        self._companion = CompanionBody(cfg.companion, self._geometry, self._rng)
        self._pairs = PairEventSystem(cfg.pairs, self._geometry, self._rng)
        self._photons = PhotonRingSystem(cfg.photons, self._geometry, self._rng)
        self._history: Optional[TickHistory] = TickHistory() if record_history else None
        self._faults = 0
        self._last_a_max = 0.0
        self._tidal_phase = self._tidal.body.phase
        self._warn_inconsistencies(cfg)
        logger.info(
            "Simulation: M=%.4g spin=%.3f r_s=%.3f r_isco=%.3f disk=%d",
            self._geometry.mass,
            self._geometry.spin,
            self._geometry.r_s,
            self._geometry.r_isco,
            self._disk.size,
        )

    # ------------------------------------------------------------------
    # read-only accessors
    # ------------------------------------------------------------------
    @property
    def config(self) -> Config:
        return self._cfg

    @property
    def clock(self) -> SimulationClock:
        return self._clock

    @property
    def geometry(self) -> CentralGeometry:
        return self._geometry

    @property
    def history(self) -> Optional[TickHistory]:
        return self._history

    @property
    def faults(self) -> int:
        return self._faults

    @property
    def disk(self) -> DiskParticleSystem:
        return self._disk

    @property
    def outflow(self) -> OutflowSystem:
        return self._outflow

    @property
    def tidal(self) -> TidalEncounter:
        return self._tidal

    @property
    def companion(self) -> CompanionBody:
        return self._companion

    @property
    def pairs(self) -> PairEventSystem:
        return self._pairs

    @property
    def photons(self) -> PhotonRingSystem:
        return self._photons

    @property
    def paused(self) -> bool:
        return self._clock.paused

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    def _make_force_field(self) -> ForceField:
        numerics = self._cfg.numerics
        return ForceField(
            self._geometry.mu,
            distance_floor=numerics.distance_floor,
            softening=numerics.softening,
        )

    def _warn_inconsistencies(self, cfg: Config) -> None:
        result = validate_config(cfg)
        for message in result.of(Severity.WARNING):
            warnings.warn(str(message), PhysicsWarning, stacklevel=3)
        for message in result.of(Severity.INFO):
            logger.info("config check: %s", message)

    def configure(self, parameters: Mapping[str, Any]) -> Config:
        """Apply new options on top of the current configuration.

        Raises
        ------
        ConfigurationError
            For unknown options or invalid values.  Nothing is changed in
            that case.
        """

        cfg = merge_config(self._cfg, parameters)
        self._cfg = cfg
        self._geometry = CentralGeometry.from_config(cfg)
        self._base_field = self._make_force_field()
        self._clock.apply_config(cfg.numerics, paused=cfg.paused)
        self._disk.apply_config(cfg, self._geometry)
        self._outflow.apply_config(cfg.outflow)
        self._tidal.apply_config(cfg.tidal, self._geometry)
        self._companion.apply_config(cfg.companion, self._geometry)
        self._pairs.apply_config(cfg.pairs, self._geometry)
        self._photons.apply_config(cfg.photons, self._geometry)
        self._warn_inconsistencies(cfg)
        logger.info("Simulation.configure: applied %s", sorted(parameters))
        return cfg

    # ------------------------------------------------------------------
    # stepping
    # ------------------------------------------------------------------
    def _guarded(self, label: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except QuasarDiskError as exc:
            logger.warning("Simulation.advance: %s fault absorbed (%s)", label, format_exception_short(exc))
        except Exception as exc:  # noqa: BLE001 - per-tick faults never leave advance()
            logger.exception("Simulation.advance: unexpected %s failure (%s)", label, format_exception_short(exc))
        self._faults += 1
        if self._history is not None:
            self._history.event(self._clock.tick, self._clock.time, "fault", system=label)
        return _FAULT

    def advance(self, dt: Optional[float] = None) -> None:
        """Advance the simulation for one external frame.

        ``dt`` is the external frame interval; ``None`` means one base tick.
        ``numerics.time_scale`` sets how many ticks a frame runs.  Paused
        simulations are left untouched.
        """

        clock = self._clock
        if clock.paused:
            return
        nominal = clock.nominal_step(dt)
        for _ in range(clock.substeps()):
            self._tick(nominal)

    def _tick(self, nominal: float) -> None:
        clock = self._clock
        companion_state = self._guarded("companion.force_state", self._companion.force_state)
        if companion_state is _FAULT:
            companion_state = None
        force_field = self._base_field.with_companion(companion_state)

        a_disk = self._guarded("disk.prepare", self._disk.prepare, force_field)
        a_tidal = self._guarded("tidal.prepare", self._tidal.prepare, force_field)
        a_max = max(
            0.0 if a_disk is _FAULT else a_disk,
            0.0 if a_tidal is _FAULT else a_tidal,
        )
        self._last_a_max = a_max
        step = clock.adaptive_step(a_max, nominal)
        dt_base = clock.dt_base

        if a_disk is not _FAULT:
            result = self._guarded("disk", self._disk.advance, step, dt_base)
            if result is not _FAULT:
                self._guarded("outflow.launch", self._outflow.launch, result.launches)
        self._guarded("outflow", self._outflow.advance, step, dt_base, self._geometry.magnetic_field)
        if a_tidal is _FAULT or self._guarded("tidal", self._tidal.advance, step) is _FAULT:
            self._tidal.reset()
        self._guarded("pairs", self._pairs.advance, step)
        self._guarded("photons", self._photons.advance, step, dt_base, clock.time)
        self._guarded("companion", self._companion.advance, step)
        clock.advance(step)
        self._track_events()

        if self._history is not None:
            self._history.record(clock.tick, clock.time, step, self._statistics())

    def run(self, ticks: int, dt: Optional[float] = None) -> None:
        """Call :meth:`advance` ``ticks`` times."""

        for _ in range(int(ticks)):
            self.advance(dt)

    def _track_events(self) -> None:
        phase = self._tidal.body.phase
        if phase == self._tidal_phase:
            return
        self._tidal_phase = phase
        if self._history is not None:
            self._history.event(
                self._clock.tick,
                self._clock.time,
                f"tidal_{phase.name.lower()}",
                distance=self._tidal.body.distance,
                integrity=self._tidal.body.integrity,
            )

    # ------------------------------------------------------------------
    # reset
    # ------------------------------------------------------------------
    def reset(self, scenario: Union[str, Iterable[str]] = "all") -> None:
        """Reinitialise one or more populations.

        ``scenario`` is ``"all"``, one of :data:`RESET_SCENARIOS` or an
        iterable of them.  ``"all"`` also rewinds the clock.
        """

        names = [scenario] if isinstance(scenario, str) else list(scenario)
        unknown = [name for name in names if name != "all" and name not in RESET_SCENARIOS]
        if unknown or not names:
            raise ConfigurationError(f"unknown reset scenario(s): {unknown or names}")
        targets = set(RESET_SCENARIOS) if "all" in names else set(names)
        handlers: Dict[str, Callable[[], None]] = {
            "disk": self._disk.reset,
            "outflow": self._outflow.reset,
            "tidal": self._tidal.reset,
            "companion": self._companion.reset,
            "pairs": self._pairs.reset,
            "photons": self._photons.reset,
        }
        for name in RESET_SCENARIOS:
            if name in targets:
                handlers[name]()
        if "tidal" in targets:
            self._tidal_phase = self._tidal.body.phase
        if "all" in names:
            self._clock.reset()
            self._faults = 0
            self._last_a_max = 0.0
            if self._history is not None:
                self._history.clear()
        logger.info("Simulation.reset: %s", sorted(targets))

    # ------------------------------------------------------------------
    # snapshot
    # ------------------------------------------------------------------
    def _statistics(self) -> Dict[str, float]:
        stats: Dict[str, float] = {}
        stats.update(self._disk.statistics())
        stats.update(self._outflow.statistics())
        stats.update(self._tidal.statistics())
        stats.update(self._companion.statistics())
        stats.update(self._pairs.statistics())
        stats.update(self._photons.statistics())
        stats["particles_in_disk"] = stats["disk_particles"]
        stats["particles_in_stream"] = stats["debris_in_stream"]
        stats["average_infall_speed"] = stats["avg_infall_speed"]
        stats["peak_temperature"] = max(stats["disk_peak_temperature"], stats["debris_peak_temperature"])
        stats["a_max"] = float(self._last_a_max) if math.isfinite(self._last_a_max) else 0.0
        stats["faults"] = float(self._faults)
        return stats

    def statistics(self) -> Mapping[str, float]:
        """Aggregate statistics of the current tick."""
        return MappingProxyType(self._statistics())

    def snapshot(self) -> Snapshot:
        """Return an immutable copy of the renderable state."""

        disk = self._disk
        outflow = self._outflow.queue.export()
        debris = self._tidal.stream.queue.export()
        pairs = self._pairs.pool.export()
        wind = self._companion.wind.export(("age", "max_age", "speed"))
        photons = self._photons.queue.export()
        body = self._tidal.body
        companion = self._companion
        stats = self._statistics()
        stats["tick"] = float(self._clock.tick)
        stats["time"] = float(self._clock.time)
        stats["dt"] = float(self._clock.last_dt)

        tidal_view = TidalBodyView(
            enabled=self._tidal.enabled,
            phase=TidalPhase(body.phase),
            position=frozen_array(body.position),
            velocity=frozen_array(body.velocity),
            mass=float(body.mass),
            remnant_mass=float(body.remnant_mass),
            integrity=float(body.integrity),
            tidal_radius=float(body.tidal_radius),
            stretch_axis=frozen_array(vecmath.normalize(body.position)),
            stretch_radial=float(body.stretch_radial),
            stretch_transverse=float(body.stretch_transverse),
            disruption_radius=body.disruption_radius,
        )
        companion_view = CompanionView(
            enabled=bool(companion.enabled),
            position=frozen_array(companion.position),
            velocity=frozen_array(companion.velocity),
            mass=float(companion.mass),
            radius=float(companion.radius),
            temperature=float(companion.temperature),
            orbital_radius=float(companion.orbital_radius),
            orbital_angle=float(companion.angle),
            orbital_velocity=float(companion.orbital_velocity),
            influence_radius=float(companion.influence_radius),
            wind_velocity=float(companion.wind_velocity),
            wind_density=float(companion.wind_density),
        )
        return Snapshot(
            tick=self._clock.tick,
            time=self._clock.time,
            dt=self._clock.last_dt,
            paused=self._clock.paused,
            disk=PopulationView.build("disk", disk.positions(), disk.pool.export(_DISK_EXPORT)),
            outflow=PopulationView.build("outflow", outflow.pop("position"), outflow),
            debris=PopulationView.build("debris", debris.pop("position"), debris),
            wind=PopulationView.build("wind", companion.wind_positions(), wind),
            pairs=PopulationView.build("pairs", pairs.pop("position"), pairs),
            photons=PopulationView.build("photons", self._photons.positions(), photons),
            tidal_body=tidal_view,
            companion=companion_view,
            statistics=MappingProxyType(stats),
        )
