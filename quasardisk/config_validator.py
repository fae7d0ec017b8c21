"""Physical consistency checks for engine configurations.

Schema validation in :mod:`quasardisk.schema` rejects values that are
illegal on their own.  The checks here look at combinations of otherwise
legal values that are likely to produce surprising behaviour.

Usage:
    python -m quasardisk.config_validator configs/default.yml
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from . import orbits
from .orbits import CentralGeometry

if TYPE_CHECKING:
    from .schema import Config


class Severity(Enum):
    """Importance of a validation message."""
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


@dataclass
class ValidationMessage:
    severity: Severity
    code: str
    message: str
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        s = f"[{self.severity.value}] {self.code}: {self.message}"
        if self.suggestion:
            s += f"\n  -> suggestion: {self.suggestion}"
        return s


@dataclass
class ValidationResult:
    """Collected validation messages."""
    messages: List[ValidationMessage] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(m.severity == Severity.ERROR for m in self.messages)

    @property
    def has_warnings(self) -> bool:
        return any(m.severity == Severity.WARNING for m in self.messages)

    def of(self, severity: Severity) -> List[ValidationMessage]:
        return [m for m in self.messages if m.severity == severity]

    def summary(self) -> str:
        errors = len(self.of(Severity.ERROR))
        warns = len(self.of(Severity.WARNING))
        infos = len(self.of(Severity.INFO))
        return f"validation: {errors} errors, {warns} warnings, {infos} info"

    def print_all(self) -> None:
        print(self.summary())
        print("-" * 50)
        for msg in self.messages:
            print(msg)
            print()


def validate_config(config: "Config") -> ValidationResult:
    """Run every consistency check on ``config``."""
    geometry = CentralGeometry.from_config(config)
    messages: List[ValidationMessage] = []
    messages.extend(_check_disk_geometry(config, geometry))
    messages.extend(_check_companion(config, geometry))
    messages.extend(_check_tidal(config, geometry))
    messages.extend(_check_time_step(config, geometry))
    return ValidationResult(messages=messages)


def _check_disk_geometry(config: "Config", geometry: CentralGeometry) -> List[ValidationMessage]:
    disk = config.disk
    messages: List[ValidationMessage] = []
    floor = geometry.r_isco + disk.isco_margin
    if disk.r_in < floor:
        messages.append(
            ValidationMessage(
                Severity.INFO,
                "DISK_INNER_EDGE",
                f"disk.r_in={disk.r_in:.3g} lies inside the ISCO band; seeds start at {floor:.3g}",
            )
        )
    if disk.r_out <= floor:
        messages.append(
            ValidationMessage(
                Severity.WARNING,
                "DISK_INSIDE_ISCO",
                f"disk.r_out={disk.r_out:.3g} does not clear the ISCO band (r_isco + margin = {floor:.3g})",
                "increase disk.r_out or lower central.mass",
            )
        )
    return messages


def _check_companion(config: "Config", geometry: CentralGeometry) -> List[ValidationMessage]:
    comp = config.companion
    messages: List[ValidationMessage] = []
    if not comp.enabled:
        return messages
    periapsis = comp.orbital_radius * (1.0 - comp.eccentricity)
    if periapsis - comp.radius < config.disk.r_out:
        messages.append(
            ValidationMessage(
                Severity.WARNING,
                "COMPANION_IN_DISK",
                f"companion periapsis {periapsis:.3g} (radius {comp.radius:.3g}) overlaps the disk out to {config.disk.r_out:.3g}",
                "increase companion.orbital_radius",
            )
        )
    hill = orbits.hill_radius(comp.orbital_radius, comp.mass, geometry.mass, comp.hill_mass_scale)
    if hill > comp.orbital_radius:
        messages.append(
            ValidationMessage(
                Severity.WARNING,
                "COMPANION_HILL",
                f"influence radius {hill:.3g} exceeds the orbital radius {comp.orbital_radius:.3g}",
                "lower companion.hill_mass_scale or companion.mass",
            )
        )
    return messages


def _check_tidal(config: "Config", geometry: CentralGeometry) -> List[ValidationMessage]:
    tidal = config.tidal
    messages: List[ValidationMessage] = []
    if not tidal.enabled:
        return messages
    r_t = orbits.tidal_radius(geometry.r_s, geometry.mass, tidal.body_mass, tidal.tidal_radius_cap)
    if tidal.start_radius <= r_t:
        messages.append(
            ValidationMessage(
                Severity.WARNING,
                "TIDAL_START_INSIDE",
                f"tidal.start_radius={tidal.start_radius:.3g} is inside the tidal radius {r_t:.3g}",
            )
        )
    if r_t <= geometry.capture_radius:
        messages.append(
            ValidationMessage(
                Severity.WARNING,
                "TIDAL_RADIUS_SMALL",
                f"tidal radius {r_t:.3g} is inside the capture boundary {geometry.capture_radius:.3g}; "
                "the body will be swallowed whole",
            )
        )
    return messages


def _check_time_step(config: "Config", geometry: CentralGeometry) -> List[ValidationMessage]:
    numerics = config.numerics
    messages: List[ValidationMessage] = []
    drift = config.disk.drift_coefficient * config.disk.accretion_rate * config.disk.viscosity
    a_drift = drift / max(geometry.r_isco, numerics.distance_floor) / 0.7
    if a_drift >= numerics.accel_noise_floor:
        limited = numerics.courant_factor * (numerics.characteristic_length / a_drift) ** 0.5
        if limited < numerics.dt_base:
            messages.append(
                ValidationMessage(
                    Severity.INFO,
                    "DT_LIMITED",
                    f"disk drift alone limits the step to ~{limited:.3g} s (dt_base={numerics.dt_base:.3g})",
                )
            )
    return messages


def main(argv: Optional[List[str]] = None) -> int:
    from .config_utils import load_config

    parser = argparse.ArgumentParser(description="Check a quasardisk configuration for consistency")
    parser.add_argument("config", type=Path, help="YAML configuration file")
    parser.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    args = parser.parse_args(argv)
    result = validate_config(load_config(args.config))
    result.print_all()
    if result.has_errors or (args.strict and result.has_warnings):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
