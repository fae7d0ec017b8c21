"""Helper utilities for normalising configuration inputs."""
from __future__ import annotations

import copy
import logging
import warnings
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import ValidationError
from ruamel.yaml import YAML

from .errors import ConfigurationError
from .schema import Config

logger = logging.getLogger(__name__)

# Flat option names accepted by ``Simulation.configure`` and their paths.
FLAT_OPTION_PATHS: Dict[str, str] = {
    "centralMass": "central.mass",
    "spinParameter": "central.spin",
    "magneticFieldStrength": "central.magnetic_field",
    "accretionRate": "disk.accretion_rate",
    "viscosity": "disk.viscosity",
    "jetLaunchRate": "disk.jet_launch_rate",
    "diskRotationSpeed": "disk.rotation_speed",
    "diskTemperature": "disk.temperature_scale",
    "frameDragging": "disk.frame_dragging",
    "tidalForce": "disk.tidal_stretch",
    "companionEnabled": "companion.enabled",
    "companionMass": "companion.mass",
    "companionRadius": "companion.radius",
    "companionTemperature": "companion.temperature",
    "companionOrbitalRadius": "companion.orbital_radius",
    "companionDistance": "companion.orbital_radius",
    "orbitalSpeedMultiplier": "companion.speed_multiplier",
    "gravitationalStrength": "companion.gravitational_strength",
    "windVelocity": "companion.wind_velocity",
    "windDensity": "companion.wind_density",
    "tidalEncounterEnabled": "tidal.enabled",
    "pairEventIntensity": "pairs.intensity",
    "hawkingRadiationIntensity": "pairs.intensity",
    "timeScale": "numerics.time_scale",
    "paused": "paused",
}

FLAT_OPTION_PATHS.update(
    {
        "central_mass": "central.mass",
        "spin": "central.spin",
        "spin_parameter": "central.spin",
        "magnetic_field_strength": "central.magnetic_field",
        "accretion_rate": "disk.accretion_rate",
        "jet_launch_rate": "disk.jet_launch_rate",
        "companion_mass": "companion.mass",
        "companion_temperature": "companion.temperature",
        "companion_orbital_radius": "companion.orbital_radius",
        "wind_velocity": "companion.wind_velocity",
        "wind_density": "companion.wind_density",
        "tidal_encounter_enabled": "tidal.enabled",
        "pair_event_intensity": "pairs.intensity",
        "time_scale": "numerics.time_scale",
    }
)

SECTION_NAMES = frozenset(name for name in Config.model_fields if name != "paused")


def parse_override_value(raw: str) -> Any:
    """Parse a CLI override value into a Python object."""

    text = raw.strip()
    lower = text.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"none", "null"}:
        return None
    if lower in {"nan"}:
        return float("nan")
    if lower in {"inf", "+inf", "+infinity", "infinity"}:
        return float("inf")
    if lower in {"-inf", "-infinity"}:
        return float("-inf")
    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError:
            pass
    if (text.startswith('"') and text.endswith('"')) or (text.startswith("'") and text.endswith("'")):
        return text[1:-1]
    return text


def _set_path(payload: Dict[str, Any], path: str, value: Any, *, origin: str) -> None:
    parts = [segment for segment in path.split(".") if segment]
    if not parts:
        raise ConfigurationError(f"Invalid option '{origin}'; empty path")
    target: Any = payload
    for segment in parts[:-1]:
        if not isinstance(target, dict):
            raise ConfigurationError(f"Cannot traverse into non-mapping for option '{origin}' at '{segment}'")
        if segment not in target or target[segment] is None:
            target[segment] = {}
        target = target[segment]
    if not isinstance(target, dict):
        raise ConfigurationError(f"Cannot set option '{origin}'; target is not a mapping")
    target[parts[-1]] = value


def _merge(base: Dict[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply ``path=value`` overrides to a configuration dictionary.

    ``path`` is either a dotted path (``companion.mass``) or one of the flat
    option names in :data:`FLAT_OPTION_PATHS`.
    """

    if not overrides:
        return payload
    for item in overrides:
        key, sep, value_str = item.partition("=")
        if not sep:
            raise ConfigurationError(f"Invalid override '{item}'; expected path=value")
        path = key.strip()
        if not path:
            raise ConfigurationError(f"Invalid override '{item}'; empty path")
        path = FLAT_OPTION_PATHS.get(path, path)
        _set_path(payload, path, parse_override_value(value_str), origin=item)
    return payload


def normalise_options(parameters: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate flat, dotted and nested options into a nested payload.

    Raises
    ------
    ConfigurationError
        If a key is neither a known flat option, a dotted path nor a
        configuration section.
    """

    if not isinstance(parameters, Mapping):
        raise ConfigurationError(f"configuration must be a mapping, got {type(parameters).__name__}")
    nested: Dict[str, Any] = {}
    for key, value in parameters.items():
        if not isinstance(key, str):
            raise ConfigurationError(f"configuration keys must be strings, got {key!r}")
        if key in FLAT_OPTION_PATHS:
            _set_path(nested, FLAT_OPTION_PATHS[key], value, origin=key)
        elif "." in key:
            if key.split(".", 1)[0] not in SECTION_NAMES:
                raise ConfigurationError(f"Unrecognized configuration option '{key}'")
            _set_path(nested, key, value, origin=key)
        elif key in SECTION_NAMES:
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"configuration section '{key}' must be a mapping")
            existing = nested.setdefault(key, {})
            _merge(existing, value)
        else:
            raise ConfigurationError(f"Unrecognized configuration option '{key}'")
    return nested


def build_config(payload: Mapping[str, Any]) -> Config:
    """Validate ``payload`` into :class:`Config`, raising :class:`ConfigurationError`."""

    try:
        return Config.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def merge_config(current: Config, parameters: Mapping[str, Any]) -> Config:
    """Return a new config with ``parameters`` applied on top of ``current``."""

    payload = current.model_dump()
    _merge(payload, normalise_options(parameters))
    return build_config(payload)


def load_config(path: Path, overrides: Optional[Sequence[str]] = None) -> Config:
    """Load a YAML configuration file into a :class:`Config` instance."""

    yaml = YAML(typ="safe")
    with Path(path).open("r", encoding="utf-8") as fh:
        data = yaml.load(fh) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top-level YAML node must be a mapping")
    data = normalise_options(data)
    if overrides:
        data = apply_overrides_dict(data, overrides)
    cfg = build_config(data)
    logger.info("load_config: loaded %s", path)
    return cfg


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Configure root logging and optionally silence Python warnings."""

    logging.basicConfig(level=level)
    root = logging.getLogger()
    root.setLevel(level)
    if suppress_warnings:
        warnings.filterwarnings("ignore")
    logging.captureWarnings(True)


__all__ = [
    "FLAT_OPTION_PATHS",
    "parse_override_value",
    "apply_overrides_dict",
    "normalise_options",
    "build_config",
    "merge_config",
    "load_config",
    "configure_logging",
]
