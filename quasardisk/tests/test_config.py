from pathlib import Path

import pytest

from quasardisk import constants
from quasardisk.config_utils import (
    apply_overrides_dict,
    build_config,
    load_config,
    merge_config,
    normalise_options,
    parse_override_value,
)
from quasardisk.config_validator import Severity, validate_config
from quasardisk.errors import ConfigurationError
from quasardisk.schema import Config


def test_defaults_validate():
    cfg = Config()
    assert cfg.central.mass == constants.M_REF
    assert cfg.numerics.dt_base == pytest.approx(0.016)
    assert not cfg.paused


@pytest.mark.parametrize(
    "payload",
    [
        {"central": {"mass": -1.0}},
        {"central": {"mass": float("inf")}},
        {"central": {"spin": 1.5}},
        {"disk": {"r_in": 50.0, "r_out": 40.0}},
        {"numerics": {"dt_min": 0.1, "dt_base": 0.016}},
        {"companion": {"eccentricity": 0.99}},
        {"disk": {"bogus": 1}},
    ],
)
def test_invalid_payloads_raise_configuration_error(payload):
    with pytest.raises(ConfigurationError):
        build_config(payload)


def test_flat_options_map_to_sections():
    nested = normalise_options({"centralMass": 1.0e10, "windVelocity": 1500.0, "paused": True})
    assert nested == {"central": {"mass": 1.0e10}, "companion": {"wind_velocity": 1500.0}, "paused": True}
    assert normalise_options({"pair_event_intensity": 0.2}) == {"pairs": {"intensity": 0.2}}


@pytest.mark.parametrize("options", [{"warpDrive": 1}, {"nonsense.value": 2}, {"disk": 3}])
def test_unknown_options_rejected(options):
    with pytest.raises(ConfigurationError):
        normalise_options(options)


def test_merge_keeps_unrelated_fields():
    base = Config()
    cfg = merge_config(base, {"companionMass": 80.0, "disk.viscosity": 2.0})
    assert cfg.companion.mass == 80.0
    assert cfg.companion.radius == base.companion.radius
    assert cfg.disk.viscosity == 2.0
    assert base.companion.mass == 40.0


def test_merge_rejects_and_leaves_input_untouched():
    base = Config()
    with pytest.raises(ConfigurationError):
        merge_config(base, {"centralMass": -1})
    assert base.central.mass == constants.M_REF


def test_override_parsing():
    payload = apply_overrides_dict({}, ["companion.enabled=false", "centralMass=3.3e10", "numerics.seed=7"])
    assert payload == {"companion": {"enabled": False}, "central": {"mass": 3.3e10}, "numerics": {"seed": 7}}
    assert parse_override_value("null") is None
    assert parse_override_value("'abc'") == "abc"
    with pytest.raises(ConfigurationError):
        apply_overrides_dict({}, ["missing_equals"])


def test_load_config_yaml(tmp_path: Path):
    path = tmp_path / "cfg.yml"
    path.write_text(
        "spinParameter: 0.5\n"
        "companion:\n"
        "  enabled: false\n"
        "disk:\n"
        "  particle_count: 64\n",
        encoding="utf-8",
    )
    cfg = load_config(path, overrides=["numerics.seed=7"])
    assert cfg.central.spin == 0.5
    assert cfg.companion.enabled is False
    assert cfg.disk.particle_count == 64
    assert cfg.numerics.seed == 7


def test_load_config_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "bad.yml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_validator_default_is_clean():
    result = validate_config(Config())
    assert not result.has_errors
    assert not result.has_warnings


def test_validator_flags_companion_inside_disk():
    result = validate_config(build_config({"companion": {"orbital_radius": 60.0}}))
    codes = {m.code for m in result.of(Severity.WARNING)}
    assert "COMPANION_IN_DISK" in codes


def test_validator_flags_tidal_start_inside_radius():
    result = validate_config(build_config({"tidal": {"start_radius": 50.0}}))
    assert "TIDAL_START_INSIDE" in {m.code for m in result.messages}
    assert "warnings" in result.summary()
