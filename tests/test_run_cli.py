from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pyarrow.parquet as pq
from pandas.testing import assert_frame_equal

from quasardisk import run
from quasardisk.config_utils import build_config, load_config
from quasardisk.config_validator import validate_config

OVERRIDES = [
    "disk.particle_count=200",
    "pairs.particle_count=50",
    "companion.wind_particle_count=50",
    "tidal.debris_capacity=200",
]


def test_cli_writes_outputs(tmp_path: Path):
    outdir = tmp_path / "out"
    run.main(
        [
            "--ticks",
            "20",
            "--outdir",
            str(outdir),
            "--seed",
            "1",
            "--quiet",
            "--override",
            *OVERRIDES,
        ]
    )
    table = pq.read_table(outdir / "series" / "run.parquet")
    assert table.num_rows == 20
    assert "capture_count" in table.column_names
    units = json.loads(table.schema.metadata[b"units"])
    assert units["time"] == "s"

    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["ticks"] == 20
    assert summary["seed"] == 1
    assert summary["config"]["disk"]["particle_count"] == 200
    assert (outdir / "events.csv").exists()


def test_cli_reads_yaml_config(tmp_path: Path):
    cfg_path = tmp_path / "cfg.yml"
    cfg_path.write_text(
        "disk:\n  particle_count: 100\ntidal:\n  enabled: false\n",
        encoding="utf-8",
    )
    outdir = tmp_path / "yaml"
    run.main(["--config", str(cfg_path), "--ticks", "5", "--outdir", str(outdir), "--quiet"])
    summary = json.loads((outdir / "summary.json").read_text())
    assert summary["ticks"] == 5
    assert summary["config"]["tidal"]["enabled"] is False
    assert summary["tidal_final_phase"] == "APPROACHING"


def test_run_headless_is_reproducible(tmp_path: Path):
    cfg = build_config(
        {
            "disk": {"particle_count": 200},
            "pairs": {"particle_count": 50},
            "companion": {"wind_particle_count": 50},
            "tidal": {"debris_capacity": 200},
        }
    )
    first = run.run_headless(cfg, 15, tmp_path / "a", seed=11)
    second = run.run_headless(cfg, 15, tmp_path / "b", seed=11)
    df_a = pd.read_parquet(tmp_path / "a" / "series" / "run.parquet")
    df_b = pd.read_parquet(tmp_path / "b" / "series" / "run.parquet")
    assert_frame_equal(df_a, df_b)
    assert first["statistics"] == second["statistics"]


def test_bundled_configs_load():
    root = Path(__file__).resolve().parents[1] / "configs"
    default = load_config(root / "default.yml")
    assert default.central.spin == 0.7
    assert default.companion.orbital_radius == 250.0
    assert not validate_config(default).has_warnings

    tde = load_config(root / "tde_only.yml")
    assert tde.companion.enabled is False
    assert tde.tidal.debris_capacity == 8000


def test_cli_progress_bar(tmp_path: Path, capsys):
    run.main(["--ticks", "5", "--outdir", str(tmp_path), "--quiet", "--progress", "--override", *OVERRIDES])
    out = capsys.readouterr().out
    assert "tick 5/5" in out
    assert "captures=" in out
