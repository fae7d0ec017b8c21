"""Headless batch driver for the quasar disk engine.

Runs a configuration for a fixed number of ticks and writes::

    <outdir>/series/run.parquet   per-tick statistics
    <outdir>/events.csv           tidal phase changes and absorbed faults
    <outdir>/summary.json         final statistics and run metadata

Usage:
    python -m quasardisk.run --config configs/default.yml --ticks 2000 --outdir out
"""
from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config_utils import apply_overrides_dict, build_config, configure_logging, load_config
from .engine import Simulation
from .io import writer
from .physics import scan
from .runtime.helpers import log_stage
from .runtime.progress import ProgressReporter
from .schema import Config

logger = logging.getLogger(__name__)

DEFAULT_TICKS = 1000


def _progress_counters(sim: Simulation) -> Dict[str, float]:
    return {
        "captures": float(sim.disk.captures_total),
        "outflow": float(sim.outflow.count),
        "debris": float(sim.tidal.stream.count),
    }


def run_headless(
    cfg: Config,
    ticks: int,
    outdir: Path,
    *,
    seed: Optional[int] = None,
    frame_dt: Optional[float] = None,
    progress: bool = False,
) -> Dict[str, Any]:
    """Advance a fresh engine ``ticks`` times and write its outputs.

    Returns the summary dictionary that was written to ``summary.json``.
    """

    outdir = Path(outdir)
    sim = Simulation(cfg, seed=seed, record_history=True)
    reporter = ProgressReporter(ticks, enabled=progress)
    log_stage(logger, "run_start", extra={"ticks": ticks, "outdir": str(outdir)})
    wall_start = time.perf_counter()
    for tick_no in range(ticks):
        sim.advance(frame_dt)
        if reporter.enabled:
            reporter.update(tick_no, sim.clock.time, _progress_counters(sim))
    if reporter.enabled:
        reporter.finish(max(ticks - 1, 0), sim.clock.time, _progress_counters(sim))
    wall_time = time.perf_counter() - wall_start

    history = sim.history
    assert history is not None
    series = history.records.to_table().to_pandas()
    writer.write_parquet(series, outdir / "series" / "run.parquet")
    writer.write_events(history.events, outdir / "events.csv")

    stats = dict(sim.statistics())
    body = sim.tidal.body
    summary: Dict[str, Any] = {
        "ticks": sim.clock.tick,
        "time": sim.clock.time,
        "seed": seed if seed is not None else cfg.numerics.seed,
        "wall_time_s": wall_time,
        "faults": sim.faults,
        "events": len(history.events),
        "tidal_final_phase": body.phase.name,
        "tidal_disruption_time": body.disruption_time,
        "tidal_disruption_radius": body.disruption_radius,
        "tidal_capture_time": body.capture_time,
        "r_s": sim.geometry.r_s,
        "r_isco": sim.geometry.r_isco,
        "r_photon": sim.geometry.r_photon,
        "numba": scan.status(),
        "statistics": stats,
        "config": cfg.model_dump(mode="json"),
    }
    writer.write_summary(summary, outdir / "summary.json")
    log_stage(
        logger,
        "run_done",
        extra={"ticks": sim.clock.tick, "captures": stats["capture_count"], "faults": sim.faults},
    )
    return summary


def main(argv: Optional[List[str]] = None) -> None:
    """Command line entry point."""

    parser = argparse.ArgumentParser(description="Run the quasar disk engine headless")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration (defaults when omitted)")
    parser.add_argument("--ticks", type=int, default=DEFAULT_TICKS, help="Number of ticks to advance")
    parser.add_argument("--outdir", type=Path, default=Path("out"), help="Output directory")
    parser.add_argument("--seed", type=int, help="Random seed (overrides numerics.seed)")
    parser.add_argument("--frame-dt", type=float, help="External frame interval passed to every advance")
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a console progress bar with ETA.",
    )
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Suppress INFO logs and Python warnings.",
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help=(
            "Apply configuration overrides using dotted paths or option names; e.g. "
            "--override companion.enabled=false centralMass=3.3e10"
        ),
    )
    args = parser.parse_args(argv)

    override_list: List[str] = []
    if args.override:
        for group in args.override:
            override_list.extend(group)
    configure_logging(logging.WARNING if args.quiet else logging.INFO, suppress_warnings=args.quiet)
    if args.config is not None:
        cfg = load_config(args.config, overrides=override_list)
    else:
        cfg = build_config(apply_overrides_dict({}, override_list))
    run_headless(
        cfg,
        max(int(args.ticks), 0),
        args.outdir,
        seed=args.seed,
        frame_dt=args.frame_dt,
        progress=args.progress,
    )


__all__ = ["run_headless", "main", "DEFAULT_TICKS"]


if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    main()
