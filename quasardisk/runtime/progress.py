"""Terminal progress bar for headless runs."""

from __future__ import annotations

import sys
import time
from typing import Mapping, Optional


class ProgressReporter:
    """Single-line progress bar showing tick, simulated time and run counters.

    The ETA is the mean wall time per tick so far times the ticks left.
    Output is redrawn in place on a TTY and written as plain lines (one per
    percent) otherwise.
    """

    bar_width = 28

    def __init__(self, total_ticks: int, *, enabled: bool = False) -> None:
        self.enabled = bool(enabled and total_ticks > 0)
        self.total_ticks = max(int(total_ticks), 1)
        self._started = time.monotonic()
        self._isatty = sys.stdout.isatty()
        self._last_step = -1
        self._done = False

    def _eta(self, ticks_done: int) -> str:
        if ticks_done < 3:
            return "ETA ?"
        per_tick = (time.monotonic() - self._started) / ticks_done
        remaining = per_tick * (self.total_ticks - ticks_done)
        return f"ETA {remaining / 60.0:.1f}m" if remaining >= 60.0 else f"ETA {remaining:.0f}s"

    def update(
        self,
        tick_no: int,
        sim_time_s: float,
        counters: Optional[Mapping[str, float]] = None,
        *,
        force: bool = False,
    ) -> None:
        if not self.enabled or self._done:
            return
        ticks_done = min(tick_no + 1, self.total_ticks)
        frac = ticks_done / self.total_ticks
        # redraw every 0.1% on a TTY, every 1% on pipes
        step = int(frac * (1000 if self._isatty else 100))
        last = ticks_done >= self.total_ticks
        if step == self._last_step and not (force or last):
            return
        self._last_step = step
        filled = int(self.bar_width * frac)
        bar = "#" * filled + "-" * (self.bar_width - filled)
        extra = ""
        if counters:
            extra = " " + " ".join(f"{key}={value:.0f}" for key, value in counters.items())
        line = f"[{bar}] {frac * 100:5.1f}% tick {ticks_done}/{self.total_ticks} t={sim_time_s:.3g} s{extra} {self._eta(ticks_done)}"
        if self._isatty:
            sys.stdout.write(f"\r\033[2K{line}" + ("\n" if last else ""))
        else:
            sys.stdout.write(line + "\n")
        sys.stdout.flush()
        self._done = last

    def finish(self, tick_no: int, sim_time_s: float, counters: Optional[Mapping[str, float]] = None) -> None:
        if self.enabled:
            self.update(tick_no, sim_time_s, counters, force=True)
