"""Runtime helpers used by the engine and the batch driver."""

from .clock import SimulationClock, adaptive_step
from .helpers import format_exception_short, log_stage
from .history import ColumnarBuffer, TickHistory
from .progress import ProgressReporter

__all__ = [
    "SimulationClock",
    "adaptive_step",
    "ColumnarBuffer",
    "TickHistory",
    "ProgressReporter",
    "format_exception_short",
    "log_stage",
]
