from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quasardisk import Simulation  # noqa: E402
from quasardisk.config_utils import _merge  # noqa: E402

SMALL_CONFIG: Dict[str, Any] = {
    "disk": {"particle_count": 300},
    "outflow": {"capacity": 100},
    "companion": {"wind_particle_count": 100},
    "tidal": {"debris_capacity": 500},
    "pairs": {"particle_count": 100},
    "photons": {"capacity": 20},
}


def small_config(**sections: Dict[str, Any]) -> Dict[str, Any]:
    """Return the small test configuration with ``sections`` merged on top."""

    payload = {key: dict(value) for key, value in SMALL_CONFIG.items()}
    return _merge(payload, sections)


@pytest.fixture
def make_sim() -> Callable[..., Simulation]:
    """Factory for seeded simulations built from :func:`small_config`."""

    def _factory(seed: int = 7, record_history: bool = False, **sections: Dict[str, Any]) -> Simulation:
        return Simulation(small_config(**sections), seed=seed, record_history=record_history)

    return _factory
