"""Pytest fixtures for the quasardisk unit tests."""
import numpy as np
import pytest

from quasardisk import constants
from quasardisk.orbits import CentralGeometry


@pytest.fixture
def geometry() -> CentralGeometry:
    return CentralGeometry.from_parameters(constants.M_REF, constants.SPIN_DEFAULT)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)
