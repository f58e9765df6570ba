# tests/conftest.py
import pytest

from qcsim.backends import BackendRegistry, register_default_backends
from qcsim.noise import NoiseModel
from qcsim.system import QuantumSystem


@pytest.fixture
def system():
    with QuantumSystem(NoiseModel.disabled(), workers=4) as qs:
        yield qs


@pytest.fixture
def sv_backend(system):
    return system.find_backend("Statevector Simulator")


@pytest.fixture
def backends():
    """Stock backends by name, without a running system."""
    reg = BackendRegistry()
    register_default_backends(reg)
    return {b.name: b for b in reg.list()}
