# tests/test_backends.py
import pytest

from qcsim.backends import BackendKind, BackendRegistry, Capabilities, register_default_backends
from qcsim.errors import InvalidArgument, NotFound


def test_default_backends():
    reg = BackendRegistry()
    handles = register_default_backends(reg)
    assert len(handles) == len(reg) == 4
    names = {b.name for b in reg.list()}
    assert names == {"Statevector Simulator", "Shot Simulator", "GPU Simulator", "Stabilizer Simulator"}
    shot = reg.find("Shot Simulator")
    assert shot.kind == BackendKind.SHOT_SAMPLING
    assert shot.max_qubits == 20 and shot.max_shots == 100_000
    assert not shot.capabilities.error_correction
    assert not shot.records_state
    assert reg.find("Statevector Simulator").records_state
    assert not reg.find("GPU Simulator").records_state


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(name="", kind="statevector", max_qubits=4, max_shots=10),
        dict(name="x", kind="quantum_annealer", max_qubits=4, max_shots=10),
        dict(name="x", kind="statevector", max_qubits=0, max_shots=10),
        dict(name="x", kind="statevector", max_qubits=4, max_shots=0),
        dict(name="x", kind="statevector", max_qubits=4, max_shots=10, gate_fidelity=1.2),
        dict(name="x", kind="statevector", max_qubits=4, max_shots=10, readout_fidelity=-0.1),
    ],
)
def test_invalid_registration(kwargs):
    reg = BackendRegistry()
    name = kwargs.pop("name")
    kind = kwargs.pop("kind")
    with pytest.raises(InvalidArgument):
        reg.register(name, kind, **kwargs)
    assert len(reg) == 0


def test_duplicate_name_rejected():
    reg = BackendRegistry()
    reg.register("dup", BackendKind.STATEVECTOR, max_qubits=2, max_shots=10)
    with pytest.raises(InvalidArgument):
        reg.register("dup", BackendKind.GPU, max_qubits=2, max_shots=10)


def test_handle_goes_stale_after_unregister():
    reg = BackendRegistry()
    h = reg.register("b", "shot_sampling", max_qubits=2, max_shots=10, capabilities=Capabilities(noise_model=False))
    assert reg.resolve(h).id == h
    reg.unregister(h)
    with pytest.raises(NotFound):
        reg.resolve(h)
    with pytest.raises(NotFound):
        reg.find("b")


def test_set_available_replaces_view():
    reg = BackendRegistry()
    h = reg.register("b", BackendKind.STATEVECTOR, max_qubits=2, max_shots=10)
    before = reg.resolve(h)
    after = reg.set_available(h, False)
    assert before.available and not after.available
    assert not reg.resolve(h).available


@pytest.mark.parametrize("kind", list(BackendKind))
def test_executable_kinds(kind):
    reg = BackendRegistry()
    b = reg.resolve(reg.register("b", kind, max_qubits=2, max_shots=10))
    assert b.executable is (kind not in (BackendKind.DENSITY_MATRIX, BackendKind.HARDWARE_STUB))
