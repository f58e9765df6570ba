# tests/test_algorithms.py
import math

import numpy as np
import pytest

from qcsim.algorithms import (
    apply_qft,
    build_grover,
    build_qft,
    grover_iterations,
    grover_qubits,
    run_grover,
)
from qcsim.engine import run_unitary
from qcsim.errors import InvalidArgument
from qcsim.jobs import JobState
from qcsim.state import QuantumState


@pytest.mark.parametrize("size,qubits,iterations", [(2, 1, 1), (4, 2, 1), (5, 3, 1), (8, 3, 2), (16, 4, 3), (64, 6, 6)])
def test_grover_sizes(size, qubits, iterations):
    assert grover_qubits(size) == qubits
    assert grover_iterations(size) == iterations


@pytest.mark.parametrize("size,target", [(1, 0), (0, 0), (4, 4), (4, -1)])
def test_grover_rejects_bad_input(system, size, target):
    with pytest.raises(InvalidArgument):
        build_grover(system, size, target)


@pytest.mark.parametrize("target", range(4))
def test_grover_two_qubits_finds_target(system, target):
    run = run_grover(system, 4, target, shots=1000, seed=target)
    assert run.iterations == 1
    assert system.wait(run.job_id, timeout=30).state == JobState.COMPLETED
    counts = system.get_job_results(run.job_id)
    assert int(np.argmax(counts)) == target
    # One iteration is exact for N = 4
    assert counts[target] == 1000


@pytest.mark.parametrize("size,target", [(8, 5), (16, 9), (32, 17)])
def test_grover_larger_spaces_plurality(system, size, target):
    run = run_grover(system, size, target, shots=1000, seed=1)
    system.wait(run.job_id, timeout=60)
    counts = system.get_job_results(run.job_id)
    assert int(np.argmax(counts)) == target
    assert counts[target] > 700


def test_grover_circuit_shape(system):
    c = system.circuit(build_grover(system, 8, 3))
    assert c.name == "Grover_Search_3"
    assert c.qubit_count == c.classical_bits == 3
    assert c.gate_counts()["MCZ"] == 2 * grover_iterations(8)
    assert len(c.measurements) == 3


def _qft_state(system, n: int, x: int) -> np.ndarray:
    c = system.circuit(build_qft(system, n, x))
    return run_unitary(QuantumState(n), c.gates).amplitudes


@pytest.mark.parametrize("n", [1, 2, 3, 4])
def test_qft_matches_inverse_dft(system, n):
    dim = 1 << n
    for x in range(dim):
        e_x = np.zeros(dim)
        e_x[x] = 1
        expected = np.fft.ifft(e_x) * math.sqrt(dim)
        assert np.allclose(_qft_state(system, n, x), expected, atol=1e-9)


def test_qft_two_qubits_by_hand(system):
    assert np.allclose(_qft_state(system, 2, 1), np.array([1, 1j, -1, -1j]) / 2)


def test_qft_on_statevector_backend(system, sv_backend):
    circuit_id = build_qft(system, 3, 5)
    job = system.submit_job(circuit_id, sv_backend.id, 1)
    system.wait(job, timeout=30)
    state = system.get_final_state(job)
    assert np.allclose(np.abs(state.amplitudes) ** 2, 1 / 8)


def test_apply_qft_validation(system):
    c = system.create_circuit("q", 2, 2)
    with pytest.raises(InvalidArgument):
        apply_qft(system, c, [0, 0])
    with pytest.raises(InvalidArgument):
        apply_qft(system, c, [0, 1, 2])
    with pytest.raises(InvalidArgument):
        build_qft(system, 2, 4)


def test_qft_gate_structure(system):
    c = system.create_circuit("q", 4, 4)
    apply_qft(system, c, [3, 2, 1, 0])
    counts = system.circuit(c).gate_counts()
    assert counts == {"H": 4, "CPHASE": 6, "SWAP": 2}
    first = [g for g in system.circuit(c).gates if g.kind == "CPHASE"][0]
    assert first.params == (math.pi / 2,)
