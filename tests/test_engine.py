# tests/test_engine.py
import gc
import itertools
import math
import tracemalloc

import numpy as np
import pytest

from qcsim.circuit import Circuit
from qcsim.engine import apply_gate, apply_matrix, run_unitary
from qcsim.errors import InvalidArgument
from qcsim.gates import make_gate
from qcsim.qiskit_backend import reference_statevector
from qcsim.state import QuantumState


def _basis(n: int, index: int) -> QuantumState:
    vec = np.zeros(1 << n, dtype=complex)
    vec[index] = 1
    return QuantumState.from_amplitudes(vec)


def _index_of(st: QuantumState) -> int:
    probs = st.probabilities
    assert pytest.approx(probs.max()) == 1.0
    return int(np.argmax(probs))


@pytest.mark.parametrize(
    "n,start,kind,qubits,expected",
    [
        (2, 0b00, "X", [1], 0b10),
        (2, 0b01, "CNOT", [0, 1], 0b11),
        (2, 0b10, "CNOT", [0, 1], 0b10),
        (2, 0b10, "CNOT", [1, 0], 0b11),
        (2, 0b01, "SWAP", [0, 1], 0b10),
        (3, 0b011, "TOFFOLI", [0, 1, 2], 0b111),
        (3, 0b001, "TOFFOLI", [0, 1, 2], 0b001),
        (3, 0b011, "FREDKIN", [0, 1, 2], 0b101),
        (3, 0b010, "FREDKIN", [0, 1, 2], 0b010),
    ],
)
def test_basis_state_permutations(n, start, kind, qubits, expected):
    st = _basis(n, start)
    apply_gate(st, make_gate(kind, qubits))
    assert _index_of(st) == expected


def test_hadamard_twice_is_identity():
    st = QuantumState(1)
    h = make_gate("H", [0])
    apply_gate(st, h)
    assert np.allclose(st.amplitudes, [1 / math.sqrt(2)] * 2)
    apply_gate(st, h)
    assert np.allclose(st.amplitudes, [1, 0])


@pytest.mark.parametrize("kind,qubits", [("MCZ", [0, 1, 2]), ("CZ", [2, 0])])
def test_phase_flip_only_on_all_ones(kind, qubits):
    st = QuantumState(3)
    for q in range(3):
        apply_gate(st, make_gate("H", [q]))
    apply_gate(st, make_gate(kind, qubits))
    signs = np.sign(st.amplitudes.real)
    flipped = [i for i in range(8) if signs[i] < 0]
    mask = sum(1 << q for q in qubits)
    assert flipped == [i for i in range(8) if i & mask == mask]


def test_bell_state():
    st = QuantumState(2)
    run_unitary(st, [make_gate("H", [0]), make_gate("CNOT", [0, 1])])
    assert np.allclose(st.amplitudes, np.array([1, 0, 0, 1]) / math.sqrt(2))


def test_apply_matrix_validation():
    st = QuantumState(2)
    with pytest.raises(InvalidArgument):
        apply_matrix(st, np.eye(4), [0])
    with pytest.raises(InvalidArgument):
        apply_matrix(st, np.eye(4), [0, 0])
    with pytest.raises(InvalidArgument):
        apply_matrix(st, np.eye(2), [2])
    with pytest.raises(InvalidArgument):
        apply_gate(st, make_gate("MCZ", [0, 5]))


def _random_unitary(dim: int, rng: np.random.Generator) -> np.ndarray:
    a = rng.normal(size=(dim, dim)) + 1j * rng.normal(size=(dim, dim))
    q, r = np.linalg.qr(a)
    d = np.diag(r)
    return q * (d / np.abs(d))


def _random_circuit(n: int, depth: int, seed: int) -> Circuit:
    rng = np.random.default_rng(seed)
    c = Circuit(f"random-{seed}", n, n)
    one = ["X", "Y", "Z", "H", "S", "T", "I"]
    rot = ["RX", "RY", "RZ", "U1", "PHASE"]
    for _ in range(depth):
        roll = rng.integers(7)
        qs = [int(q) for q in rng.permutation(n)]
        if roll == 0:
            c.add_gate(str(rng.choice(one)), qs[:1])
        elif roll == 1:
            c.add_gate(str(rng.choice(rot)), qs[:1], [float(rng.uniform(-math.pi, math.pi))])
        elif roll == 2:
            c.add_gate("U3", qs[:1], list(rng.uniform(-math.pi, math.pi, size=3)))
        elif roll == 3 and n >= 2:
            c.add_gate(str(rng.choice(["CNOT", "CZ", "SWAP"])), qs[:2])
        elif roll == 4 and n >= 2:
            c.add_gate("CPHASE", qs[:2], [float(rng.uniform(-math.pi, math.pi))])
        elif roll == 5 and n >= 3:
            c.add_gate(str(rng.choice(["TOFFOLI", "FREDKIN", "MCZ"])), qs[:3])
        else:
            k = min(2, n)
            c.unitary(_random_unitary(1 << k, rng), qs[:k])
    return c


@pytest.mark.parametrize("seed", range(6))
@pytest.mark.parametrize("n", [1, 3, 4])
def test_probability_conserved(n, seed):
    c = _random_circuit(n, 40, seed)
    st = QuantumState(n)
    for g in c.gates:
        apply_gate(st, g)
        assert abs(st.total_probability() - 1.0) < 1e-9


@pytest.mark.parametrize("seed", range(6))
@pytest.mark.parametrize("n", [2, 3, 5])
def test_engine_matches_qiskit(n, seed):
    c = _random_circuit(n, 30, seed)
    st = run_unitary(QuantumState(n), c.gates)
    assert np.allclose(st.amplitudes, reference_statevector(c), atol=1e-8)


def test_same_input_same_output():
    c = _random_circuit(3, 25, 42)
    a = run_unitary(QuantumState(3), c.gates)
    b = run_unitary(QuantumState(3), c.gates)
    assert np.array_equal(a.amplitudes, b.amplitudes)


def _apply_by_definition(vec: np.ndarray, m: np.ndarray, qubits) -> np.ndarray:
    """Reference application from the matrix elements; qubits[0] is the most significant local bit."""
    k = len(qubits)
    mask = sum(1 << q for q in qubits)
    out = np.zeros_like(vec)
    for i, amp in enumerate(vec):
        col = sum(((i >> q) & 1) << (k - 1 - j) for j, q in enumerate(qubits))
        rest = i & ~mask
        for row in range(1 << k):
            dst = rest | sum(((row >> (k - 1 - j)) & 1) << q for j, q in enumerate(qubits))
            out[dst] += m[row, col] * amp
    return out


@pytest.mark.parametrize("qubits", [[0], [3], [2, 0], [0, 3], [3, 1, 2], [1, 4, 0]])
def test_apply_matrix_matches_definition(qubits):
    rng = np.random.default_rng(len(qubits) * 10 + qubits[0])
    n = 5
    vec = rng.normal(size=1 << n) + 1j * rng.normal(size=1 << n)
    vec /= np.linalg.norm(vec)
    m = _random_unitary(1 << len(qubits), rng)

    st = QuantumState.from_amplitudes(vec)
    apply_matrix(st, m, qubits)
    assert np.allclose(st.amplitudes, _apply_by_definition(vec, m, qubits), atol=1e-10)


def test_no_buffers_retained_after_many_distinct_targets():
    """Gates on every ordered pair must not leave 2^n-sized arrays behind."""
    n = 12
    st = QuantumState(n)
    gc.collect()
    tracemalloc.start()
    try:
        before, _ = tracemalloc.get_traced_memory()
        for a, b in itertools.permutations(range(n), 2):
            apply_gate(st, make_gate("CNOT", [a, b]))
        del st
        gc.collect()
        after, _ = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    # one 12-qubit index array is 32 KiB, 132 of them would be over 4 MiB
    assert after - before < 256 * 1024
