# tests/test_state.py
import math

import numpy as np
import pytest

from qcsim.errors import CapacityExceeded, ExecutionFailed, InvalidArgument
from qcsim.state import QuantumState

BELL = np.array([1, 0, 0, 1]) / math.sqrt(2)


def test_initial_state_is_all_zeros():
    st = QuantumState(3)
    assert st.dimension == 8
    assert st.amplitudes[0] == 1
    assert pytest.approx(st.total_probability()) == 1.0
    assert st.is_pure


def test_invalid_sizes():
    with pytest.raises(InvalidArgument):
        QuantumState(0)
    with pytest.raises(CapacityExceeded):
        QuantumState(5, max_qubits=4)


def test_amplitudes_are_read_only():
    st = QuantumState(1)
    with pytest.raises(ValueError):
        st.amplitudes[0] = 0


def test_from_amplitudes_validation():
    with pytest.raises(InvalidArgument):
        QuantumState.from_amplitudes([1, 0, 0])
    with pytest.raises(InvalidArgument):
        QuantumState.from_amplitudes([1, 1])
    st = QuantumState.from_amplitudes(BELL)
    assert st.qubit_count == 2


def test_normalize_zero_vector_fails():
    st = QuantumState(1)
    st._swap_in(np.zeros(2, dtype=complex))
    with pytest.raises(ExecutionFailed):
        st.normalize()


@pytest.mark.parametrize("seed", range(5))
def test_bell_measurement_collapses_partner(seed):
    st = QuantumState.from_amplitudes(BELL)
    rng = np.random.default_rng(seed)
    a = st.measure(0, rng)
    assert pytest.approx(st.probability_of_one(1)) == float(a)
    assert st.measure(1, rng) == a
    assert pytest.approx(st.total_probability()) == 1.0


def test_sample_basis_state_is_deterministic():
    st = QuantumState.from_amplitudes([0, 0, 1, 0])
    idx = st.sample(50, np.random.default_rng(0))
    assert set(idx.tolist()) == {2}


def test_expectations():
    plus = QuantumState.from_amplitudes(np.array([1, 1]) / math.sqrt(2))
    assert pytest.approx(plus.expectation_pauli(0, "X")) == 1.0
    assert pytest.approx(plus.expectation_pauli(0, "Z"), abs=1e-12) == 0.0
    plus_i = QuantumState.from_amplitudes(np.array([1, 1j]) / math.sqrt(2))
    assert pytest.approx(plus_i.expectation_pauli(0, "Y")) == 1.0
    with pytest.raises(InvalidArgument):
        plus.expectation_pauli(0, "W")


def test_entanglement_entropy():
    bell = QuantumState.from_amplitudes(BELL)
    assert pytest.approx(bell.entanglement_entropy([0])) == 1.0
    assert bell.entangled_qubits() == [True, True]

    product = QuantumState.from_amplitudes(np.array([1, 1, 0, 0]) / math.sqrt(2))
    assert product.entanglement_entropy([1]) < 1e-9
    assert product.entangled_qubits() == [False, False]


def test_copy_and_fidelity():
    a = QuantumState.from_amplitudes(BELL)
    b = a.copy()
    assert pytest.approx(a.fidelity(b)) == 1.0
    b.reset()
    assert pytest.approx(a.fidelity(b)) == 0.5
    assert a.amplitudes[3] != 0
