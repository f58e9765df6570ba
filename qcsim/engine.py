# qcsim/engine.py
from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from qcsim.errors import InvalidArgument, ResourceExhausted
from qcsim.gates import Gate, GateType
from qcsim.state import QuantumState


def apply_matrix(state: QuantumState, matrix: np.ndarray, qubits: Sequence[int]) -> None:
    """
    Apply a dense 2^k x 2^k matrix to ``qubits`` of ``state`` in place.

    The amplitudes are viewed as an n-axis tensor of shape (2, ..., 2); qubit
    q lives on axis n - 1 - q (little-endian). The matrix, reshaped to 2k
    axes, is contracted with the target axes and the new axes are moved back
    into place. No index arrays are built, so nothing sized 2^n outlives the
    call. ``qubits[0]`` is the most significant local bit of the matrix.

    Raises
    ------
    InvalidArgument
        Matrix shape does not match the number of targets, or a target is
        repeated or out of range.
    """
    targets = tuple(int(q) for q in qubits)
    k = len(targets)
    m = np.asarray(matrix, dtype=np.complex128)
    dim = 1 << k
    if k == 0 or m.shape != (dim, dim):
        raise InvalidArgument(f"Matrix shape {m.shape} does not match {k} target qubits")
    if len(set(targets)) != k:
        raise InvalidArgument(f"Repeated target qubits {list(targets)}")
    for q in targets:
        if not 0 <= q < state.qubit_count:
            raise InvalidArgument(f"Qubit index {q} out of range for {state.qubit_count} qubits")

    n = state.qubit_count
    axes = [n - 1 - q for q in targets]
    psi = state.amplitudes.reshape((2,) * n)
    u = m.reshape((2,) * (2 * k))
    try:
        out = np.tensordot(u, psi, axes=(list(range(k, 2 * k)), axes))
        out = np.moveaxis(out, list(range(k)), axes)
        out = np.ascontiguousarray(out).reshape(-1)
    except MemoryError as e:
        raise ResourceExhausted(f"Cannot allocate output buffer: {e}")
    state._swap_in(out)


def apply_phase_flip(state: QuantumState, qubits: Sequence[int]) -> None:
    """
    Multi-controlled Z: negate the amplitudes whose ``qubits`` bits are all 1.

    Diagonal, so no dense 2^k x 2^k matrix is built for wide gates.
    """
    mask = 0
    for q in qubits:
        if not 0 <= q < state.qubit_count:
            raise InvalidArgument(f"Qubit index {q} out of range for {state.qubit_count} qubits")
        mask |= 1 << int(q)
    idx = np.arange(state.dimension, dtype=np.int64)
    out = state.amplitudes.copy()
    out[(idx & mask) == mask] *= -1
    state._swap_in(out)


def apply_gate(state: QuantumState, gate: Gate) -> None:
    """Apply one circuit gate; pure function of (state, gate)."""
    if gate.kind == GateType.MCZ:
        apply_phase_flip(state, gate.qubits)
        return
    apply_matrix(state, gate.matrix(), gate.qubits)


def run_unitary(state: QuantumState, gates: Iterable[Gate]) -> QuantumState:
    """Apply ``gates`` in order (an ordered fold, never reordered)."""
    for gate in gates:
        apply_gate(state, gate)
    return state
