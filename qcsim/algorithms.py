# qcsim/algorithms.py
from __future__ import annotations

import logging
import math
from typing import NamedTuple, Optional, Sequence

from qcsim.circuit import Circuit
from qcsim.errors import InvalidArgument
from qcsim.registry import Handle

log = logging.getLogger(__name__)

STATEVECTOR_BACKEND = "Statevector Simulator"


class GroverRun(NamedTuple):
    circuit_id: Handle
    job_id: Handle
    iterations: int


def grover_qubits(space_size: int) -> int:
    """Qubits needed to index ``space_size`` items: bit length of N - 1."""
    if space_size < 2:
        raise InvalidArgument(f"Search space must hold at least 2 items, got {space_size}")
    return (space_size - 1).bit_length()


def grover_iterations(space_size: int) -> int:
    """floor(pi * sqrt(N) / 4), truncated the same way for every N."""
    return int(math.pi * math.sqrt(space_size) / 4)


def _flip_zero_bits(circuit: Circuit, pattern: int) -> None:
    for q in range(circuit.qubit_count):
        if not (pattern >> q) & 1:
            circuit.x(q)


def _phase_flip_all(circuit: Circuit) -> None:
    # MCZ over every qubit flips the sign of |1...1> only
    circuit.mcz(list(range(circuit.qubit_count)))


def add_grover_oracle(circuit: Circuit, target: int) -> None:
    """Flip the sign of the basis state ``|target>``."""
    _flip_zero_bits(circuit, target)
    _phase_flip_all(circuit)
    _flip_zero_bits(circuit, target)


def add_grover_diffusion(circuit: Circuit) -> None:
    """Inversion about the mean: H X (MCZ) X H on every qubit."""
    n = circuit.qubit_count
    for q in range(n):
        circuit.h(q)
        circuit.x(q)
    _phase_flip_all(circuit)
    for q in range(n):
        circuit.x(q)
        circuit.h(q)


def build_grover(system, space_size: int, target: int) -> Handle:
    """
    Build a Grover search circuit for ``target`` in a space of ``space_size``.

    Parameters
    ----------
    system : QuantumSystem
        Owner of the new circuit.
    space_size : int
        Number of items N (>= 2); uses ceil(log2 N) qubits.
    target : int
        Marked item, 0 <= target < N.

    Returns
    -------
    Handle
        Id of the circuit, measured qubit i into classical bit i.
    """
    n = grover_qubits(space_size)
    if not 0 <= target < space_size:
        raise InvalidArgument(f"Target {target} outside search space of {space_size}")

    circuit_id = system.create_circuit(f"Grover_Search_{target}", n, n)
    circuit = system.circuit(circuit_id)
    for q in range(n):
        circuit.h(q)

    iterations = grover_iterations(space_size)
    for _ in range(iterations):
        add_grover_oracle(circuit, target)
        add_grover_diffusion(circuit)

    circuit.measure_all()
    log.info(f"Grover circuit {circuit_id}: {n} qubits, {iterations} iterations, target {target}")
    return circuit_id


def run_grover(
    system,
    space_size: int,
    target: int,
    *,
    shots: int = 1000,
    backend_id: Optional[Handle] = None,
    seed: Optional[int] = None,
) -> GroverRun:
    """Build the Grover circuit and submit it (state-vector backend by default)."""
    circuit_id = build_grover(system, space_size, target)
    if backend_id is None:
        backend_id = system.find_backend(STATEVECTOR_BACKEND).id
    job_id = system.submit_job(circuit_id, backend_id, shots, seed=seed)
    return GroverRun(circuit_id, job_id, grover_iterations(space_size))


def apply_qft(system, circuit_id: Handle, qubits: Sequence[int]) -> None:
    """
    Append the quantum Fourier transform over ``qubits`` to a circuit.

    ``qubits[0]`` is treated as the most significant bit of the input. Each
    qubit gets a Hadamard followed by controlled phases pi / 2^(j - i) from
    every later qubit; the bit order is then reversed with SWAPs.
    """
    circuit = system.circuit(circuit_id)
    qubits = [int(q) for q in qubits]
    if len(set(qubits)) != len(qubits):
        raise InvalidArgument(f"QFT qubits must be distinct: {qubits}")
    if len(qubits) > circuit.qubit_count:
        raise InvalidArgument(f"QFT over {len(qubits)} qubits in a {circuit.qubit_count}-qubit circuit")

    count = len(qubits)
    for i in range(count):
        circuit.h(qubits[i])
        for j in range(i + 1, count):
            circuit.cphase(qubits[j], qubits[i], math.pi / (1 << (j - i)))

    for i in range(count // 2):
        circuit.swap(qubits[i], qubits[count - 1 - i])


def build_qft(system, n: int, basis_state: int = 0) -> Handle:
    """
    Circuit preparing ``|basis_state>`` then applying the QFT.

    With little-endian amplitudes the final state is the discrete Fourier
    transform column sum_k exp(2 pi i x k / 2^n) |k> / sqrt(2^n).
    """
    if not 0 <= basis_state < (1 << n):
        raise InvalidArgument(f"Basis state {basis_state} out of range for {n} qubits")
    circuit_id = system.create_circuit(f"QFT_{n}_{basis_state}", n, n)
    circuit = system.circuit(circuit_id)
    for q in range(n):
        if (basis_state >> q) & 1:
            circuit.x(q)
    apply_qft(system, circuit_id, list(reversed(range(n))))
    return circuit_id
