# qcsim/stim_backend.py
from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np
import stim

from qcsim.circuit import Measurement, register_values
from qcsim.errors import UnsupportedFeature
from qcsim.gates import Gate, GateType
from qcsim.noise import NoiseModel, apply_readout_error

# Our gate kind -> Stim instruction name
_STIM_NAME = {
    GateType.X: "X",
    GateType.Y: "Y",
    GateType.Z: "Z",
    GateType.H: "H",
    GateType.S: "S",
    GateType.CNOT: "CX",
    GateType.CZ: "CZ",
    GateType.SWAP: "SWAP",
}


def check_supported(gates: Sequence[Gate], noise: Optional[NoiseModel]) -> None:
    """
    Raise UnsupportedFeature if the circuit or noise cannot run on Stim.

    Stim tracks stabilizer tableaux, so only Clifford gates and Pauli
    channels are representable.
    """
    for g in gates:
        if g.kind == GateType.I:
            continue
        if g.kind == GateType.MCZ and g.arity <= 2:
            continue
        if g.kind not in _STIM_NAME:
            raise UnsupportedFeature(f"Gate {g.label} is not a Clifford gate; stabilizer backend cannot run it")
    if noise is not None and noise.enabled and noise.amplitude_damping_rate:
        raise UnsupportedFeature("Amplitude damping is not a Pauli channel; stabilizer backend cannot model it")


def to_stim(
    gates: Sequence[Gate],
    plan: Sequence[Measurement],
    qubit_count: int,
    noise: Optional[NoiseModel] = None,
) -> stim.Circuit:
    """
    Translate a Clifford circuit to Stim.

    Gate noise becomes DEPOLARIZE1 / X_ERROR / Z_ERROR after each gate on
    its targets; readout error is applied after sampling (Stim's M(p) is
    symmetric, ours is not). Measurements are emitted in ``plan`` order.
    """
    check_supported(gates, noise)
    circ = stim.Circuit()
    if qubit_count:
        circ.append("I", list(range(qubit_count)))

    gate_noise = noise is not None and noise.has_gate_noise
    for g in gates:
        targets = list(g.qubits)
        if g.kind == GateType.I:
            pass
        elif g.kind == GateType.MCZ:
            circ.append("Z" if g.arity == 1 else "CZ", targets)
        else:
            circ.append(_STIM_NAME[g.kind], targets)

        if gate_noise:
            if noise.depolarization_rate:
                circ.append("DEPOLARIZE1", targets, noise.depolarization_rate)
            if noise.bit_flip_rate:
                circ.append("X_ERROR", targets, noise.bit_flip_rate)
            if noise.phase_flip_rate:
                circ.append("Z_ERROR", targets, noise.phase_flip_rate)
            if noise.phase_damping_rate:
                p_z = (1.0 - math.sqrt(1.0 - noise.phase_damping_rate)) / 2.0
                circ.append("Z_ERROR", targets, p_z)

    for m in plan:
        circ.append("M", [m.qubit])
    return circ


def sample_counts(
    gates: Sequence[Gate],
    plan: Sequence[Measurement],
    qubit_count: int,
    shots: int,
    *,
    noise: Optional[NoiseModel] = None,
    seed: Optional[int] = None,
    size: Optional[int] = None,
) -> np.ndarray:
    """
    Sample ``shots`` runs with Stim and return the classical-value histogram.
    """
    circ = to_stim(gates, plan, qubit_count, noise)
    sampler = circ.compile_sampler(seed=seed)
    bits = sampler.sample(shots).astype(np.int64)
    if noise is not None and noise.has_readout_noise:
        rng = np.random.default_rng(seed)
        bits = apply_readout_error(bits, noise, rng)
    values = register_values(bits, plan)
    length = size if size is not None else 1 << qubit_count
    return np.bincount(values, minlength=length).astype(np.uint64)
