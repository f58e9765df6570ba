# qcsim/noise.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import List, Optional, Sequence

import numpy as np

from qcsim.engine import apply_matrix
from qcsim.errors import InvalidArgument
from qcsim.gates import pauli_x, pauli_y, pauli_z
from qcsim.settings import Settings, get_settings
from qcsim.state import QuantumState

log = logging.getLogger(__name__)

_PAULIS = (("X", pauli_x()), ("Y", pauli_y()), ("Z", pauli_z()))


@dataclass(frozen=True)
class NoiseModel:
    """
    Stochastic error channels consulted during execution.

    Immutable: a job clones the model at submission time, so jobs with
    different configurations can run side by side. A disabled model never
    draws random numbers, which keeps noiseless runs reproducible for a
    fixed seed.
    """

    name: str = "Default"
    depolarization_rate: float = 0.0
    bit_flip_rate: float = 0.0
    phase_flip_rate: float = 0.0
    amplitude_damping_rate: float = 0.0
    phase_damping_rate: float = 0.0
    readout_error_0to1: float = 0.0
    readout_error_1to0: float = 0.0
    enabled: bool = False

    def __post_init__(self):
        for f in fields(self):
            if f.name in ("name", "enabled"):
                continue
            value = getattr(self, f.name)
            if not (isinstance(value, (int, float)) and math.isfinite(value) and 0.0 <= value <= 1.0):
                raise InvalidArgument(f"{f.name} must be in [0, 1], got {value!r}")

    # ---------- constructors ----------
    @classmethod
    def disabled(cls) -> "NoiseModel":
        return cls(name="Noiseless")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "NoiseModel":
        s = settings or get_settings()
        return cls(
            name="Settings",
            depolarization_rate=s.NOISE_DEPOLARIZATION,
            bit_flip_rate=s.NOISE_BIT_FLIP,
            phase_flip_rate=s.NOISE_PHASE_FLIP,
            amplitude_damping_rate=s.NOISE_AMPLITUDE_DAMPING,
            phase_damping_rate=s.NOISE_PHASE_DAMPING,
            readout_error_0to1=s.NOISE_READOUT_0TO1,
            readout_error_1to0=s.NOISE_READOUT_1TO0,
            enabled=s.NOISE_ENABLED,
        )

    def with_(self, **changes) -> "NoiseModel":
        """Return a modified copy (validated again)."""
        return replace(self, **changes)

    # ---------- queries ----------
    @property
    def has_gate_noise(self) -> bool:
        return self.enabled and any(
            (
                self.depolarization_rate,
                self.bit_flip_rate,
                self.phase_flip_rate,
                self.amplitude_damping_rate,
                self.phase_damping_rate,
            )
        )

    @property
    def has_readout_noise(self) -> bool:
        return self.enabled and bool(self.readout_error_0to1 or self.readout_error_1to0)


def _amplitude_damping_step(state: QuantumState, qubit: int, gamma: float, rng: np.random.Generator) -> bool:
    """
    One quantum-trajectory step of amplitude damping on ``qubit``.

    Jumps to |0> with probability gamma * P(1), otherwise applies the
    no-jump Kraus operator. Returns True when the jump happened.
    """
    p_jump = gamma * state.probability_of_one(qubit)
    if rng.random() < p_jump:
        k1 = np.array([[0, math.sqrt(gamma)], [0, 0]], dtype=np.complex128)
        apply_matrix(state, k1, [qubit])
        state.normalize()
        return True
    k0 = np.array([[1, 0], [0, math.sqrt(1.0 - gamma)]], dtype=np.complex128)
    apply_matrix(state, k0, [qubit])
    state.normalize()
    return False


def apply_gate_noise(
    state: QuantumState,
    qubits: Sequence[int],
    noise: NoiseModel,
    rng: np.random.Generator,
) -> List[str]:
    """
    Sample the per-gate error channels independently for each target qubit.

    Returns the list of events applied, e.g. ["depolarize:X@0", "bit_flip@1"].
    Noise perturbs the state; it never aborts execution.
    """
    events: List[str] = []
    if not noise.has_gate_noise:
        return events

    for q in qubits:
        if noise.depolarization_rate and rng.random() < noise.depolarization_rate:
            name, pauli = _PAULIS[int(rng.integers(3))]
            apply_matrix(state, pauli, [q])
            events.append(f"depolarize:{name}@{q}")
        if noise.bit_flip_rate and rng.random() < noise.bit_flip_rate:
            apply_matrix(state, pauli_x(), [q])
            events.append(f"bit_flip@{q}")
        if noise.phase_flip_rate and rng.random() < noise.phase_flip_rate:
            apply_matrix(state, pauli_z(), [q])
            events.append(f"phase_flip@{q}")
        if noise.amplitude_damping_rate:
            if _amplitude_damping_step(state, q, noise.amplitude_damping_rate, rng):
                events.append(f"amplitude_damping@{q}")
        if noise.phase_damping_rate:
            # Phase damping with parameter lam equals a phase flip with this probability
            p_z = (1.0 - math.sqrt(1.0 - noise.phase_damping_rate)) / 2.0
            if rng.random() < p_z:
                apply_matrix(state, pauli_z(), [q])
                events.append(f"phase_damping@{q}")

    if events:
        log.debug(f"Noise events: {', '.join(events)}")
    return events


def readout_flip_probability(p1: float, noise: NoiseModel) -> float:
    """
    P(read 1) after readout error: p1 (1 - e10) + (1 - p1) e01.

    Always a convex combination, so it stays in [0, 1].
    """
    if not noise.has_readout_noise:
        return p1
    return p1 * (1.0 - noise.readout_error_1to0) + (1.0 - p1) * noise.readout_error_0to1


def apply_readout_error(bits: np.ndarray, noise: NoiseModel, rng: np.random.Generator) -> np.ndarray:
    """
    Flip sampled bits (array of 0/1, any shape) with the readout error rates.
    """
    if not noise.has_readout_noise:
        return bits
    draws = rng.random(bits.shape)
    flip = np.where(bits == 1, draws < noise.readout_error_1to0, draws < noise.readout_error_0to1)
    return np.where(flip, 1 - bits, bits).astype(bits.dtype)
