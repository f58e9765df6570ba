# qcsim/state.py
from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from qcsim.errors import CapacityExceeded, ExecutionFailed, InvalidArgument, ResourceExhausted


class QuantumState:
    """
    Pure n-qubit state backed by a flat complex amplitude buffer.

    Basis index ``i`` encodes the computational basis state whose qubit ``q``
    equals ``(i >> q) & 1`` (qubit 0 is the least significant bit).

    Responsibilities:
    - Own the 2^n complex128 amplitudes (exclusively; never shared).
    - Keep the cached probabilities consistent after every mutation.
    - Measurement, sampling and single-qubit expectations.
    - Entanglement diagnostics (reduced-state entropy, fidelity).
    """

    def __init__(self, qubit_count: int, *, max_qubits: Optional[int] = None):
        if qubit_count < 1:
            raise InvalidArgument(f"qubit_count must be >= 1, got {qubit_count}")
        if max_qubits is not None and qubit_count > max_qubits:
            raise CapacityExceeded(f"{qubit_count} qubits exceeds the limit of {max_qubits}")

        self.qubit_count = int(qubit_count)
        self.dimension = 1 << self.qubit_count
        self.is_pure = True
        try:
            self._amps = np.zeros(self.dimension, dtype=np.complex128)
        except (MemoryError, ValueError) as e:
            raise ResourceExhausted(f"Cannot allocate amplitudes for {qubit_count} qubits: {e}")
        self._amps[0] = 1.0
        self._probs = np.zeros(self.dimension, dtype=np.float64)
        self._probs[0] = 1.0

    @classmethod
    def from_amplitudes(cls, amplitudes: Sequence[complex], *, atol: float = 1e-6) -> "QuantumState":
        """Build a state from an explicit, normalised amplitude vector."""
        vec = np.asarray(amplitudes, dtype=np.complex128).ravel()
        n = int(vec.size).bit_length() - 1
        if vec.size < 2 or vec.size != 1 << n:
            raise InvalidArgument(f"Amplitude vector length {vec.size} is not a power of two >= 2")
        norm = float(np.vdot(vec, vec).real)
        if abs(norm - 1.0) > atol:
            raise InvalidArgument(f"Amplitude vector is not normalised (norm^2={norm:.6g})")
        st = cls(n)
        st._amps = vec.copy()
        st.refresh()
        return st

    # ---------- amplitude buffer ----------
    @property
    def amplitudes(self) -> np.ndarray:
        """Read-only view of the amplitudes."""
        view = self._amps.view()
        view.setflags(write=False)
        return view

    @property
    def probabilities(self) -> np.ndarray:
        """Read-only view of the cached |amplitude|^2."""
        view = self._probs.view()
        view.setflags(write=False)
        return view

    def _swap_in(self, new_amps: np.ndarray) -> None:
        """Replace the buffer wholesale and refresh derived data."""
        self._amps = new_amps
        self.refresh()

    def refresh(self) -> None:
        """Recompute the probability cache from the amplitudes."""
        self._probs = np.abs(self._amps) ** 2

    def total_probability(self) -> float:
        return float(self._probs.sum())

    def normalize(self) -> None:
        """Rescale to unit norm. Fails on a zero or non-finite norm."""
        norm = math.sqrt(float(np.vdot(self._amps, self._amps).real))
        if not math.isfinite(norm) or norm < 1e-15:
            raise ExecutionFailed(f"Cannot normalise state (norm={norm})")
        self._amps = self._amps / norm
        self.refresh()

    def reset(self) -> None:
        """Back to |0...0>."""
        self._amps = np.zeros(self.dimension, dtype=np.complex128)
        self._amps[0] = 1.0
        self.refresh()

    def copy(self) -> "QuantumState":
        st = QuantumState.__new__(QuantumState)
        st.qubit_count = self.qubit_count
        st.dimension = self.dimension
        st.is_pure = self.is_pure
        st._amps = self._amps.copy()
        st._probs = self._probs.copy()
        return st

    # ---------- measurement ----------
    def _check_qubit(self, qubit: int) -> None:
        if not 0 <= qubit < self.qubit_count:
            raise InvalidArgument(f"Qubit index {qubit} out of range for {self.qubit_count} qubits")

    def _bit_mask(self, qubit: int) -> np.ndarray:
        idx = np.arange(self.dimension)
        return ((idx >> qubit) & 1).astype(bool)

    def probability_of_one(self, qubit: int) -> float:
        """Marginal P(bit=1): sum of |amp|^2 over indices with the bit set."""
        self._check_qubit(qubit)
        return float(self._probs[self._bit_mask(qubit)].sum())

    def measure(self, qubit: int, rng: np.random.Generator) -> int:
        """
        Projectively measure ``qubit`` in Z, collapse and renormalise.
        """
        p1 = min(max(self.probability_of_one(qubit), 0.0), 1.0)
        outcome = int(rng.random() < p1)
        mask = self._bit_mask(qubit)
        keep = mask if outcome else ~mask
        amps = np.where(keep, self._amps, 0.0).astype(np.complex128)
        self._amps = amps
        self.normalize()
        return outcome

    def sample(self, shots: int, rng: np.random.Generator) -> np.ndarray:
        """
        Draw ``shots`` basis indices from the joint distribution |amp|^2.

        Equivalent to measuring every qubit in sequence with collapse, so
        correlations between qubits are preserved.
        """
        probs = self._probs / self._probs.sum()
        return rng.choice(self.dimension, size=shots, p=probs)

    def expectation_pauli(self, qubit: int, basis: str) -> float:
        """Return <basis> for a single qubit, basis in {'X','Y','Z'}."""
        self._check_qubit(qubit)
        if basis not in ("X", "Y", "Z"):
            raise InvalidArgument("Basis must be one of 'X','Y','Z'")
        mask = self._bit_mask(qubit)
        if basis == "Z":
            return float(self._probs[~mask].sum() - self._probs[mask].sum())
        # Pair each index with bit=0 to its partner with bit=1
        lo = np.nonzero(~mask)[0]
        hi = lo | (1 << qubit)
        cross = np.vdot(self._amps[lo], self._amps[hi])  # sum conj(a0) a1
        if basis == "X":
            return float(2.0 * cross.real)
        return float(2.0 * cross.imag)

    # ---------- entanglement ----------
    def _split(self, qubits: Sequence[int]) -> np.ndarray:
        """Reshape amplitudes into a (2^|A|, 2^(n-|A|)) matrix for subsystem A."""
        subsystem = [int(q) for q in qubits]
        for q in subsystem:
            self._check_qubit(q)
        if len(set(subsystem)) != len(subsystem):
            raise InvalidArgument(f"Repeated qubits in subsystem {subsystem}")
        n = self.qubit_count
        tensor = self._amps.reshape([2] * n)
        # C-order reshape puts qubit q on axis n-1-q
        axes = [n - 1 - q for q in subsystem]
        rest = [a for a in range(n) if a not in axes]
        tensor = np.transpose(tensor, axes + rest)
        return tensor.reshape(1 << len(subsystem), -1)

    def entanglement_entropy(self, qubits: Sequence[int]) -> float:
        """Von Neumann entropy (bits) of the reduced state on ``qubits``."""
        if len(qubits) in (0, self.qubit_count):
            return 0.0
        sv = np.linalg.svd(self._split(qubits), compute_uv=False)
        p = sv**2
        p = p[p > 1e-15]
        return float(max(0.0, -(p * np.log2(p)).sum()))

    def entangled_qubits(self, tol: float = 1e-9) -> List[bool]:
        """Per-qubit flag: True if the qubit is entangled with the rest."""
        return [self.entanglement_entropy([q]) > tol for q in range(self.qubit_count)]

    def fidelity(self, other: "QuantumState") -> float:
        """|<self|other>|^2 for two states of the same width."""
        if other.qubit_count != self.qubit_count:
            raise InvalidArgument("Fidelity needs states with the same qubit count")
        return float(abs(np.vdot(self._amps, other._amps)) ** 2)

    def __repr__(self) -> str:
        return f"QuantumState(qubits={self.qubit_count}, dim={self.dimension})"
