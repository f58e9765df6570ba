# qcsim/gates.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from qcsim.errors import InvalidArgument

MAX_GATE_QUBITS = 4
UNITARY_ATOL = 1e-8


class GateType(StrEnum):
    """
    Closed set of gate kinds understood by the engine.
    """

    # Single-qubit
    I = "I"
    X = "X"
    Y = "Y"
    Z = "Z"
    H = "H"
    S = "S"
    T = "T"
    RX = "RX"
    RY = "RY"
    RZ = "RZ"
    PHASE = "PHASE"
    U1 = "U1"
    U2 = "U2"
    U3 = "U3"

    # Two-qubit
    CNOT = "CNOT"
    CZ = "CZ"
    SWAP = "SWAP"
    CPHASE = "CPHASE"

    # Three-qubit
    TOFFOLI = "TOFFOLI"
    FREDKIN = "FREDKIN"

    # Variable arity
    MCZ = "MCZ"
    CUSTOM = "CUSTOM"


# Exact arity per kind; None means "1..MAX_GATE_QUBITS" (MCZ: any width, it is applied as a diagonal).
ARITY: Dict[GateType, Optional[int]] = {
    GateType.I: 1,
    GateType.X: 1,
    GateType.Y: 1,
    GateType.Z: 1,
    GateType.H: 1,
    GateType.S: 1,
    GateType.T: 1,
    GateType.RX: 1,
    GateType.RY: 1,
    GateType.RZ: 1,
    GateType.PHASE: 1,
    GateType.U1: 1,
    GateType.U2: 1,
    GateType.U3: 1,
    GateType.CNOT: 2,
    GateType.CZ: 2,
    GateType.SWAP: 2,
    GateType.CPHASE: 2,
    GateType.TOFFOLI: 3,
    GateType.FREDKIN: 3,
    GateType.MCZ: None,
    GateType.CUSTOM: None,
}

PARAM_COUNT: Dict[GateType, int] = {
    GateType.RX: 1,
    GateType.RY: 1,
    GateType.RZ: 1,
    GateType.PHASE: 1,
    GateType.U1: 1,
    GateType.CPHASE: 1,
    GateType.U2: 2,
    GateType.U3: 3,
}

CLIFFORD_KINDS = frozenset(
    {
        GateType.I,
        GateType.X,
        GateType.Y,
        GateType.Z,
        GateType.H,
        GateType.S,
        GateType.CNOT,
        GateType.CZ,
        GateType.SWAP,
    }
)


# ---------- matrix catalog ----------
_INV_SQRT2 = 1.0 / math.sqrt(2.0)


def identity(k: int = 1) -> np.ndarray:
    return np.eye(2**k, dtype=np.complex128)


def pauli_x() -> np.ndarray:
    return np.array([[0, 1], [1, 0]], dtype=np.complex128)


def pauli_y() -> np.ndarray:
    return np.array([[0, -1j], [1j, 0]], dtype=np.complex128)


def pauli_z() -> np.ndarray:
    return np.array([[1, 0], [0, -1]], dtype=np.complex128)


def hadamard() -> np.ndarray:
    return np.array([[1, 1], [1, -1]], dtype=np.complex128) * _INV_SQRT2


def s_gate() -> np.ndarray:
    return np.array([[1, 0], [0, 1j]], dtype=np.complex128)


def t_gate() -> np.ndarray:
    return np.array([[1, 0], [0, np.exp(1j * math.pi / 4)]], dtype=np.complex128)


def rx(theta: float) -> np.ndarray:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array([[c, -1j * s], [-1j * s, c]], dtype=np.complex128)


def ry(theta: float) -> np.ndarray:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array([[c, -s], [s, c]], dtype=np.complex128)


def rz(theta: float) -> np.ndarray:
    return np.array(
        [[np.exp(-0.5j * theta), 0], [0, np.exp(0.5j * theta)]],
        dtype=np.complex128,
    )


def global_phase(phi: float) -> np.ndarray:
    return np.exp(1j * phi) * identity(1)


def u3(theta: float, phi: float, lam: float) -> np.ndarray:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array(
        [
            [c, -np.exp(1j * lam) * s],
            [np.exp(1j * phi) * s, np.exp(1j * (phi + lam)) * c],
        ],
        dtype=np.complex128,
    )


def u2(phi: float, lam: float) -> np.ndarray:
    return u3(math.pi / 2, phi, lam)


def u1(lam: float) -> np.ndarray:
    return np.array([[1, 0], [0, np.exp(1j * lam)]], dtype=np.complex128)


def cnot() -> np.ndarray:
    """Control is the first qubit (most significant local bit)."""
    return np.array(
        [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 0, 1], [0, 0, 1, 0]],
        dtype=np.complex128,
    )


def cz() -> np.ndarray:
    return np.diag([1, 1, 1, -1]).astype(np.complex128)


def swap() -> np.ndarray:
    return np.array(
        [[1, 0, 0, 0], [0, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]],
        dtype=np.complex128,
    )


def cphase(phi: float) -> np.ndarray:
    return np.diag([1, 1, 1, np.exp(1j * phi)]).astype(np.complex128)


def toffoli() -> np.ndarray:
    m = identity(3)
    m[[6, 7]] = m[[7, 6]]
    return m


def fredkin() -> np.ndarray:
    m = identity(3)
    m[[5, 6]] = m[[6, 5]]
    return m


def mcz(k: int) -> np.ndarray:
    """Z on |1...1>, identity elsewhere; k=1 is plain Z."""
    m = identity(k)
    m[-1, -1] = -1
    return m


_FIXED = {
    GateType.I: lambda: identity(1),
    GateType.X: pauli_x,
    GateType.Y: pauli_y,
    GateType.Z: pauli_z,
    GateType.H: hadamard,
    GateType.S: s_gate,
    GateType.T: t_gate,
    GateType.CNOT: cnot,
    GateType.CZ: cz,
    GateType.SWAP: swap,
    GateType.TOFFOLI: toffoli,
    GateType.FREDKIN: fredkin,
}

_PARAMETRIC = {
    GateType.RX: rx,
    GateType.RY: ry,
    GateType.RZ: rz,
    GateType.PHASE: global_phase,
    GateType.U1: u1,
    GateType.U2: u2,
    GateType.U3: u3,
    GateType.CPHASE: cphase,
}


def gate_matrix(kind: GateType | str, params: Sequence[float] = (), arity: int = 1) -> np.ndarray:
    """Dense unitary for a catalog gate (CUSTOM has no catalog matrix)."""
    kind = _coerce_kind(kind)
    if kind in _FIXED:
        return _FIXED[kind]()
    if kind in _PARAMETRIC:
        return _PARAMETRIC[kind](*params)
    if kind == GateType.MCZ:
        return mcz(arity)
    raise InvalidArgument(f"No catalog matrix for gate {kind}")


def is_unitary(matrix: np.ndarray, atol: float = UNITARY_ATOL) -> bool:
    m = np.asarray(matrix)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        return False
    return bool(np.allclose(m @ m.conj().T, np.eye(m.shape[0]), atol=atol))


# ---------- tagged gate variants ----------
@dataclass(frozen=True)
class FixedGate:
    """Catalog gate without parameters (X, H, CNOT, TOFFOLI, MCZ, ...)."""

    kind: GateType
    qubits: Tuple[int, ...]

    @property
    def arity(self) -> int:
        return len(self.qubits)

    @property
    def params(self) -> Tuple[float, ...]:
        return ()

    def matrix(self) -> np.ndarray:
        return gate_matrix(self.kind, (), self.arity)

    @property
    def label(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class ParametricGate:
    """Rotation/phase gate carrying its angles."""

    kind: GateType
    qubits: Tuple[int, ...]
    params: Tuple[float, ...]

    @property
    def arity(self) -> int:
        return len(self.qubits)

    def matrix(self) -> np.ndarray:
        return gate_matrix(self.kind, self.params, self.arity)

    @property
    def label(self) -> str:
        args = ", ".join(f"{p:.6g}" for p in self.params)
        return f"{self.kind.value}({args})"


@dataclass(frozen=True)
class CustomGate:
    """User-supplied 2^k x 2^k unitary on k qubits."""

    qubits: Tuple[int, ...]
    unitary: np.ndarray = field(repr=False, compare=False)
    name: str = "Custom"

    @property
    def kind(self) -> GateType:
        return GateType.CUSTOM

    @property
    def arity(self) -> int:
        return len(self.qubits)

    @property
    def params(self) -> Tuple[float, ...]:
        return ()

    def matrix(self) -> np.ndarray:
        return self.unitary.copy()

    @property
    def label(self) -> str:
        return self.name


Gate = Union[FixedGate, ParametricGate, CustomGate]


def _coerce_kind(kind: GateType | str) -> GateType:
    if isinstance(kind, GateType):
        return kind
    try:
        return GateType(str(kind).upper())
    except ValueError:
        raise InvalidArgument(f"Unsupported gate: {kind}")


def make_gate(
    kind: GateType | str,
    qubits: Sequence[int],
    params: Sequence[float] = (),
    matrix: Optional[np.ndarray] = None,
    *,
    qubit_count: Optional[int] = None,
    name: Optional[str] = None,
) -> Gate:
    """
    Build and validate a gate.

    Parameters
    ----------
    kind : GateType | str
        Gate kind, e.g. GateType.H or "cnot" (case-insensitive).
    qubits : Sequence[int]
        Target qubits. For controlled gates the controls come first.
    params : Sequence[float]
        Rotation angles; exactly PARAM_COUNT[kind] values.
    matrix : np.ndarray, optional
        Unitary for CUSTOM gates, shape (2^k, 2^k) with k = len(qubits).
    qubit_count : int, optional
        Register width; when given every qubit index must be below it.

    Raises
    ------
    InvalidArgument
        Arity, parameter count, duplicate/out-of-range qubit, or a custom
        matrix that is missing, mis-shaped or not unitary.
    """
    gate_kind = _coerce_kind(kind)
    targets = tuple(int(q) for q in qubits)

    expected = ARITY[gate_kind]
    if gate_kind == GateType.MCZ:
        if not targets:
            raise InvalidArgument(f"Gate {gate_kind} needs at least one qubit")
    elif expected is None:
        if not 1 <= len(targets) <= MAX_GATE_QUBITS:
            raise InvalidArgument(
                f"Gate {gate_kind} expects 1..{MAX_GATE_QUBITS} qubits, got {len(targets)}"
            )
    elif len(targets) != expected:
        raise InvalidArgument(f"Gate {gate_kind} expects {expected} qubits, got {len(targets)}")

    if len(set(targets)) != len(targets):
        raise InvalidArgument(f"Gate {gate_kind} has repeated qubits {list(targets)}")
    for q in targets:
        if q < 0 or (qubit_count is not None and q >= qubit_count):
            raise InvalidArgument(f"Qubit index {q} out of range for {qubit_count} qubits")

    n_params = PARAM_COUNT.get(gate_kind, 0)
    values = tuple(float(p) for p in params)
    if len(values) != n_params:
        raise InvalidArgument(f"Gate {gate_kind} expects {n_params} parameters, got {len(values)}")
    if not all(math.isfinite(p) for p in values):
        raise InvalidArgument(f"Gate {gate_kind} parameters must be finite: {values}")

    if gate_kind == GateType.CUSTOM:
        if matrix is None:
            raise InvalidArgument("CUSTOM gate requires a matrix")
        m = np.array(matrix, dtype=np.complex128)
        dim = 2 ** len(targets)
        if m.shape != (dim, dim):
            raise InvalidArgument(
                f"Custom matrix shape {m.shape} does not match {len(targets)} qubits (expected {(dim, dim)})"
            )
        if not is_unitary(m):
            raise InvalidArgument("Custom matrix is not unitary")
        m.setflags(write=False)
        return CustomGate(targets, m, name or "Custom")

    if matrix is not None:
        raise InvalidArgument(f"Gate {gate_kind} does not take a matrix")
    if n_params:
        return ParametricGate(gate_kind, targets, values)
    return FixedGate(gate_kind, targets)


def is_clifford(gate: Gate) -> bool:
    if gate.kind in CLIFFORD_KINDS:
        return True
    # CZ on two qubits spelled as MCZ
    return gate.kind == GateType.MCZ and gate.arity <= 2
