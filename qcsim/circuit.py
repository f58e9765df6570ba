# qcsim/circuit.py
from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from qcsim.errors import CapacityExceeded, InvalidArgument
from qcsim.gates import Gate, GateType, is_clifford, make_gate


class Measurement(NamedTuple):
    """Binding of a qubit to a classical bit."""

    qubit: int
    clbit: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Circuit:
    """
    Append-only log of gates and measurements.

    Insertion order is execution order. Every index is validated by the
    call that introduces it; once accepted, a gate is permanent. Writers are
    serialised by a per-circuit lock, readers take immutable snapshots.
    """

    def __init__(self, name: str, qubit_count: int, classical_bits: int, *, max_qubits: Optional[int] = None):
        if qubit_count < 1:
            raise InvalidArgument(f"qubit_count must be >= 1, got {qubit_count}")
        if classical_bits < 0:
            raise InvalidArgument(f"classical_bits must be >= 0, got {classical_bits}")
        if max_qubits is not None and qubit_count > max_qubits:
            raise CapacityExceeded(f"{qubit_count} qubits exceeds the limit of {max_qubits}")

        self.name = str(name)
        self.qubit_count = int(qubit_count)
        self.classical_bits = int(classical_bits)
        self.created_at = _now()
        self.last_modified = self.created_at

        self._gates: List[Gate] = []
        self._measurements: List[Measurement] = []
        self._lock = threading.Lock()

    # ---------- read side ----------
    @property
    def gates(self) -> Tuple[Gate, ...]:
        """Snapshot of the gate list."""
        with self._lock:
            return tuple(self._gates)

    @property
    def measurements(self) -> Tuple[Measurement, ...]:
        """Snapshot of the measurement bindings."""
        with self._lock:
            return tuple(self._measurements)

    def snapshot(self) -> Tuple[Tuple[Gate, ...], Tuple[Measurement, ...]]:
        """Consistent (gates, measurements) pair taken under one lock."""
        with self._lock:
            return tuple(self._gates), tuple(self._measurements)

    def __len__(self) -> int:
        with self._lock:
            return len(self._gates)

    def measurement_plan(self, measurements: Optional[Tuple[Measurement, ...]] = None) -> Tuple[Measurement, ...]:
        """
        Bindings used at execution time: the explicit ones, or every qubit q
        into classical bit q when none were added.

        Pass the measurements from a ``snapshot()`` to get the plan that
        belongs to that snapshot's gates.
        """
        meas = self.measurements if measurements is None else measurements
        if meas:
            return meas
        return tuple(Measurement(q, q) for q in range(self.qubit_count))

    @property
    def uses_custom_gates(self) -> bool:
        return any(g.kind == GateType.CUSTOM for g in self.gates)

    @property
    def is_clifford(self) -> bool:
        return all(is_clifford(g) for g in self.gates)

    def gate_counts(self) -> Dict[str, int]:
        return dict(Counter(g.kind.value for g in self.gates))

    def depth(self) -> int:
        """Number of layers when gates on disjoint qubits share a layer."""
        level = np.zeros(self.qubit_count, dtype=np.int64)
        for g in self.gates:
            d = int(max(level[q] for q in g.qubits)) + 1
            for q in g.qubits:
                level[q] = d
        return int(level.max()) if self.qubit_count else 0

    # ---------- append-only write side ----------
    def add_gate(
        self,
        kind: GateType | str,
        qubits: Sequence[int],
        params: Sequence[float] = (),
        matrix: Optional[np.ndarray] = None,
        *,
        name: Optional[str] = None,
    ) -> Gate:
        """
        Validate and append a gate.

        Raises
        ------
        InvalidArgument
            Unknown kind, wrong arity, bad parameters, or qubit index
            outside the register.
        """
        gate = make_gate(kind, qubits, params, matrix, qubit_count=self.qubit_count, name=name)
        with self._lock:
            self._gates.append(gate)
            self.last_modified = _now()
        return gate

    def add_measurement(self, qubit: int, clbit: int) -> Measurement:
        """Bind ``qubit`` to classical bit ``clbit``."""
        if not 0 <= qubit < self.qubit_count:
            raise InvalidArgument(f"Qubit index {qubit} out of range for {self.qubit_count} qubits")
        if not 0 <= clbit < self.classical_bits:
            raise InvalidArgument(f"Classical bit {clbit} out of range for {self.classical_bits} bits")
        m = Measurement(int(qubit), int(clbit))
        with self._lock:
            self._measurements.append(m)
            self.last_modified = _now()
        return m

    # ---------- convenience helpers ----------
    def h(self, q: int) -> Gate:
        return self.add_gate(GateType.H, [q])

    def x(self, q: int) -> Gate:
        return self.add_gate(GateType.X, [q])

    def y(self, q: int) -> Gate:
        return self.add_gate(GateType.Y, [q])

    def z(self, q: int) -> Gate:
        return self.add_gate(GateType.Z, [q])

    def rx(self, q: int, theta: float) -> Gate:
        return self.add_gate(GateType.RX, [q], [theta])

    def ry(self, q: int, theta: float) -> Gate:
        return self.add_gate(GateType.RY, [q], [theta])

    def rz(self, q: int, theta: float) -> Gate:
        return self.add_gate(GateType.RZ, [q], [theta])

    def cnot(self, control: int, target: int) -> Gate:
        return self.add_gate(GateType.CNOT, [control, target])

    def cz(self, a: int, b: int) -> Gate:
        return self.add_gate(GateType.CZ, [a, b])

    def swap(self, a: int, b: int) -> Gate:
        return self.add_gate(GateType.SWAP, [a, b])

    def cphase(self, control: int, target: int, phi: float) -> Gate:
        return self.add_gate(GateType.CPHASE, [control, target], [phi])

    def toffoli(self, c0: int, c1: int, target: int) -> Gate:
        return self.add_gate(GateType.TOFFOLI, [c0, c1, target])

    def mcz(self, qubits: Sequence[int]) -> Gate:
        return self.add_gate(GateType.MCZ, qubits)

    def unitary(self, matrix: np.ndarray, qubits: Sequence[int], name: str = "Custom") -> Gate:
        return self.add_gate(GateType.CUSTOM, qubits, matrix=matrix, name=name)

    def measure(self, qubit: int, clbit: int) -> Measurement:
        return self.add_measurement(qubit, clbit)

    def measure_all(self) -> None:
        """Measure qubit i into classical bit i for every qubit."""
        if self.classical_bits < self.qubit_count:
            raise InvalidArgument(
                f"measure_all needs {self.qubit_count} classical bits, circuit has {self.classical_bits}"
            )
        for q in range(self.qubit_count):
            self.add_measurement(q, q)

    def __repr__(self) -> str:
        return (
            f"Circuit(name={self.name!r}, qubits={self.qubit_count}, "
            f"clbits={self.classical_bits}, gates={len(self)})"
        )


def register_values(bits: np.ndarray, plan: Sequence[Measurement]) -> np.ndarray:
    """
    Fold per-measurement bits into classical register values.

    ``bits`` has shape (shots, len(plan)); column j is the outcome of
    plan[j]. A later binding to the same classical bit overwrites an
    earlier one.
    """
    values = np.zeros(bits.shape[0], dtype=np.int64)
    for j, m in enumerate(plan):
        col = bits[:, j].astype(np.int64)
        values = (values & ~(1 << m.clbit)) | (col << m.clbit)
    return values
