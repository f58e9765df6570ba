# qcsim/qiskit_backend.py
from __future__ import annotations

import math

import numpy as np
from qiskit import ClassicalRegister, QuantumCircuit, QuantumRegister, qasm2
from qiskit.circuit.library import ZGate
from qiskit.quantum_info import Statevector

from qcsim.circuit import Circuit
from qcsim.errors import InvalidArgument
from qcsim.gates import Gate, GateType


def _append(qc: QuantumCircuit, gate: Gate) -> None:
    """
    Append one of our gates to a Qiskit circuit.

    Both sides index qubits little-endian. For dense matrices our first
    listed qubit is the most significant local bit while Qiskit's first
    argument is the least significant, so custom unitaries get their qubit
    list reversed.
    """
    k = gate.kind
    q = list(gate.qubits)
    p = gate.params

    if k == GateType.I:
        qc.id(q[0])
    elif k == GateType.X:
        qc.x(q[0])
    elif k == GateType.Y:
        qc.y(q[0])
    elif k == GateType.Z:
        qc.z(q[0])
    elif k == GateType.H:
        qc.h(q[0])
    elif k == GateType.S:
        qc.s(q[0])
    elif k == GateType.T:
        qc.t(q[0])
    elif k == GateType.RX:
        qc.rx(p[0], q[0])
    elif k == GateType.RY:
        qc.ry(p[0], q[0])
    elif k == GateType.RZ:
        qc.rz(p[0], q[0])
    elif k == GateType.PHASE:
        qc.global_phase += p[0]
    elif k == GateType.U1:
        qc.p(p[0], q[0])
    elif k == GateType.U2:
        qc.u(math.pi / 2, p[0], p[1], q[0])
    elif k == GateType.U3:
        qc.u(p[0], p[1], p[2], q[0])
    elif k == GateType.CNOT:
        qc.cx(q[0], q[1])
    elif k == GateType.CZ:
        qc.cz(q[0], q[1])
    elif k == GateType.SWAP:
        qc.swap(q[0], q[1])
    elif k == GateType.CPHASE:
        qc.cp(p[0], q[0], q[1])
    elif k == GateType.TOFFOLI:
        qc.ccx(q[0], q[1], q[2])
    elif k == GateType.FREDKIN:
        qc.cswap(q[0], q[1], q[2])
    elif k == GateType.MCZ:
        if len(q) == 1:
            qc.z(q[0])
        else:
            qc.append(ZGate().control(len(q) - 1), q)
    elif k == GateType.CUSTOM:
        qc.unitary(gate.matrix(), list(reversed(q)), label=gate.label)
    else:
        raise InvalidArgument(f"No Qiskit mapping for gate {k}")


def to_qiskit(circuit: Circuit, measure: bool = True) -> QuantumCircuit:
    """
    Convert a circuit to a Qiskit ``QuantumCircuit``.

    Parameters
    ----------
    circuit : Circuit
        Source circuit (a snapshot is taken).
    measure : bool, default=True
        Append the measurement plan. Turn off for state-vector comparison.
    """
    gates, measured = circuit.snapshot()
    qreg = QuantumRegister(circuit.qubit_count, "q")
    if measure:
        plan = circuit.measurement_plan(measured)
        creg = ClassicalRegister(max(circuit.classical_bits, circuit.qubit_count), "c")
        qc = QuantumCircuit(qreg, creg, name=circuit.name)
    else:
        plan = ()
        qc = QuantumCircuit(qreg, name=circuit.name)

    for g in gates:
        _append(qc, g)
    for m in plan:
        qc.measure(m.qubit, m.clbit)
    return qc


def reference_statevector(circuit: Circuit) -> np.ndarray:
    """Final amplitudes computed by Qiskit (little-endian, like ours)."""
    return np.asarray(Statevector.from_instruction(to_qiskit(circuit, measure=False)).data)


def to_qasm(circuit: Circuit) -> str:
    """OpenQASM 2 text of the circuit. Global phase is not representable and is dropped."""
    return qasm2.dumps(to_qiskit(circuit))
