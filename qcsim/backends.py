# qcsim/backends.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import List, Optional

from qcsim.errors import InvalidArgument, NotFound
from qcsim.registry import Handle, Registry

log = logging.getLogger(__name__)


class BackendKind(StrEnum):
    """
    Simulation engine behind a backend.
    """

    STATEVECTOR = "statevector"
    SHOT_SAMPLING = "shot_sampling"
    DENSITY_MATRIX = "density_matrix"
    GPU = "gpu"
    HARDWARE_STUB = "hardware_stub"
    STABILIZER = "stabilizer"


# Kinds with an executor in this package
EXECUTABLE_KINDS = frozenset(
    {BackendKind.STATEVECTOR, BackendKind.SHOT_SAMPLING, BackendKind.GPU, BackendKind.STABILIZER}
)

# Kinds whose jobs keep the final state vector
STATE_RECORDING_KINDS = frozenset({BackendKind.STATEVECTOR})


@dataclass(frozen=True)
class Capabilities:
    custom_gates: bool = True
    noise_model: bool = True
    error_correction: bool = False


@dataclass(frozen=True)
class Backend:
    """
    Read-only view of a registered backend.

    Attributes
    ----------
    id : Handle
        Registry handle.
    kind : BackendKind
        Which simulation engine executes jobs.
    max_qubits, max_shots : int
        Capacity limits checked at submission.
    gate_fidelity, readout_fidelity : float
        Advertised fidelity metrics in [0, 1].
    t1, t2, gate_time : float
        Coherence and timing characteristics (seconds; 0 = not modelled).
    available : bool
        Toggled by health checks; unavailable backends reject jobs.
    """

    id: Handle
    name: str
    kind: BackendKind
    max_qubits: int
    max_shots: int
    capabilities: Capabilities
    gate_fidelity: float = 1.0
    readout_fidelity: float = 1.0
    t1: float = 0.0
    t2: float = 0.0
    gate_time: float = 0.0
    available: bool = True

    @property
    def executable(self) -> bool:
        return self.kind in EXECUTABLE_KINDS

    @property
    def records_state(self) -> bool:
        return self.kind in STATE_RECORDING_KINDS


class BackendRegistry:
    """Thread-safe registry of execution backends (read-mostly)."""

    def __init__(self):
        self._backends: Registry[Backend] = Registry("backend")
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        kind: BackendKind | str,
        *,
        max_qubits: int,
        max_shots: int,
        capabilities: Optional[Capabilities] = None,
        gate_fidelity: float = 1.0,
        readout_fidelity: float = 1.0,
        t1: float = 0.0,
        t2: float = 0.0,
        gate_time: float = 0.0,
    ) -> Handle:
        """
        Register a backend and return its id.

        Raises
        ------
        InvalidArgument
            Empty or duplicate name, unknown kind, zero capacity, or a
            fidelity outside [0, 1].
        """
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("Backend name must be non-empty")
        try:
            kind = BackendKind(kind)
        except ValueError:
            raise InvalidArgument(f"Unknown backend kind: {kind}")
        if max_qubits <= 0:
            raise InvalidArgument(f"max_qubits must be > 0, got {max_qubits}")
        if max_shots <= 0:
            raise InvalidArgument(f"max_shots must be > 0, got {max_shots}")
        for label, value in (("gate_fidelity", gate_fidelity), ("readout_fidelity", readout_fidelity)):
            if not 0.0 <= value <= 1.0:
                raise InvalidArgument(f"{label} must be in [0, 1], got {value}")

        with self._lock:
            if any(b.name == name for _, b in self._backends.items()):
                raise InvalidArgument(f"Backend name already registered: {name!r}")
            handle = self._backends.add_with(
                lambda h: Backend(
                    id=h,
                    name=name,
                    kind=kind,
                    max_qubits=int(max_qubits),
                    max_shots=int(max_shots),
                    capabilities=capabilities or Capabilities(),
                    gate_fidelity=float(gate_fidelity),
                    readout_fidelity=float(readout_fidelity),
                    t1=float(t1),
                    t2=float(t2),
                    gate_time=float(gate_time),
                )
            )
        log.info(f"Registered backend {name!r} ({kind}, {max_qubits} qubits, {max_shots} shots) as {handle}")
        return handle

    def resolve(self, backend_id: Handle) -> Backend:
        with self._lock:
            return self._backends.get(backend_id)

    def find(self, name: str) -> Backend:
        with self._lock:
            for _, b in self._backends.items():
                if b.name == name:
                    return b
        raise NotFound(f"Unknown backend name {name!r}")

    def list(self) -> List[Backend]:
        with self._lock:
            return [b for _, b in self._backends.items()]

    def set_available(self, backend_id: Handle, available: bool) -> Backend:
        with self._lock:
            current = self._backends.get(backend_id)
            updated = replace(current, available=bool(available))
            self._backends.set(backend_id, updated)
        log.info(f"Backend {current.name!r} availability -> {available}")
        return updated

    def unregister(self, backend_id: Handle) -> Backend:
        with self._lock:
            return self._backends.remove(backend_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._backends)


def register_default_backends(registry: BackendRegistry) -> List[Handle]:
    """Register the stock simulators."""
    return [
        registry.register(
            "Statevector Simulator",
            BackendKind.STATEVECTOR,
            max_qubits=32,
            max_shots=1_000_000,
            capabilities=Capabilities(custom_gates=True, noise_model=True, error_correction=True),
        ),
        registry.register(
            "Shot Simulator",
            BackendKind.SHOT_SAMPLING,
            max_qubits=20,
            max_shots=100_000,
            capabilities=Capabilities(custom_gates=True, noise_model=True, error_correction=False),
            gate_fidelity=0.999,
            readout_fidelity=0.99,
        ),
        registry.register(
            "GPU Simulator",
            BackendKind.GPU,
            max_qubits=40,
            max_shots=10_000_000,
            capabilities=Capabilities(custom_gates=True, noise_model=True, error_correction=True),
        ),
        registry.register(
            "Stabilizer Simulator",
            BackendKind.STABILIZER,
            max_qubits=1000,
            max_shots=10_000_000,
            capabilities=Capabilities(custom_gates=False, noise_model=True, error_correction=False),
        ),
    ]
