# qcsim/system.py
from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

import numpy as np

from qcsim.backends import Backend, BackendKind, BackendRegistry, Capabilities, register_default_backends
from qcsim.circuit import Circuit, Measurement
from qcsim.compiler import CompilerOptions
from qcsim.errors import (
    BackendUnavailable,
    CapacityExceeded,
    ExecutionFailed,
    InvalidArgument,
    InvalidTransition,
    UnsupportedFeature,
)
from qcsim.gates import Gate, GateType
from qcsim.jobs import Job, JobState, JobStatus
from qcsim.noise import NoiseModel
from qcsim.registry import Handle, Registry
from qcsim.scheduler import Scheduler, SchedulerStats
from qcsim.settings import Settings, get_settings
from qcsim.state import QuantumState
from qcsim.stim_backend import check_supported

log = logging.getLogger(__name__)

# Above this many histogram entries submission still succeeds, but loudly
LARGE_HISTOGRAM = 1 << 20


class QuantumSystem:
    """
    Process-level entry point: circuit and job registries, backend registry
    and the worker pool.

    Usage
    -----
    >>> with QuantumSystem() as qs:
    ...     c = qs.create_circuit("bell", 2, 2)
    ...     qs.add_gate(c, "H", [0])
    ...     qs.add_gate(c, "CNOT", [0, 1])
    ...     job = qs.submit_job(c, qs.find_backend("Statevector Simulator").id, 1000, seed=1)
    ...     counts = qs.get_job_results(qs.wait(job).id)
    """

    def __init__(
        self,
        noise: Optional[NoiseModel] = None,
        *,
        settings: Optional[Settings] = None,
        compiler: Optional[CompilerOptions] = None,
        workers: Optional[int] = None,
        register_defaults: Optional[bool] = None,
    ):
        self.settings = settings or get_settings()
        self.noise = noise if noise is not None else NoiseModel.from_settings(self.settings)
        self.compiler = compiler if compiler is not None else CompilerOptions.from_settings(self.settings)

        self._lock = threading.Lock()
        self._circuits: Registry[Circuit] = Registry("circuit")
        self._jobs: Registry[Job] = Registry("job")
        self.backends_registry = BackendRegistry()

        if register_defaults is None:
            register_defaults = self.settings.REGISTER_DEFAULT_BACKENDS
        if register_defaults:
            register_default_backends(self.backends_registry)

        self.scheduler = Scheduler(
            workers or self.settings.WORKERS,
            self.settings.QUEUE_SIZE,
            tolerance=self.settings.PROBABILITY_TOLERANCE,
        )
        self.scheduler.start()
        log.info(
            f"Quantum system initialised: {self.scheduler.workers} workers, "
            f"{len(self.backends_registry)} backends, max {self.settings.MAX_QUBITS} qubits, "
            f"compiler level {self.compiler.optimization_level}, error correction {self.compiler.error_correction}"
        )

    # ---------- lifecycle ----------
    def __enter__(self) -> "QuantumSystem":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the workers and release every circuit and job."""
        self.scheduler.stop(timeout)
        with self._lock:
            self._circuits.clear()
            self._jobs.clear()
        log.info("Quantum system shut down")

    # ---------- circuits ----------
    def create_circuit(self, name: str, qubit_count: int, classical_bits: int) -> Handle:
        circuit = Circuit(name, qubit_count, classical_bits, max_qubits=self.settings.MAX_QUBITS)
        with self._lock:
            handle = self._circuits.add(circuit)
        log.info(f"Created circuit {name!r} ({qubit_count} qubits, {classical_bits} clbits) as {handle}")
        return handle

    def circuit(self, circuit_id: Handle) -> Circuit:
        with self._lock:
            return self._circuits.get(circuit_id)

    def add_gate(
        self,
        circuit_id: Handle,
        kind: GateType | str,
        qubits: Sequence[int],
        params: Sequence[float] = (),
        matrix: Optional[np.ndarray] = None,
        *,
        name: Optional[str] = None,
    ) -> Gate:
        return self.circuit(circuit_id).add_gate(kind, qubits, params, matrix, name=name)

    def add_measurement(self, circuit_id: Handle, qubit: int, clbit: int) -> Measurement:
        return self.circuit(circuit_id).add_measurement(qubit, clbit)

    def destroy_circuit(self, circuit_id: Handle) -> None:
        """Forget a circuit. Jobs already submitted keep their own snapshot."""
        with self._lock:
            circuit = self._circuits.remove(circuit_id)
        log.debug(f"Destroyed circuit {circuit.name!r} ({circuit_id})")

    # ---------- backends ----------
    def register_backend(
        self,
        name: str,
        kind: BackendKind | str,
        *,
        max_qubits: int,
        max_shots: int,
        capabilities: Optional[Capabilities] = None,
        gate_fidelity: float = 1.0,
        readout_fidelity: float = 1.0,
        **characteristics: float,
    ) -> Handle:
        return self.backends_registry.register(
            name,
            kind,
            max_qubits=max_qubits,
            max_shots=max_shots,
            capabilities=capabilities,
            gate_fidelity=gate_fidelity,
            readout_fidelity=readout_fidelity,
            **characteristics,
        )

    def backend(self, backend_id: Handle) -> Backend:
        return self.backends_registry.resolve(backend_id)

    def backends(self) -> List[Backend]:
        return self.backends_registry.list()

    def find_backend(self, name: str) -> Backend:
        return self.backends_registry.find(name)

    def set_backend_available(self, backend_id: Handle, available: bool) -> Backend:
        return self.backends_registry.set_available(backend_id, available)

    # ---------- jobs ----------
    def submit_job(
        self,
        circuit_id: Handle,
        backend_id: Handle,
        shots: int,
        *,
        noise: Optional[NoiseModel] = None,
        seed: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Handle:
        """
        Validate a run request and queue it.

        Every check happens before the job exists, so a rejected request
        leaves nothing behind.

        Raises
        ------
        NotFound
            Unknown circuit or backend id.
        BackendUnavailable
            Backend marked unavailable, or its kind has no executor.
        CapacityExceeded
            Shots, qubits or classical register beyond a limit.
        UnsupportedFeature
            Circuit or noise needs a capability the backend lacks.
        ResourceExhausted
            The results histogram could not be allocated.
        """
        circuit = self.circuit(circuit_id)
        backend = self.backend(backend_id)

        if not backend.available:
            raise BackendUnavailable(f"Backend {backend.name!r} is unavailable")
        if not backend.executable:
            raise BackendUnavailable(f"Backend {backend.name!r} ({backend.kind}) has no executor")

        shots = int(shots)
        if shots < 1:
            raise InvalidArgument(f"shots must be >= 1, got {shots}")
        if shots > backend.max_shots:
            raise CapacityExceeded(f"{shots} shots exceeds {backend.name!r} limit of {backend.max_shots}")

        n = circuit.qubit_count
        if n > backend.max_qubits:
            raise CapacityExceeded(f"{n} qubits exceeds {backend.name!r} limit of {backend.max_qubits}")
        if n > self.settings.MAX_QUBITS:
            raise CapacityExceeded(f"{n} qubits exceeds the global limit of {self.settings.MAX_QUBITS}")

        gates, measured = circuit.snapshot()
        plan = circuit.measurement_plan(measured)
        widest = max((m.clbit for m in plan), default=-1)
        if widest >= n:
            raise CapacityExceeded(
                f"Classical bit {widest} does not fit a histogram of 2^{n} entries; "
                f"use at most {n} classical bits"
            )

        job_noise = noise if noise is not None else self.noise
        if any(g.kind == GateType.CUSTOM for g in gates) and not backend.capabilities.custom_gates:
            raise UnsupportedFeature(f"Backend {backend.name!r} does not support custom gates")
        if (job_noise.has_gate_noise or job_noise.has_readout_noise) and not backend.capabilities.noise_model:
            raise UnsupportedFeature(f"Backend {backend.name!r} does not support noise models")
        if self.compiler.needs_error_correction and not backend.capabilities.error_correction:
            raise UnsupportedFeature(
                f"Backend {backend.name!r} does not support error correction ({self.compiler.error_correction})"
            )
        if backend.kind == BackendKind.STABILIZER:
            check_supported(gates, job_noise)

        if seed is None:
            seed = self.settings.SEED
        if timeout is None:
            timeout = self.settings.JOB_TIMEOUT_S

        if (1 << n) > LARGE_HISTOGRAM:
            log.warning(f"Job on {circuit.name!r} allocates a histogram of 2^{n} entries")

        with self._lock:
            handle = self._jobs.add_with(
                lambda h: Job(
                    id=h,
                    circuit_id=circuit_id,
                    circuit_name=circuit.name,
                    qubit_count=n,
                    gates=gates,
                    plan=plan,
                    backend=backend,
                    shots=shots,
                    noise=job_noise,
                    seed=seed,
                    timeout=timeout,
                    compiler=self.compiler,
                )
            )
            job = self._jobs.get(handle)
        try:
            self.scheduler.enqueue(job)
        except BackendUnavailable:
            with self._lock:
                self._jobs.remove(handle)
            raise
        log.info(f"Submitted job {handle}: {circuit.name!r} on {backend.name!r}, {shots} shots")
        return handle

    def job(self, job_id: Handle) -> Job:
        with self._lock:
            return self._jobs.get(job_id)

    def get_job_status(self, job_id: Handle) -> JobStatus:
        return self.scheduler.status(self.job(job_id))

    def get_job_results(self, job_id: Handle, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Copy the histogram of a completed job (into ``out`` when given).

        Raises
        ------
        InvalidTransition
            The job has not finished yet.
        ExecutionFailed
            The job failed; the message is the job's error.
        CapacityExceeded
            ``out`` is smaller than 2^qubit_count.
        """
        job = self.job(job_id)
        status = self.scheduler.status(job)
        if status.state == JobState.FAILED:
            raise ExecutionFailed(status.error or "Job failed")
        if status.state != JobState.COMPLETED:
            raise InvalidTransition(f"Job {job_id} is still {status.state}")
        return job.copy_counts(out)

    def get_final_state(self, job_id: Handle) -> Optional[QuantumState]:
        """Final state of a completed state-vector job, else None."""
        job = self.job(job_id)
        if self.scheduler.status(job).state != JobState.COMPLETED or job.final_state is None:
            return None
        return job.final_state.copy()

    def wait(self, job_id: Handle, timeout: Optional[float] = None) -> JobStatus:
        return self.scheduler.wait(self.job(job_id), timeout)

    def cancel_job(self, job_id: Handle) -> JobStatus:
        return self.scheduler.cancel(self.job(job_id))

    def release_job(self, job_id: Handle) -> None:
        """Drop a finished job and its histogram."""
        job = self.job(job_id)
        if not self.scheduler.status(job).done:
            raise InvalidTransition(f"Job {job_id} is still {job.state}; cancel or wait first")
        with self._lock:
            self._jobs.remove(job_id)

    def statistics(self) -> SchedulerStats:
        return self.scheduler.stats()
