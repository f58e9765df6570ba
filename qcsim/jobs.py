# qcsim/jobs.py
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Callable, Optional, Tuple

import numpy as np

from qcsim.backends import Backend, BackendKind
from qcsim.circuit import Measurement, register_values
from qcsim.compiler import CompilerOptions
from qcsim.engine import apply_gate
from qcsim.errors import CapacityExceeded, ExecutionFailed, InvalidTransition, ResourceExhausted
from qcsim.gates import Gate
from qcsim.noise import NoiseModel, apply_gate_noise, apply_readout_error
from qcsim.registry import Handle
from qcsim.state import QuantumState
from qcsim.stim_backend import sample_counts

log = logging.getLogger(__name__)


class JobState(StrEnum):
    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Forward-only lifecycle; SUBMITTED -> FAILED is cancellation
_TRANSITIONS = {
    JobState.SUBMITTED: {JobState.RUNNING, JobState.FAILED},
    JobState.RUNNING: {JobState.COMPLETED, JobState.FAILED},
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class JobStatus:
    """Snapshot of a job's bookkeeping, safe to hand to callers."""

    id: Handle
    state: JobState
    error: Optional[str]
    shots: int
    submitted_at: datetime
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    elapsed: Optional[float]

    @property
    def done(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)


@dataclass
class ExecutionResult:
    counts: np.ndarray
    final_state: Optional[QuantumState]
    gates_executed: int
    noise_events: int
    elapsed: float


class Job:
    """
    One request to run a circuit on a backend for N shots.

    The circuit's gates and measurement plan are snapshotted at submission,
    so later appends to the circuit never leak into a queued job. The
    histogram is allocated here, at submission; it has 2^qubit_count
    entries and is the dominant memory cost.
    """

    def __init__(
        self,
        id: Handle,
        circuit_id: Handle,
        circuit_name: str,
        qubit_count: int,
        gates: Tuple[Gate, ...],
        plan: Tuple[Measurement, ...],
        backend: Backend,
        shots: int,
        noise: NoiseModel,
        seed: Optional[int] = None,
        timeout: Optional[float] = None,
        compiler: Optional[CompilerOptions] = None,
    ):
        self.id = id
        self.circuit_id = circuit_id
        self.circuit_name = circuit_name
        self.qubit_count = qubit_count
        self.gates = gates
        self.plan = plan
        self.backend = backend
        self.shots = int(shots)
        self.noise = noise
        self.seed = seed
        self.timeout = timeout
        self.compiler = compiler or CompilerOptions()

        self.state = JobState.SUBMITTED
        self.error: Optional[str] = None
        try:
            self.measurement_counts = np.zeros(1 << qubit_count, dtype=np.uint64)
        except (MemoryError, ValueError) as e:
            raise ResourceExhausted(f"Cannot allocate histogram for {qubit_count} qubits: {e}")
        self.final_state: Optional[QuantumState] = None

        self.submitted_at = _now()
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.elapsed: Optional[float] = None

    # ---------- lifecycle ----------
    def transition(self, new_state: JobState) -> None:
        """Move to ``new_state``; the caller holds the scheduler lock."""
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"Job {self.id}: cannot go from {self.state} to {new_state}")
        self.state = new_state
        if new_state == JobState.RUNNING:
            self.started_at = _now()
        elif new_state in (JobState.COMPLETED, JobState.FAILED):
            self.finished_at = _now()

    def complete(self, result: ExecutionResult) -> None:
        self.transition(JobState.COMPLETED)
        self.measurement_counts = result.counts
        self.final_state = result.final_state
        self.elapsed = result.elapsed

    def fail(self, message: str, elapsed: Optional[float] = None) -> None:
        self.transition(JobState.FAILED)
        self.error = message
        # A partial histogram is never reported
        self.measurement_counts = np.zeros_like(self.measurement_counts)
        self.final_state = None
        self.elapsed = elapsed

    @property
    def done(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)

    def status(self) -> JobStatus:
        return JobStatus(
            id=self.id,
            state=self.state,
            error=self.error,
            shots=self.shots,
            submitted_at=self.submitted_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            elapsed=self.elapsed,
        )

    def copy_counts(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Copy the histogram out, into ``out`` when given.

        Raises
        ------
        CapacityExceeded
            ``out`` holds fewer than 2^qubit_count entries.
        """
        n = self.measurement_counts.size
        if out is None:
            return self.measurement_counts.copy()
        if out.size < n:
            raise CapacityExceeded(f"Result buffer has {out.size} entries, job needs {n}")
        out[:n] = self.measurement_counts
        return out

    def __repr__(self) -> str:
        return f"Job(id={self.id}, circuit={self.circuit_name!r}, backend={self.backend.name!r}, state={self.state})"


# ---------- execution ----------
def _check_probability(state: QuantumState, tolerance: float, where: str) -> None:
    """Renormalise when total probability drifted beyond ``tolerance``."""
    total = state.total_probability()
    if not math.isfinite(total):
        raise ExecutionFailed(f"Non-finite total probability {where}")
    if abs(total - 1.0) > tolerance:
        log.warning(f"Probability drift {total - 1.0:+.3e} {where}; renormalising")
        state.normalize()


def sample_register(
    state: QuantumState,
    plan: Tuple[Measurement, ...],
    shots: int,
    noise: NoiseModel,
    rng: np.random.Generator,
    size: int,
) -> np.ndarray:
    """
    Sample ``shots`` outcomes of the measurement plan and histogram them.

    Outcomes are drawn from the joint distribution, which equals measuring
    the bound qubits one after another with collapse. Readout error flips
    each measured bit with the 0->1 / 1->0 rates.
    """
    idx = state.sample(shots, rng)
    bits = np.empty((shots, len(plan)), dtype=np.int64)
    for j, m in enumerate(plan):
        bits[:, j] = (idx >> m.qubit) & 1
    bits = apply_readout_error(bits, noise, rng)
    values = register_values(bits, plan)
    return np.bincount(values, minlength=size).astype(np.uint64)


def execute(
    job: Job,
    *,
    tolerance: float = 1e-6,
    clock: Callable[[], float] = time.monotonic,
) -> ExecutionResult:
    """
    Run one job to completion on the calling thread.

    1. fresh |0...0> state
    2. ordered fold of the gates, per-gate noise, probability self-check
    3. ``shots`` samples of the measurement plan into the histogram
    4. keep the final state for state-vector kinds

    Raises ExecutionFailed (or another QuantumError) on failure; the caller
    records it on the job.
    """
    start = clock()
    size = job.measurement_counts.size

    if job.backend.kind == BackendKind.STABILIZER:
        counts = sample_counts(
            job.gates, job.plan, job.qubit_count, job.shots, noise=job.noise, seed=job.seed, size=size
        )
        return ExecutionResult(counts, None, len(job.gates), 0, clock() - start)

    rng = np.random.default_rng(job.seed)
    state = QuantumState(job.qubit_count)
    noise_events = 0
    for k, gate in enumerate(job.gates):
        apply_gate(state, gate)
        if job.noise.has_gate_noise:
            noise_events += len(apply_gate_noise(state, gate.qubits, job.noise, rng))
        _check_probability(state, tolerance, f"after gate {k} ({gate.label})")
        if job.timeout is not None and clock() - start > job.timeout:
            raise ExecutionFailed(f"Timed out after {k + 1}/{len(job.gates)} gates ({job.timeout:.3g}s)")

    counts = sample_register(state, job.plan, job.shots, job.noise, rng, size)
    final_state = state if job.backend.records_state else None
    return ExecutionResult(counts, final_state, len(job.gates), noise_events, clock() - start)
