# qcsim/scheduler.py
from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from qcsim.errors import BackendUnavailable, InvalidTransition, QuantumError
from qcsim.jobs import ExecutionResult, Job, JobState, JobStatus, execute

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerStats:
    circuits_executed: int
    jobs_failed: int
    total_shots: int
    gates_executed: int
    noise_events: int
    total_simulation_time: float


class Scheduler:
    """
    Fixed pool of simulation workers fed by one coordinator thread.

    - ``enqueue`` appends to the pending deque under the shared lock and
      signals the condition variable.
    - The coordinator moves pending jobs into a bounded work queue; workers
      block on ``queue.get()`` (no polling).
    - A worker must ``claim`` a job (atomic SUBMITTED -> RUNNING under the
      lock) before running it, so each job runs at most once. The heavy
      simulation runs without the lock.
    - Completion is published under the lock and wakes ``wait`` callers.

    Cancellation is only possible while a job is still SUBMITTED; a running
    job cannot be interrupted.
    """

    def __init__(
        self,
        workers: int = 8,
        queue_size: int = 64,
        *,
        tolerance: float = 1e-6,
        clock: Callable[[], float] = time.monotonic,
    ):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.workers = workers
        self.tolerance = tolerance
        self._clock = clock

        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)
        self._pending: Deque[Job] = deque()
        self._queue: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=max(1, queue_size))
        self._threads: List[threading.Thread] = []
        self._coordinator: Optional[threading.Thread] = None
        self._running = False

        self._executed = 0
        self._failed = 0
        self._shots = 0
        self._gates = 0
        self._noise_events = 0
        self._sim_time = 0.0

    # ---------- lifecycle ----------
    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
        self._coordinator = threading.Thread(target=self._coordinate, name="qcsim-coordinator", daemon=True)
        self._coordinator.start()
        for i in range(self.workers):
            t = threading.Thread(target=self._work, args=(i,), name=f"qcsim-worker-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        log.info(f"Scheduler started with {self.workers} workers")

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop the pool. Jobs that never started are failed; running jobs
        finish first.
        """
        with self._cond:
            if not self._running:
                return
            self._running = False
            for job in self._pending:
                if job.state == JobState.SUBMITTED:
                    job.fail("Scheduler stopped before execution")
            self._pending.clear()
            self._cond.notify_all()

        # Coordinator first, so no job lands behind the sentinels
        if self._coordinator is not None:
            self._coordinator.join(timeout)
        for _ in self._threads:
            self._queue.put(None)
        for t in self._threads:
            t.join(timeout)
        self._threads.clear()
        self._coordinator = None
        log.info("Scheduler stopped")

    # ---------- submission side ----------
    def enqueue(self, job: Job) -> None:
        with self._cond:
            if not self._running:
                raise BackendUnavailable("Scheduler is not running")
            self._pending.append(job)
            self._cond.notify_all()

    def claim(self, job: Job) -> bool:
        """
        Atomically move ``job`` from SUBMITTED to RUNNING.

        Returns True for exactly one caller; every other (or a cancelled
        job) gets False.
        """
        with self._lock:
            if job.state != JobState.SUBMITTED:
                return False
            job.transition(JobState.RUNNING)
            return True

    def cancel(self, job: Job) -> JobStatus:
        """
        Cancel a job that has not started.

        Raises
        ------
        InvalidTransition
            The job is already running or finished.
        """
        with self._cond:
            if job.state != JobState.SUBMITTED:
                raise InvalidTransition(f"Job {job.id} is {job.state}; only submitted jobs can be cancelled")
            job.fail("Cancelled before execution")
            self._cond.notify_all()
            return job.status()

    def wait(self, job: Job, timeout: Optional[float] = None) -> JobStatus:
        """Block until ``job`` is COMPLETED or FAILED."""
        with self._cond:
            if not self._cond.wait_for(lambda: job.done, timeout):
                raise TimeoutError(f"Job {job.id} still {job.state} after {timeout}s")
            return job.status()

    def status(self, job: Job) -> JobStatus:
        with self._lock:
            return job.status()

    def stats(self) -> SchedulerStats:
        with self._lock:
            return SchedulerStats(
                circuits_executed=self._executed,
                jobs_failed=self._failed,
                total_shots=self._shots,
                gates_executed=self._gates,
                noise_events=self._noise_events,
                total_simulation_time=self._sim_time,
            )

    # ---------- threads ----------
    def _coordinate(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending or not self._running)
                if not self._running:
                    return
                job = self._pending.popleft()
            # May block on a full queue; the lock is not held here
            self._queue.put(job)

    def _work(self, worker_id: int) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                if not self._running:
                    with self._cond:
                        if job.state == JobState.SUBMITTED:
                            job.fail("Scheduler stopped before execution")
                            self._cond.notify_all()
                    continue
                self.run_job(job, worker_id)
            finally:
                self._queue.task_done()

    def run_job(self, job: Job, worker_id: int = 0) -> bool:
        """
        Claim and execute ``job`` on the calling thread.

        Returns False if another worker (or a cancel) got there first.
        Failures are recorded on the job; nothing propagates.
        """
        if not self.claim(job):
            log.debug(f"Worker {worker_id}: job {job.id} already {job.state}, skipping")
            return False

        log.info(f"Worker {worker_id} executing job {job.id} ({job.circuit_name!r} on {job.backend.name!r})")
        start = self._clock()
        result: Optional[ExecutionResult] = None
        message = ""
        try:
            result = execute(job, tolerance=self.tolerance, clock=self._clock)
        except QuantumError as e:
            message = f"{type(e).__name__}: {e}"
        except MemoryError as e:
            message = f"ResourceExhausted: {e}"
        except Exception as e:
            log.exception(f"Unexpected error in job {job.id}")
            message = f"ExecutionFailed: {type(e).__name__}: {e}"

        with self._cond:
            if result is not None:
                job.complete(result)
                self._executed += 1
                self._shots += job.shots
                self._gates += result.gates_executed
                self._noise_events += result.noise_events
                self._sim_time += result.elapsed
            else:
                job.fail(message, self._clock() - start)
                self._failed += 1
            self._cond.notify_all()

        if result is not None:
            log.info(f"Job {job.id} completed in {result.elapsed:.3f}s")
        else:
            log.error(f"Job {job.id} failed: {message}")
        return True
