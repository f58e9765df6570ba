# qcsim/__init__.py
import importlib.metadata

from .algorithms import GroverRun, apply_qft, build_grover, build_qft, run_grover
from .backends import Backend, BackendKind, Capabilities
from .circuit import Circuit, Measurement
from .compiler import CompilerOptions, ErrorCorrectionCode
from .errors import (
    BackendUnavailable,
    CapacityExceeded,
    ExecutionFailed,
    InvalidArgument,
    InvalidTransition,
    NotFound,
    QuantumError,
    ResourceExhausted,
    UnsupportedFeature,
)
from .gates import GateType, make_gate
from .jobs import JobState, JobStatus
from .noise import NoiseModel
from .registry import Handle
from .state import QuantumState
from .system import QuantumSystem

__version__ = importlib.metadata.version("qcsim")
