# qcsim/errors.py
from __future__ import annotations


class QuantumError(Exception):
    """Base class for every error raised by qcsim."""


class InvalidArgument(QuantumError, ValueError):
    """Bad qubit/classical-bit index, zero qubit count, arity or parameter mismatch."""


class UnsupportedFeature(InvalidArgument):
    """The resolved backend does not advertise a capability the job needs."""


class CapacityExceeded(QuantumError):
    """Qubit count, shots or buffer size beyond a backend or global limit."""


class ResourceExhausted(QuantumError, MemoryError):
    """Amplitude buffer or histogram could not be allocated."""


class NotFound(QuantumError, KeyError):
    """Unknown (or stale) circuit, backend or job id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class BackendUnavailable(QuantumError):
    """Backend is marked unavailable or has no executor for its kind."""


class ExecutionFailed(QuantumError):
    """Raised inside execution; the message ends up on the failed Job."""


class InvalidTransition(QuantumError):
    """Job state machine contract violation (e.g. cancelling a running job)."""
