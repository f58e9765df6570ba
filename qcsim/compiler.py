# qcsim/compiler.py
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import Optional

from qcsim.errors import InvalidArgument
from qcsim.settings import Settings, get_settings

MAX_OPTIMIZATION_LEVEL = 3


class ErrorCorrectionCode(StrEnum):
    """System-wide error-correction scheme requested for execution."""

    NONE = "none"
    BIT_FLIP = "bit_flip"
    PHASE_FLIP = "phase_flip"
    SHOR = "shor"
    STEANE = "steane"
    SURFACE = "surface"
    TORIC = "toric"


@dataclass(frozen=True)
class CompilerOptions:
    """
    Compilation flags fixed when the system is created.

    Every job records the options it was submitted under. They describe the
    requested treatment only: gates always run in the order they were
    appended, whatever the level.

    Attributes
    ----------
    name : str
        Label shown in logs.
    optimize_gates, optimize_depth, use_hardware_layout : bool
        Requested optimisation passes.
    optimization_level : int
        0 (none) to 3 (aggressive).
    error_correction : ErrorCorrectionCode
        Anything but NONE requires a backend advertising error correction.
    """

    name: str = "qcsim"
    optimize_gates: bool = True
    optimize_depth: bool = True
    use_hardware_layout: bool = True
    optimization_level: int = 2
    error_correction: ErrorCorrectionCode = ErrorCorrectionCode.NONE

    def __post_init__(self):
        level = self.optimization_level
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= MAX_OPTIMIZATION_LEVEL:
            raise InvalidArgument(
                f"optimization_level must be an integer in 0..{MAX_OPTIMIZATION_LEVEL}, got {level!r}"
            )
        try:
            code = ErrorCorrectionCode(str(self.error_correction).strip().lower())
        except ValueError:
            valid = ", ".join(c.value for c in ErrorCorrectionCode)
            raise InvalidArgument(f"Unknown error-correction code {self.error_correction!r}. Valid: {valid}")
        object.__setattr__(self, "error_correction", code)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CompilerOptions":
        s = settings or get_settings()
        return cls(
            optimize_gates=s.COMPILER_OPTIMIZE_GATES,
            optimize_depth=s.COMPILER_OPTIMIZE_DEPTH,
            use_hardware_layout=s.COMPILER_HARDWARE_LAYOUT,
            optimization_level=s.COMPILER_OPTIMIZATION_LEVEL,
            error_correction=s.ERROR_CORRECTION,
        )

    def with_(self, **changes) -> "CompilerOptions":
        """Return a modified copy (validated again)."""
        return replace(self, **changes)

    @property
    def needs_error_correction(self) -> bool:
        return self.error_correction != ErrorCorrectionCode.NONE
