# qcsim/settings.py
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Runtime settings for the simulation core.
    """

    # --- Capacity ---
    MAX_QUBITS: int = 24
    DEFAULT_SHOTS: int = 1024

    # --- Executor pool ---
    WORKERS: int = 8
    QUEUE_SIZE: int = 64
    JOB_TIMEOUT_S: float = 300.0
    REGISTER_DEFAULT_BACKENDS: bool = True

    # --- Numerics ---
    SEED: int | None = None
    PROBABILITY_TOLERANCE: float = 1e-6

    # --- Noise (disabled unless asked for) ---
    NOISE_ENABLED: bool = False
    NOISE_DEPOLARIZATION: float = 0.0
    NOISE_BIT_FLIP: float = 0.0
    NOISE_PHASE_FLIP: float = 0.0
    NOISE_AMPLITUDE_DAMPING: float = 0.0
    NOISE_PHASE_DAMPING: float = 0.0
    NOISE_READOUT_0TO1: float = 0.0
    NOISE_READOUT_1TO0: float = 0.0

    # --- Compilation ---
    COMPILER_OPTIMIZE_GATES: bool = True
    COMPILER_OPTIMIZE_DEPTH: bool = True
    COMPILER_HARDWARE_LAYOUT: bool = True
    COMPILER_OPTIMIZATION_LEVEL: int = 2
    ERROR_CORRECTION: str = "none"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="QCS_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
