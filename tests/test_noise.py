# tests/test_noise.py
import math

import numpy as np
import pytest

from qcsim.engine import apply_gate
from qcsim.errors import InvalidArgument
from qcsim.gates import make_gate
from qcsim.noise import NoiseModel, apply_gate_noise, apply_readout_error, readout_flip_probability
from qcsim.settings import Settings
from qcsim.state import QuantumState


@pytest.mark.parametrize("field", ["depolarization_rate", "bit_flip_rate", "readout_error_0to1"])
@pytest.mark.parametrize("value", [-0.1, 1.5, math.nan])
def test_rates_must_be_probabilities(field, value):
    with pytest.raises(InvalidArgument):
        NoiseModel(**{field: value})


def test_disabled_model_draws_no_randomness():
    st = QuantumState(2)
    rng = np.random.default_rng(1)
    before = rng.bit_generator.state
    noise = NoiseModel(bit_flip_rate=1.0, enabled=False)
    assert apply_gate_noise(st, [0, 1], noise, rng) == []
    assert rng.bit_generator.state == before
    assert st.probabilities[0] == 1.0


def test_certain_bit_flip():
    st = QuantumState(2)
    noise = NoiseModel(bit_flip_rate=1.0, enabled=True)
    events = apply_gate_noise(st, [1], noise, np.random.default_rng(0))
    assert events == ["bit_flip@1"]
    assert pytest.approx(st.probabilities[0b10]) == 1.0


def test_certain_phase_flip_turns_plus_into_minus():
    st = QuantumState(1)
    apply_gate(st, make_gate("H", [0]))
    apply_gate_noise(st, [0], NoiseModel(phase_flip_rate=1.0, enabled=True), np.random.default_rng(0))
    assert pytest.approx(st.expectation_pauli(0, "X")) == -1.0


def test_full_amplitude_damping_relaxes_to_ground():
    st = QuantumState(1)
    apply_gate(st, make_gate("X", [0]))
    events = apply_gate_noise(st, [0], NoiseModel(amplitude_damping_rate=1.0, enabled=True), np.random.default_rng(0))
    assert events == ["amplitude_damping@0"]
    assert pytest.approx(st.probabilities[0]) == 1.0


def test_partial_amplitude_damping_keeps_norm():
    rng = np.random.default_rng(3)
    noise = NoiseModel(amplitude_damping_rate=0.3, phase_damping_rate=0.2, depolarization_rate=0.1, enabled=True)
    st = QuantumState(2)
    for _ in range(50):
        apply_gate(st, make_gate("H", [0]))
        apply_gate(st, make_gate("CNOT", [0, 1]))
        apply_gate_noise(st, [0, 1], noise, rng)
        assert abs(st.total_probability() - 1.0) < 1e-9


def test_depolarizing_event_names():
    st = QuantumState(1)
    events = apply_gate_noise(st, [0], NoiseModel(depolarization_rate=1.0, enabled=True), np.random.default_rng(5))
    assert len(events) == 1
    assert events[0] in {"depolarize:X@0", "depolarize:Y@0", "depolarize:Z@0"}


@pytest.mark.parametrize("p1", [0.0, 0.3, 1.0])
@pytest.mark.parametrize("e01,e10", [(0.0, 0.0), (0.2, 0.1), (1.0, 1.0)])
def test_readout_probability_stays_in_range(p1, e01, e10):
    noise = NoiseModel(readout_error_0to1=e01, readout_error_1to0=e10, enabled=True)
    p = readout_flip_probability(p1, noise)
    assert 0.0 <= p <= 1.0


def test_readout_error_flips_bits():
    bits = np.array([[0, 1], [1, 0]])
    noise = NoiseModel(readout_error_0to1=1.0, readout_error_1to0=0.0, enabled=True)
    out = apply_readout_error(bits, noise, np.random.default_rng(0))
    assert out.tolist() == [[1, 1], [1, 1]]
    assert apply_readout_error(bits, NoiseModel(), np.random.default_rng(0)) is bits


def test_from_settings_and_copy():
    s = Settings(NOISE_ENABLED=True, NOISE_BIT_FLIP=0.25, NOISE_READOUT_1TO0=0.1)
    noise = NoiseModel.from_settings(s)
    assert noise.enabled
    assert noise.bit_flip_rate == 0.25
    assert noise.has_gate_noise and noise.has_readout_noise
    quiet = noise.with_(enabled=False)
    assert not quiet.has_gate_noise
    assert noise.enabled
    with pytest.raises(InvalidArgument):
        noise.with_(bit_flip_rate=2.0)
