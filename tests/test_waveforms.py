import math

import numpy as np
import pytest

from scoresynth.errors import InvalidConfigError
from scoresynth.waveforms import (
    SAWTOOTH,
    SINE,
    SQUARE,
    TRIANGLE,
    WAVEFORMS,
    PeriodicWaveform,
    waveform_by_name,
)


def test_known_points() -> None:
    assert SINE.sample(math.pi / 2) == pytest.approx(1.0)
    assert TRIANGLE.sample(0.0) == pytest.approx(0.0)
    assert TRIANGLE.sample(math.pi / 2) == pytest.approx(1.0)
    assert TRIANGLE.sample(-math.pi / 2) == pytest.approx(-1.0)
    assert SQUARE.sample(0.1) == 1.0
    assert SQUARE.sample(math.pi + 0.1) == -1.0
    assert SAWTOOTH.sample(0.0) == pytest.approx(0.0)
    assert SAWTOOTH.sample(math.pi / 2) == pytest.approx(0.5)


def test_scalar_input_returns_float() -> None:
    assert isinstance(SINE.sample(0.3), float)
    assert isinstance(SQUARE(0.3), float)


@pytest.mark.parametrize("waveform", list(WAVEFORMS.values()), ids=list(WAVEFORMS.keys()))
def test_range_and_period(waveform: PeriodicWaveform) -> None:
    # keep away from the square/sawtooth jumps at multiples of π
    phases = np.linspace(0.05, 2 * math.pi - 0.05, 200)
    phases = phases[np.abs(phases - math.pi) > 0.05]
    values = waveform.sample(phases)

    assert waveform.period == pytest.approx(2 * math.pi)
    assert values.shape == phases.shape
    assert np.all(values <= 1.0) and np.all(values >= -1.0)
    assert np.allclose(waveform.sample(phases + waveform.period), values, atol=1e-9)


def test_square_uses_wrapped_phase() -> None:
    assert SQUARE.sample(4 * math.pi + 0.2) == 1.0
    assert SQUARE.sample(-0.2) == -1.0


def test_waveform_by_name() -> None:
    assert waveform_by_name("triangle") is TRIANGLE
    with pytest.raises(InvalidConfigError):
        waveform_by_name("noise")
