import numpy as np
import pytest

from scoresynth.envelopes import (
    ENVELOPES,
    EnvelopeParams,
    envelope_by_name,
    flat_envelope,
    linear_adsr,
)
from scoresynth.errors import InvalidConfigError

PARAMS = (0.1, 0.1, 0.7, 0.2)


def test_linear_adsr_segments() -> None:
    assert linear_adsr(0.0, *PARAMS) == pytest.approx(0.0)
    assert linear_adsr(0.05, *PARAMS) == pytest.approx(0.5)
    assert linear_adsr(0.1, *PARAMS) == pytest.approx(1.0)
    assert linear_adsr(0.15, *PARAMS) == pytest.approx(0.85)
    assert linear_adsr(0.5, *PARAMS) == pytest.approx(0.7)
    assert linear_adsr(0.9, *PARAMS) == pytest.approx(0.35)
    assert linear_adsr(1.0, *PARAMS) == pytest.approx(0.0, abs=1e-9)


def test_linear_adsr_vectorized_matches_scalar() -> None:
    t = np.linspace(0.0, 1.0, 101)
    vector = linear_adsr(t, *PARAMS)
    scalar = np.array([linear_adsr(float(x), *PARAMS) for x in t])
    assert np.array_equal(vector, scalar)
    assert np.all(vector >= -1e-12) and np.all(vector <= 1.0 + 1e-12)


def test_zero_width_attack_starts_silent() -> None:
    assert linear_adsr(0.0, 0.0, 0.2, 0.5, 0.2) == 0.0
    assert linear_adsr(0.1, 0.0, 0.2, 0.5, 0.2) == pytest.approx(0.75)


def test_zero_release_holds_sustain() -> None:
    assert linear_adsr(1.0, 0.1, 0.1, 0.6, 0.0) == pytest.approx(0.6)


def test_params_reject_overlong_ramps() -> None:
    with pytest.raises(InvalidConfigError, match="greater than 1.0"):
        EnvelopeParams(0.5, 0.3, 0.5, 0.3)


@pytest.mark.parametrize(
    "values",
    [(-0.1, 0.1, 0.5, 0.1), (0.1, 0.1, 1.5, 0.1), (0.1, 0.1, -0.2, 0.1)],
)
def test_params_reject_out_of_range(values: tuple[float, float, float, float]) -> None:
    with pytest.raises(InvalidConfigError):
        EnvelopeParams(*values)


def test_params_sustain_span() -> None:
    params = EnvelopeParams(*PARAMS)
    assert params.sustain_span == pytest.approx(0.6)
    assert params.as_tuple() == PARAMS


def test_flat_envelope() -> None:
    assert flat_envelope(0.3, *PARAMS) == 1.0
    assert np.array_equal(flat_envelope(np.zeros(4), *PARAMS), np.ones(4))


def test_envelope_by_name() -> None:
    assert envelope_by_name("adsr") is linear_adsr
    assert envelope_by_name("flat") is flat_envelope
    assert set(ENVELOPES) == {"adsr", "flat"}
    with pytest.raises(InvalidConfigError):
        envelope_by_name("gate")
