import math

import numpy as np
import pytest
from pydantic import ValidationError

from scoresynth.config import (
    EnvelopeConfig,
    GeneratorConfig,
    InstrumentConfig,
    RenderConfig,
    build_generator,
    build_instrument,
    parse_render_config,
)
from scoresynth.envelopes import EnvelopeParams, flat_envelope, linear_adsr
from scoresynth.errors import InvalidConfigError
from scoresynth.generators import (
    ExactGenerator,
    LinearGreedyGenerator,
    MemoizedGenerator,
    PeriodicGreedyGenerator,
)
from scoresynth.waveforms import SAWTOOTH, SQUARE


def test_envelope_config_to_params() -> None:
    config = EnvelopeConfig(attack=0.2, decay=0.1, sustain=0.5, release=0.3)
    assert config.to_params() == EnvelopeParams(0.2, 0.1, 0.5, 0.3)


def test_envelope_config_rejects_overlong_ramps() -> None:
    with pytest.raises(ValidationError, match="greater than 1.0"):
        EnvelopeConfig(attack=0.6, decay=0.3, release=0.3)


def test_build_generator_defaults_to_periodic_sine() -> None:
    generator = build_generator(GeneratorConfig())
    assert isinstance(generator, PeriodicGreedyGenerator)
    assert generator.waveform.name == "sine"


@pytest.mark.parametrize(
    ("strategy", "expected"),
    [
        ("exact", ExactGenerator),
        ("linear", LinearGreedyGenerator),
        ("periodic", PeriodicGreedyGenerator),
    ],
)
def test_build_generator_strategies(strategy: str, expected: type) -> None:
    generator = build_generator({"strategy": strategy, "waveform": "square"})
    assert isinstance(generator, expected)
    assert generator.waveform is SQUARE  # type: ignore[union-attr]


def test_build_generator_passes_greed_and_envelope() -> None:
    generator = build_generator(
        {
            "strategy": "linear",
            "greed": 3,
            "waveform": "sawtooth",
            "envelope": {"attack": 0.0, "decay": 0.5, "sustain": 0.2, "release": 0.5},
        }
    )
    assert isinstance(generator, LinearGreedyGenerator)
    assert generator.greed == 3
    assert generator.waveform is SAWTOOTH
    assert generator.params == EnvelopeParams(0.0, 0.5, 0.2, 0.5)


@pytest.mark.parametrize("backing", ["hashed", "ordered"])
def test_build_generator_memoized(backing: str) -> None:
    generator = build_generator({"strategy": "exact", "memoize": True, "cache_backing": backing})
    assert isinstance(generator, MemoizedGenerator)
    assert generator.cache_backing == backing
    assert isinstance(generator.backing, ExactGenerator)


@pytest.mark.parametrize(
    "payload",
    [
        {"waveform": "noise"},
        {"strategy": "fastest"},
        {"greed": -1},
        {"cache_backing": "lru"},
        {"envelope": {"attack": 0.5, "decay": 0.5, "release": 0.5}},
        {"unexpected": True},
    ],
)
def test_build_generator_rejects_bad_payloads(payload: dict[str, object]) -> None:
    with pytest.raises(InvalidConfigError):
        build_generator(payload)


def test_build_generator_rejects_other_types() -> None:
    with pytest.raises(InvalidConfigError):
        build_generator("sine")  # type: ignore[arg-type]


def test_build_instrument() -> None:
    instrument = build_instrument(
        {"name": "cello", "generator": {"strategy": "exact"}, "pan_right": math.pi / 4}
    )
    assert instrument.name == "cello"
    assert isinstance(instrument.generator, ExactGenerator)
    assert instrument.pan_right == pytest.approx(math.pi / 4)
    assert instrument.voices == []


def test_instrument_config_bounds_pan() -> None:
    with pytest.raises(ValidationError):
        InstrumentConfig(name="viola", pan_left=2.0)
    with pytest.raises(InvalidConfigError):
        build_instrument({"name": "viola", "pan_left": -0.5})


def test_render_config() -> None:
    assert parse_render_config() == RenderConfig()
    assert RenderConfig().sample_rate == 44_100
    assert RenderConfig().timeout_factor == 60.0
    parsed = parse_render_config({"sample_rate": 22_050, "concurrent": True, "max_workers": 2})
    assert parsed.concurrent
    assert parsed.max_workers == 2
    with pytest.raises(InvalidConfigError):
        parse_render_config({"sample_rate": 0})
    with pytest.raises(InvalidConfigError):
        parse_render_config({"max_workers": 0})


@pytest.mark.parametrize("strategy", ["exact", "linear", "periodic"])
def test_build_generator_envelope_shape(strategy: str) -> None:
    assert build_generator({"strategy": strategy}).envelope is linear_adsr  # type: ignore[union-attr]

    generator = build_generator({"strategy": strategy, "envelope_shape": "flat"})
    assert generator.envelope is flat_envelope  # type: ignore[union-attr]


def test_flat_envelope_renders_plain_waveform() -> None:
    generator = build_generator({"strategy": "exact", "envelope_shape": "flat"})
    samples = generator.render(5.0, 1.0, 0.5, 100)
    t = np.arange(100) / 100
    assert np.allclose(samples, 0.5 * np.sin(2.0 * np.pi * 5.0 * t))


def test_build_generator_rejects_unknown_envelope_shape() -> None:
    with pytest.raises(InvalidConfigError):
        build_generator({"envelope_shape": "exponential"})
