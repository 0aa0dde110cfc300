"""
Waveforms: pure functions from phase (radians) to amplitude in [-1, 1].

Every waveform accepts either a scalar phase or a numpy array of phases and
evaluates element-wise, so generators can render whole buffers in one call.
The four canonical shapes are periodic with period 2π and are exposed as
`PeriodicWaveform` instances; anything else that is only a `Waveform` cannot
be used by period-based generators.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Literal, TypeAlias, overload

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray: TypeAlias = NDArray[np.float64]
PhaseFn: TypeAlias = Callable[[Any], Any]
WaveformName = Literal["sine", "triangle", "square", "sawtooth"]

TWO_PI = 2.0 * math.pi
HALF_PI = math.pi / 2.0


@dataclass(frozen=True, slots=True)
class Waveform:
    """A named phase → amplitude function."""

    name: str
    fn: PhaseFn

    @overload
    def sample(self, phase: float) -> float: ...

    @overload
    def sample(self, phase: FloatArray) -> FloatArray: ...

    def sample(self, phase: float | FloatArray) -> float | FloatArray:
        if np.ndim(phase) == 0:
            return float(self.fn(phase))
        return np.asarray(self.fn(phase), dtype=np.float64)

    def __call__(self, phase: float | FloatArray) -> float | FloatArray:
        return self.sample(phase)


@dataclass(frozen=True, slots=True)
class PeriodicWaveform(Waveform):
    """A waveform that repeats every `period` radians."""

    period: float = TWO_PI


def _sine(phase: Any) -> Any:
    return np.sin(phase)


def _triangle(phase: Any) -> Any:
    # shifted by π/2 so the ramp starts at -1
    modt = np.mod(phase + HALF_PI, TWO_PI)
    rising = (2.0 / math.pi) * modt - 1.0
    falling = (-2.0 / math.pi) * (modt - math.pi) + 1.0
    return np.where(modt <= math.pi, rising, falling)


def _square(phase: Any) -> Any:
    modt = np.mod(phase, TWO_PI)
    return np.where(modt <= math.pi, 1.0, -1.0)


def _sawtooth(phase: Any) -> Any:
    modt = np.mod(phase + math.pi, TWO_PI)
    return (1.0 / math.pi) * modt - 1.0


SINE = PeriodicWaveform("sine", _sine)
TRIANGLE = PeriodicWaveform("triangle", _triangle)
SQUARE = PeriodicWaveform("square", _square)
SAWTOOTH = PeriodicWaveform("sawtooth", _sawtooth)

WAVEFORMS: Mapping[WaveformName, PeriodicWaveform] = MappingProxyType(
    {
        "sine": SINE,
        "triangle": TRIANGLE,
        "square": SQUARE,
        "sawtooth": SAWTOOTH,
    }
)


def waveform_by_name(name: str) -> PeriodicWaveform:
    try:
        return WAVEFORMS[name]  # type: ignore[index]
    except KeyError as exc:
        raise InvalidConfigError(
            f"Unknown waveform: {name!r}. Valid: {list(WAVEFORMS.keys())}"
        ) from exc
