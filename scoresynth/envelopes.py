from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Literal, Mapping, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray: TypeAlias = NDArray[np.float64]
# (t_norm, attack, decay, sustain, release) -> gain; t_norm may be a scalar or an array
EnvelopeFn: TypeAlias = Callable[[Any, float, float, float, float], Any]
EnvelopeShape = Literal["adsr", "flat"]


@dataclass(frozen=True, slots=True)
class EnvelopeParams:
    """ADSR shape expressed as fractions of a note's duration.

    `attack`, `decay` and `release` are proportions of the note spent in each
    ramp; `sustain` is the gain held between decay and release. The sustain
    span is whatever remains, so the three proportions may not exceed 1.0.
    """

    attack: float
    decay: float
    sustain: float
    release: float

    def __post_init__(self) -> None:
        for label, value in (
            ("attack", self.attack),
            ("decay", self.decay),
            ("release", self.release),
        ):
            if value < 0.0:
                raise InvalidConfigError(f"{label} must be non-negative, got {value}")
        if not 0.0 <= self.sustain <= 1.0:
            raise InvalidConfigError(f"sustain must be within [0, 1], got {self.sustain}")
        if self.attack + self.decay + self.release > 1.0:
            raise InvalidConfigError(
                "The sum of the attack, decay, and release is greater than 1.0"
            )

    @property
    def sustain_span(self) -> float:
        return 1.0 - (self.attack + self.decay + self.release)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.attack, self.decay, self.sustain, self.release)


def linear_adsr(
    t_norm: Any,
    attack: float,
    decay: float,
    sustain: float,
    release: float,
) -> Any:
    """Default envelope: four straight ramps over normalized note time.

    A sample sitting exactly on a boundary belongs to the earlier segment.
    Zero-width segments evaluate to their starting level.
    """
    t = np.asarray(t_norm, dtype=np.float64)
    time_sustain = 1.0 - (attack + decay + release)
    release_start = time_sustain + decay + attack

    if attack > 0.0:
        rise = (1.0 / attack) * (t - 0.0) + 0.0
    else:
        rise = np.zeros_like(t)
    if decay > 0.0:
        fall = ((sustain - 1.0) / decay) * (t - attack) + 1.0
    else:
        fall = np.ones_like(t)
    if release > 0.0:
        tail = (-sustain / release) * (t - release_start) + sustain
    else:
        tail = np.full_like(t, sustain)

    gain = np.select(
        [t <= attack, t - attack <= decay, t - attack - decay <= time_sustain],
        [rise, fall, np.full_like(t, sustain)],
        default=tail,
    )
    if gain.ndim == 0:
        return float(gain)
    return gain


def flat_envelope(
    t_norm: Any,
    attack: float,
    decay: float,
    sustain: float,
    release: float,
) -> Any:
    """Unity gain for the whole note; ignores the ADSR shape."""
    _ = (attack, decay, sustain, release)
    t = np.asarray(t_norm, dtype=np.float64)
    if t.ndim == 0:
        return 1.0
    return np.ones_like(t)


ENVELOPES: Mapping[EnvelopeShape, EnvelopeFn] = MappingProxyType(
    {
        "adsr": linear_adsr,
        "flat": flat_envelope,
    }
)


def envelope_by_name(name: str) -> EnvelopeFn:
    try:
        return ENVELOPES[name]  # type: ignore[index]
    except KeyError as exc:
        raise InvalidConfigError(
            f"Unknown envelope shape: {name!r}. Valid: {list(ENVELOPES.keys())}"
        ) from exc
