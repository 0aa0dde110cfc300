from __future__ import annotations

import math
from enum import Enum

from .errors import InvalidConfigError

MAX_VELOCITY = 127.0


def velocity_to_amplitude(velocity: float) -> float:
    """Map a MIDI-style key velocity (0..127) to a linear gain.

    Uses a 40 dB range: velocity 127 is unity gain.
    """
    if velocity <= 0.0:
        return 0.0
    decibels = 40.0 * math.log10(velocity / MAX_VELOCITY)
    return 10.0 ** (decibels / 20.0)


class Dynamics(Enum):
    PPP = 16
    PP = 32
    P = 48
    MP = 64
    MF = 80
    F = 96
    FF = 112
    FFF = 127

    @property
    def velocity(self) -> int:
        return int(self.value)

    @property
    def amplitude(self) -> float:
        return velocity_to_amplitude(self.value)

    @classmethod
    def parse(cls, marking: str | Dynamics) -> Dynamics:
        if isinstance(marking, Dynamics):
            return marking
        try:
            return cls[marking.strip().upper()]
        except (KeyError, AttributeError) as exc:
            raise InvalidConfigError(
                f"Unknown dynamics marking: {marking!r}. Valid: {[d.name.lower() for d in cls]}"
            ) from exc


def marking_amplitude(marking: str | Dynamics) -> float:
    return Dynamics.parse(marking).amplitude


DEFAULT_VOLUME = Dynamics.MF.amplitude
