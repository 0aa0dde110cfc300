"""
Score model: notes grouped into chords, chords sequenced into voices, and
instruments (each with its own voices and dynamics overlay) collected into a
`Score` keyed by integer index.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .config import RenderConfig, parse_render_config
from .direction import MusicalDirection, PiecewiseMusicalDirection
from .dynamics import DEFAULT_VOLUME, Dynamics, marking_amplitude
from .errors import ElementNotFoundError, InvalidConfigError
from .generators import SoundGenerator
from .instrument import Instrument, StereoArray

_LOGGER = logging.getLogger("scoresynth.score")

FloatArray = NDArray[np.float64]

A4_FREQUENCY = 440.0
# semitone distance from A in the same octave
_SEMITONES_FROM_A = {"A": 0, "B": 2, "C": -9, "D": -7, "E": -5, "F": -4, "G": -2}
_ACCIDENTALS = {"": 0, "+": 1, "#": 1, "-": -1, "b": -1}
_PITCH_RE = re.compile(r"^([A-G])([+#b-]?)(\d+)$")


def pitch_frequency(pitch: str) -> float:
    """Frequency of a pitch name like "A4", "C+5" (sharp) or "E-3" (flat).

    Anything that is not a pitch name is a rest (0 Hz).
    """
    parsed = _PITCH_RE.match(pitch.strip())
    if parsed is None:
        return 0.0
    letter, accidental, octave = parsed.groups()
    semitones = _SEMITONES_FROM_A[letter] + _ACCIDENTALS[accidental]
    return A4_FREQUENCY * 2.0 ** (semitones / 12.0 + (int(octave) - 4))


# =============================================================================
# NOTES AND CHORDS
# =============================================================================


@dataclass(frozen=True, slots=True)
class Note:
    frequency: float
    duration: float
    volume: float = DEFAULT_VOLUME

    def __post_init__(self) -> None:
        if self.duration < 0.0:
            raise InvalidConfigError(f"note duration must be >= 0, got {self.duration}")
        if self.frequency < 0.0:
            raise InvalidConfigError(f"note frequency must be >= 0, got {self.frequency}")

    @classmethod
    def from_pitch(
        cls, pitch: str, duration: float, volume: float | str | Dynamics = DEFAULT_VOLUME
    ) -> Note:
        if isinstance(volume, (str, Dynamics)):
            volume = marking_amplitude(volume)
        return cls(pitch_frequency(pitch), duration, volume)

    @classmethod
    def rest(cls, duration: float) -> Note:
        return cls(0.0, duration, 0.0)

    @property
    def is_rest(self) -> bool:
        return self.frequency == 0.0 or self.volume == 0.0


@dataclass(frozen=True, slots=True)
class Chord:
    """Notes sounding together; duration and volume come from the first note."""

    notes: tuple[Note, ...]

    def __post_init__(self) -> None:
        if not self.notes:
            raise InvalidConfigError("a chord needs at least one note")
        object.__setattr__(self, "notes", tuple(self.notes))

    @classmethod
    def of(cls, *notes: Note) -> Chord:
        return cls(notes)

    @property
    def duration(self) -> float:
        return self.notes[0].duration

    @property
    def volume(self) -> float:
        return self.notes[0].volume

    @property
    def is_rest(self) -> bool:
        return len(self.notes) == 1 and self.notes[0].is_rest

    def render(self, generator: SoundGenerator, sample_rate: float) -> FloatArray:
        """Mean of every note rendered across the whole chord duration."""
        duration = self.duration
        first = self.notes[0]
        total = generator.render(first.frequency, duration, first.volume, sample_rate)
        if len(self.notes) == 1:
            return total
        total = np.array(total, dtype=np.float64, copy=True)
        for note in self.notes[1:]:
            total += generator.render(note.frequency, duration, note.volume, sample_rate)
        return total / len(self.notes)


def _as_chord(item: Chord | Note) -> Chord:
    return item if isinstance(item, Chord) else Chord((item,))


# =============================================================================
# VOICES
# =============================================================================


class Voice:
    """An ordered run of chords played one after another."""

    def __init__(self, chords: Iterable[Chord | Note] = ()) -> None:
        self._chords: list[Chord] = [_as_chord(item) for item in chords]

    def __iter__(self) -> Iterator[Chord]:
        return iter(self._chords)

    def __len__(self) -> int:
        return len(self._chords)

    def __getitem__(self, index: int) -> Chord:
        return self._chords[index]

    def __repr__(self) -> str:
        return f"Voice({len(self._chords)} chords, {self.duration:.3f}s)"

    @property
    def duration(self) -> float:
        return float(sum(chord.duration for chord in self._chords))

    def add(self, item: Chord | Note) -> Voice:
        self._chords.append(_as_chord(item))
        return self

    def insert(self, index: int, item: Chord | Note) -> Voice:
        self._chords.insert(index, _as_chord(item))
        return self

    def remove(self, index: int) -> Chord:
        return self._chords.pop(index)

    def concatenate(self, other: Voice) -> Voice:
        self._chords.extend(other)
        return self

    def is_empty(self) -> bool:
        return not self._chords

    def is_effectively_empty(self) -> bool:
        """True when the voice holds nothing but rests."""
        return all(chord.is_rest for chord in self._chords)


# =============================================================================
# SCORE
# =============================================================================


def _as_piecewise(
    direction: PiecewiseMusicalDirection | MusicalDirection | None,
) -> PiecewiseMusicalDirection | None:
    if isinstance(direction, MusicalDirection):
        return PiecewiseMusicalDirection.of(direction)
    return direction


class Score:
    """Instruments keyed by index, each with an optional dynamics overlay."""

    def __init__(self) -> None:
        self._instruments: dict[int, Instrument] = {}
        self._directions: dict[int, PiecewiseMusicalDirection | None] = {}

    def __len__(self) -> int:
        return len(self._instruments)

    def __contains__(self, index: object) -> bool:
        return index in self._instruments

    def indices(self) -> list[int]:
        return sorted(self._instruments)

    def instrument(self, index: int) -> Instrument:
        try:
            return self._instruments[index]
        except KeyError as exc:
            raise ElementNotFoundError(f"No instrument at index {index}") from exc

    def direction(self, index: int) -> PiecewiseMusicalDirection | None:
        self.instrument(index)
        return self._directions.get(index)

    def add(
        self,
        instrument: Instrument,
        direction: PiecewiseMusicalDirection | MusicalDirection | None = None,
    ) -> int:
        """Append after the highest index in use; returns the new index."""
        index = max(self._instruments, default=-1) + 1
        self._instruments[index] = instrument
        self._directions[index] = _as_piecewise(direction)
        return index

    def insert(
        self,
        instrument: Instrument,
        index: int,
        direction: PiecewiseMusicalDirection | MusicalDirection | None = None,
    ) -> None:
        """Place `instrument` at `index`, moving any instrument at or after it up one."""
        if index < 0:
            raise InvalidConfigError(f"instrument index must be >= 0, got {index}")
        for current in sorted((i for i in self._instruments if i >= index), reverse=True):
            self._instruments[current + 1] = self._instruments.pop(current)
            self._directions[current + 1] = self._directions.pop(current, None)
        self._instruments[index] = instrument
        self._directions[index] = _as_piecewise(direction)

    def set_direction(
        self, index: int, direction: PiecewiseMusicalDirection | MusicalDirection | None
    ) -> None:
        self.instrument(index)
        self._directions[index] = _as_piecewise(direction)

    def copy_direction(self, source: int, target: int) -> None:
        self.instrument(target)
        self._directions[target] = self.direction(source)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_instrument(self, index: int, config: RenderConfig) -> list[StereoArray]:
        instrument = self._instruments[index]
        overlay = self._directions.get(index)
        _LOGGER.info("Rendering instrument %d (%s)", index, instrument.name)
        if config.concurrent:
            return instrument.render_parts_concurrently(
                overlay,
                config.sample_rate,
                max_workers=config.max_workers,
                timeout_factor=config.timeout_factor,
            )
        return instrument.render_parts(overlay, config.sample_rate)

    def render(
        self, config: RenderConfig | Mapping[str, Any] | None = None
    ) -> dict[int, list[StereoArray]]:
        """Stereo parts for every instrument, keyed by instrument index."""
        settings = parse_render_config(config)
        return {index: self._render_instrument(index, settings) for index in self.indices()}

    def render_lazily(
        self, config: RenderConfig | Mapping[str, Any] | None = None
    ) -> dict[int, Callable[[], list[StereoArray]]]:
        """Like `render`, but each instrument renders only when its thunk is called."""
        settings = parse_render_config(config)

        def thunk(index: int) -> Callable[[], list[StereoArray]]:
            return lambda: self._render_instrument(index, settings)

        return {index: thunk(index) for index in self.indices()}
