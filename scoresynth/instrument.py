"""
Instrument rendering: voices → mono buffers → panned stereo parts.

Each chord is rendered by the instrument's generator (notes of a chord are
averaged), optionally reshaped by a dynamics overlay, and written at the
voice's running sample position. Voices share nothing mutable apart from a
memoizing generator's cache, so they can be rendered on a thread pool.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .audio import SAMPLE_RATE
from .direction import DirectionSegment, PiecewiseMusicalDirection
from .errors import InvalidConfigError, RenderTimeoutError
from .generators import SoundGenerator, sample_count
from .logging_utils import log_exception

if TYPE_CHECKING:
    from .score import Voice

_LOGGER = logging.getLogger("scoresynth.instrument")

FloatArray: TypeAlias = NDArray[np.float64]
StereoArray: TypeAlias = NDArray[np.float64]

HALF_PI = math.pi / 2.0
PAN_LEFT = 0.0
PAN_RIGHT = HALF_PI
# wall-clock seconds allowed per second of the longest voice
DEFAULT_TIMEOUT_FACTOR = 60.0


def channel_gains(pan_left: float, pan_right: float) -> tuple[float, float]:
    """Per-channel gains for pan angles in [0, π/2] (0 = left, π/2 = right)."""
    for label, angle in (("pan_left", pan_left), ("pan_right", pan_right)):
        if not 0.0 <= angle <= HALF_PI:
            raise InvalidConfigError(f"{label} must be within [0, π/2], got {angle}")
    left = math.sqrt((HALF_PI - pan_left) * (1.0 / HALF_PI) * math.cos(pan_left))
    right = math.sqrt(pan_right * (1.0 / HALF_PI) * math.sin(pan_right))
    return left, right


class _OverlayCursor:
    """Walks a piecewise direction forward, re-fetching a bucket only when
    playback time passes the end of the current one."""

    def __init__(self, overlay: PiecewiseMusicalDirection) -> None:
        self._overlay = overlay
        self._segment: DirectionSegment | None = None

    def gains(self, times: FloatArray) -> FloatArray:
        out = np.empty_like(times)
        start = 0
        while start < times.size:
            segment = self._segment
            if segment is None or times[start] > segment.end_offset:
                segment = self._overlay.get_bucket(float(times[start]))
                self._segment = segment
            covered = int(np.searchsorted(times[start:], segment.end_offset, side="right"))
            # past the final segment the same bucket comes back for every later time
            stop = times.size if covered == 0 else start + covered
            out[start:stop] = segment.direction.value(times[start:stop] - segment.start_offset)
            start = stop
        return out


@dataclass
class Instrument:
    name: str
    generator: SoundGenerator
    voices: list[Voice] = field(default_factory=list)
    pan_left: float = PAN_LEFT
    pan_right: float = PAN_RIGHT

    def __post_init__(self) -> None:
        channel_gains(self.pan_left, self.pan_right)

    @property
    def pan_gains(self) -> tuple[float, float]:
        return channel_gains(self.pan_left, self.pan_right)

    def voice(self, index: int) -> Voice:
        return self.voices[index]

    def set_voice(self, index: int, voice: Voice) -> None:
        from .score import Voice

        while len(self.voices) <= index:
            self.voices.append(Voice())
        self.voices[index] = voice

    def add_voice(self, voice: Voice) -> int:
        self.voices.append(voice)
        return len(self.voices) - 1

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_voice(
        self,
        voice: Voice,
        overlay: PiecewiseMusicalDirection | None = None,
        sample_rate: float = SAMPLE_RATE,
    ) -> FloatArray:
        """Mono samples for one voice, before panning."""
        total = sample_count(voice.duration, sample_rate)
        buffer = np.zeros(total, dtype=np.float64)
        cursor = None
        if overlay is not None and overlay.segment_count > 0:
            cursor = _OverlayCursor(overlay)

        pointer = 0
        for chord in voice:
            if chord.is_rest:
                pointer += sample_count(chord.duration, sample_rate)
                continue

            samples = chord.render(self.generator, sample_rate)
            if cursor is not None:
                times = (pointer + np.arange(samples.size, dtype=np.float64)) / sample_rate
                if chord.volume == 0.0:
                    samples = np.zeros_like(samples)
                else:
                    # the overlay is the amplitude authority; cancel the chord's own volume
                    samples = samples * (cursor.gains(times) / chord.volume)

            end = min(pointer + samples.size, total)
            if end > pointer:
                buffer[pointer:end] = samples[: end - pointer]
            pointer += samples.size
        return buffer

    def to_stereo(self, mono: FloatArray) -> StereoArray:
        left, right = self.pan_gains
        return np.column_stack((mono * left, mono * right))

    def _render_part(
        self,
        index: int,
        voice: Voice,
        overlay: PiecewiseMusicalDirection | None,
        sample_rate: float,
    ) -> StereoArray:
        _LOGGER.debug("%s: rendering voice %d (%.2fs)", self.name, index, voice.duration)
        part = self.to_stereo(self.render_voice(voice, overlay, sample_rate))
        _LOGGER.debug("%s: voice %d done, %d samples", self.name, index, part.shape[0])
        return part

    def _audible_voices(self) -> list[tuple[int, Voice]]:
        return [
            (index, voice)
            for index, voice in enumerate(self.voices)
            if not voice.is_effectively_empty()
        ]

    def render_parts(
        self,
        overlay: PiecewiseMusicalDirection | None = None,
        sample_rate: float = SAMPLE_RATE,
    ) -> list[StereoArray]:
        """Stereo part per non-empty voice, rendered one after another."""
        return [
            self._render_part(index, voice, overlay, sample_rate)
            for index, voice in self._audible_voices()
        ]

    def render_parts_concurrently(
        self,
        overlay: PiecewiseMusicalDirection | None = None,
        sample_rate: float = SAMPLE_RATE,
        *,
        max_workers: int | None = None,
        timeout_factor: float = DEFAULT_TIMEOUT_FACTOR,
    ) -> list[StereoArray]:
        """Same output as `render_parts`, with voices rendered on a thread pool.

        Raises RenderTimeoutError if any voice is unfinished when the window
        (longest voice duration × `timeout_factor`, at least `timeout_factor`
        seconds) closes; no partial result is returned.
        """
        jobs = self._audible_voices()
        if not jobs:
            return []
        longest = max(voice.duration for _, voice in jobs)
        timeout = max(longest, 1.0) * timeout_factor

        executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=f"scoresynth-{self.name}"
        )
        try:
            futures = [
                executor.submit(self._render_part, index, voice, overlay, sample_rate)
                for index, voice in jobs
            ]
            _, pending = wait(futures, timeout=timeout)
            if pending:
                for future in pending:
                    future.cancel()
                _LOGGER.error(
                    "%s: %d of %d voices unfinished after %.1fs",
                    self.name,
                    len(pending),
                    len(futures),
                    timeout,
                )
                error = RenderTimeoutError(
                    f"Rendering {self.name!r} timed out after {timeout:.1f}s; "
                    "use the sequential render instead."
                )
                log_exception(f"{self.name} concurrent render", error)
                raise error
            try:
                return [future.result() for future in futures]
            except Exception as exc:
                log_exception(f"{self.name} voice render", exc)
                raise
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
