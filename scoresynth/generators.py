"""
Sound generators ("entities"): turn (frequency, duration, amplitude, rate)
into a buffer of samples.

Strategies:

1. Exact: evaluate waveform × envelope at every sample
2. LinearGreedy: evaluate every (greed + 1)-th sample, interpolate the rest
3. PeriodicGreedy: evaluate one period into a lookup table, envelope per sample
4. Memoized: cache another generator's output keyed by pitch/duration/rate

Sample i of an N-sample note sits at t_i = i / N · total_time, so a note
always spans exactly its declared duration whatever the rounding of N.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from typing import Literal, Protocol, TypeAlias, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from .envelopes import EnvelopeFn, EnvelopeParams, linear_adsr
from .errors import CapabilityError, InvalidConfigError
from .search_tree import BalancedSearchTree
from .waveforms import PeriodicWaveform, Waveform

_LOGGER = logging.getLogger("scoresynth.generators")

FloatArray: TypeAlias = NDArray[np.float64]
CacheBacking = Literal["hashed", "ordered"]
MemoKey: TypeAlias = tuple[float, float, float]

DEFAULT_GREED = 5


@runtime_checkable
class SoundGenerator(Protocol):
    def render(
        self,
        frequency: float,
        total_time: float,
        amplitude: float,
        sample_rate: float,
    ) -> FloatArray: ...


def sample_count(total_time: float, sample_rate: float) -> int:
    """Number of samples covering `total_time` seconds at `sample_rate`."""
    return max(0, int(round(total_time * sample_rate)))


def sample_times(n: int, total_time: float) -> FloatArray:
    return np.arange(n, dtype=np.float64) / n * total_time


def _enveloped_samples(
    waveform: Waveform,
    envelope: EnvelopeFn,
    params: EnvelopeParams,
    frequency: float,
    times: FloatArray,
    total_time: float,
    amplitude: float,
) -> FloatArray:
    wave = waveform.sample(2.0 * math.pi * frequency * times)
    gain = envelope(times / total_time, *params.as_tuple())
    return amplitude * (wave * gain)


# =============================================================================
# EXACT
# =============================================================================


@dataclass(frozen=True, slots=True)
class ExactGenerator:
    """Reference strategy: no approximation, one waveform evaluation per sample."""

    waveform: Waveform
    params: EnvelopeParams
    envelope: EnvelopeFn = linear_adsr

    def render(
        self,
        frequency: float,
        total_time: float,
        amplitude: float,
        sample_rate: float,
    ) -> FloatArray:
        n = sample_count(total_time, sample_rate)
        if n == 0:
            return np.zeros(0, dtype=np.float64)
        times = sample_times(n, total_time)
        return _enveloped_samples(
            self.waveform, self.envelope, self.params, frequency, times, total_time, amplitude
        )


# =============================================================================
# LINEAR GREEDY
# =============================================================================


@dataclass(frozen=True, slots=True)
class LinearGreedyGenerator:
    """Evaluate anchors every `greed + 1` samples and draw straight lines between.

    Higher greed means fewer exact evaluations and a duller, more distorted
    timbre; a greed around 5 keeps the shape recognisable.
    """

    waveform: Waveform
    params: EnvelopeParams
    greed: int = DEFAULT_GREED
    envelope: EnvelopeFn = linear_adsr

    def __post_init__(self) -> None:
        if self.greed < 0:
            raise InvalidConfigError(f"greed must be non-negative, got {self.greed}")

    @classmethod
    def from_generator(
        cls, other: ExactGenerator | PeriodicGreedyGenerator, greed: int = DEFAULT_GREED
    ) -> LinearGreedyGenerator:
        return cls(other.waveform, other.params, greed, other.envelope)

    @property
    def stride(self) -> int:
        return self.greed + 1

    def anchor_indices(self, n: int) -> NDArray[np.int64]:
        anchors = np.arange(0, n, self.stride, dtype=np.int64)
        if anchors.size and anchors[-1] != n - 1:
            anchors = np.append(anchors, np.int64(n - 1))
        return anchors

    def render(
        self,
        frequency: float,
        total_time: float,
        amplitude: float,
        sample_rate: float,
    ) -> FloatArray:
        n = sample_count(total_time, sample_rate)
        if n == 0:
            return np.zeros(0, dtype=np.float64)

        anchors = self.anchor_indices(n)
        anchor_times = anchors / n * total_time
        exact = _enveloped_samples(
            self.waveform,
            self.envelope,
            self.params,
            frequency,
            anchor_times,
            total_time,
            amplitude,
        )
        if anchors.size == 1:
            return exact

        starts = anchors[:-1]
        deltas = (exact[1:] - exact[:-1]) / (anchors[1:] - starts)
        index = np.arange(n, dtype=np.int64)
        segment = np.minimum(np.searchsorted(anchors, index, side="right") - 1, starts.size - 1)
        samples = exact[segment] + deltas[segment] * (index - starts[segment])
        samples[anchors] = exact
        return samples


# =============================================================================
# PERIODIC GREEDY
# =============================================================================


@dataclass(frozen=True, slots=True)
class PeriodicGreedyGenerator:
    """Tabulate one period of the waveform and replay it under a live envelope.

    Only the waveform repeats; the envelope is evaluated for every sample.
    The table length is rounded to whole samples, so the output equals
    ExactGenerator only when `sample_rate / frequency` is an integer.
    Otherwise the phase drifts by the rounding error once per period.
    """

    waveform: PeriodicWaveform
    params: EnvelopeParams
    envelope: EnvelopeFn = linear_adsr

    def __post_init__(self) -> None:
        if not isinstance(self.waveform, PeriodicWaveform):
            raise CapabilityError(
                f"Waveform {getattr(self.waveform, 'name', self.waveform)!r} does not "
                "declare a period; use an exact or linear generator instead."
            )

    @classmethod
    def from_generator(
        cls, other: ExactGenerator | LinearGreedyGenerator
    ) -> PeriodicGreedyGenerator:
        return cls(other.waveform, other.params, other.envelope)  # type: ignore[arg-type]

    def samples_per_period(self, frequency: float, sample_rate: float) -> int:
        adjusted_period = self.waveform.period / (2.0 * math.pi * frequency)
        return int(round(adjusted_period * sample_rate))

    def render(
        self,
        frequency: float,
        total_time: float,
        amplitude: float,
        sample_rate: float,
    ) -> FloatArray:
        n = sample_count(total_time, sample_rate)
        if n == 0 or frequency == 0.0:
            return np.zeros(n, dtype=np.float64)

        times = sample_times(n, total_time)
        per_period = self.samples_per_period(frequency, sample_rate)
        if per_period < 1:
            wave = self.waveform.sample(2.0 * math.pi * frequency * times)
        else:
            table = self.waveform.sample(2.0 * math.pi * frequency * times[:per_period])
            wave = table[np.arange(n) % table.size]
        gain = self.envelope(times / total_time, *self.params.as_tuple())
        return amplitude * (wave * gain)


# =============================================================================
# MEMOIZED
# =============================================================================


@dataclass(frozen=True, slots=True)
class _MemoEntry:
    key: MemoKey
    amplitude: float
    samples: FloatArray


class _HashedStore:
    def __init__(self) -> None:
        self._entries: dict[MemoKey, _MemoEntry] = {}

    def get(self, key: MemoKey) -> _MemoEntry | None:
        return self._entries.get(key)

    def put(self, entry: _MemoEntry) -> None:
        self._entries[entry.key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class _OrderedStore:
    """Entries ordered lexicographically by (frequency, total_time, sample_rate)."""

    def __init__(self) -> None:
        self._tree: BalancedSearchTree[_MemoEntry] = BalancedSearchTree(key=lambda e: e.key)

    def get(self, key: MemoKey) -> _MemoEntry | None:
        return self._tree.get(key)

    def put(self, entry: _MemoEntry) -> None:
        if self._tree.get(entry.key) is not None:
            self._tree.delete(entry)
        self._tree.insert(entry)

    def __len__(self) -> int:
        return len(self._tree)


def _make_store(backing: CacheBacking) -> _HashedStore | _OrderedStore:
    match backing:
        case "hashed":
            return _HashedStore()
        case "ordered":
            return _OrderedStore()
        case _:
            raise InvalidConfigError(f"Unknown cache backing: {backing!r}")


class MemoizedGenerator:
    """Cache another generator's renders, ignoring amplitude in the key.

    A hit at a different amplitude is rescaled from the stored buffer. Stored
    buffers are read-only and every caller receives its own copy. The cache is
    never evicted.
    """

    def __init__(self, backing: SoundGenerator, cache_backing: CacheBacking = "hashed") -> None:
        self._backing = backing
        self._cache_backing: CacheBacking = cache_backing
        self._store = _make_store(cache_backing)
        self._store_lock = threading.Lock()
        self._key_locks: dict[MemoKey, threading.Lock] = {}
        self.hits = 0
        self.misses = 0

    @classmethod
    def hashed(cls, backing: SoundGenerator) -> MemoizedGenerator:
        return cls(backing, "hashed")

    @classmethod
    def ordered(cls, backing: SoundGenerator) -> MemoizedGenerator:
        return cls(backing, "ordered")

    @property
    def backing(self) -> SoundGenerator:
        return self._backing

    @property
    def cache_backing(self) -> CacheBacking:
        return self._cache_backing

    def __len__(self) -> int:
        with self._store_lock:
            return len(self._store)

    def _key_lock(self, key: MemoKey) -> threading.Lock:
        with self._store_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def render(
        self,
        frequency: float,
        total_time: float,
        amplitude: float,
        sample_rate: float,
    ) -> FloatArray:
        key: MemoKey = (float(frequency), float(total_time), float(sample_rate))
        with self._key_lock(key):
            with self._store_lock:
                entry = self._store.get(key)

            # a silent render carries no shape to rescale from
            if entry is None or (entry.amplitude == 0.0 and amplitude != 0.0):
                samples = self._backing.render(frequency, total_time, amplitude, sample_rate)
                stored = np.array(samples, dtype=np.float64, copy=True)
                stored.setflags(write=False)
                with self._store_lock:
                    self._store.put(_MemoEntry(key, amplitude, stored))
                    self.misses += 1
                _LOGGER.debug("Memo miss for %s (amplitude %.4f)", key, amplitude)
                return stored.copy()

        with self._store_lock:
            self.hits += 1
        if entry.amplitude == amplitude:
            return entry.samples.copy()
        ratio = amplitude / entry.amplitude
        return entry.samples * ratio


AnyGenerator: TypeAlias = (
    ExactGenerator | LinearGreedyGenerator | PeriodicGreedyGenerator | MemoizedGenerator
)
