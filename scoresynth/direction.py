"""
Musical directions: dynamics moving from one gain to another over time.

A `MusicalDirection` is a single ramp shaped by a curve that maps [0, 1] onto
[0, 1]. A `PiecewiseMusicalDirection` lays several ramps end to end and keeps
them in a balanced search tree keyed by start offset, so finding the ramp that
covers an absolute time costs O(log n).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Literal, TypeAlias

import numpy as np

from .dynamics import Dynamics, marking_amplitude, velocity_to_amplitude
from .errors import InvalidConfigError
from .search_tree import BalancedSearchTree

_LOGGER = logging.getLogger("scoresynth.direction")

ShapeFn: TypeAlias = Callable[[Any], Any]
ShapeName = Literal["linear", "ease_in", "ease_out", "smoothstep"]


# =============================================================================
# SHAPE FUNCTIONS (0 -> 0, 1 -> 1)
# =============================================================================


def linear(t: Any) -> Any:
    return t


def ease_in(t: Any) -> Any:
    return t * t


def ease_out(t: Any) -> Any:
    return np.sqrt(t)


def smoothstep(t: Any) -> Any:
    return t * t * (3.0 - 2.0 * t)


SHAPES: Mapping[ShapeName, ShapeFn] = MappingProxyType(
    {
        "linear": linear,
        "ease_in": ease_in,
        "ease_out": ease_out,
        "smoothstep": smoothstep,
    }
)


def shape_by_name(name: str) -> ShapeFn:
    try:
        return SHAPES[name]  # type: ignore[index]
    except KeyError as exc:
        raise InvalidConfigError(f"Unknown direction shape: {name!r}") from exc


# =============================================================================
# SINGLE DIRECTION
# =============================================================================


@dataclass(frozen=True, slots=True)
class MusicalDirection:
    """Gain ramp from `initial_gain` to `final_gain` across `distance` seconds.

    `shape` must satisfy shape(0) == 0 and shape(1) == 1; that is not checked.
    Local time is clamped to [0, distance], so the ramp holds its end gains
    outside its span. A zero-distance direction is empty and evaluates to 0.
    """

    initial_gain: float
    final_gain: float
    distance: float
    shape: ShapeFn = linear

    def __post_init__(self) -> None:
        if self.distance < 0.0 or math.isnan(self.distance):
            raise InvalidConfigError(f"direction distance must be >= 0, got {self.distance}")

    @classmethod
    def from_markings(
        cls,
        initial: str | Dynamics,
        final: str | Dynamics,
        distance: float,
        shape: ShapeFn = linear,
    ) -> MusicalDirection:
        return cls(marking_amplitude(initial), marking_amplitude(final), distance, shape)

    @property
    def is_flat(self) -> bool:
        return self.initial_gain == self.final_gain

    @property
    def is_empty(self) -> bool:
        return self.distance == 0.0

    def value(self, t: Any) -> Any:
        if self.distance == 0.0:
            return 0.0 if np.ndim(t) == 0 else np.zeros(np.shape(t))
        progress = np.clip(np.asarray(t, dtype=np.float64) / self.distance, 0.0, 1.0)
        gain = self.initial_gain + (self.final_gain - self.initial_gain) * self.shape(progress)
        if np.ndim(gain) == 0:
            return float(gain)
        return gain


@dataclass(frozen=True, slots=True)
class DirectionSegment:
    """A direction placed at `start_offset` on the absolute timeline.

    `index` is the direction's position in the list the piecewise direction
    was built from, or -1 for a placeholder.
    """

    direction: MusicalDirection
    index: int
    start_offset: float

    @property
    def end_offset(self) -> float:
        return self.start_offset + self.direction.distance

    def value_at(self, t: Any) -> Any:
        return self.direction.value(np.asarray(t, dtype=np.float64) - self.start_offset)


# =============================================================================
# PIECEWISE DIRECTION
# =============================================================================


class PiecewiseMusicalDirection:
    """Directions laid end to end, indexed by start offset for bucket lookup.

    Zero-length directions are skipped. Immutable after construction.
    """

    def __init__(self, directions: Iterable[MusicalDirection] = ()) -> None:
        self._tree: BalancedSearchTree[DirectionSegment] = BalancedSearchTree(
            key=lambda segment: segment.start_offset
        )
        self._head: DirectionSegment | None = None
        tail: DirectionSegment | None = None
        offset = 0.0
        for index, direction in enumerate(directions):
            if direction.is_empty:
                _LOGGER.debug("Skipping zero-length direction at position %d", index)
                continue
            segment = DirectionSegment(direction, index, offset)
            self._tree.insert(segment)
            if self._head is None:
                self._head = segment
            tail = segment
            offset += direction.distance

        self._length = offset
        self._initial_gain = 0.0 if self._head is None else self._head.direction.initial_gain
        self._final_gain = 0.0 if tail is None else tail.direction.final_gain
        _LOGGER.debug(
            "Built piecewise direction: %d segments, %.3fs, tree height %d",
            len(self._tree),
            self._length,
            self._tree.height(),
        )

    @classmethod
    def of(cls, *directions: MusicalDirection) -> PiecewiseMusicalDirection:
        return cls(directions)

    @property
    def head(self) -> DirectionSegment | None:
        return self._head

    @property
    def initial_gain(self) -> float:
        return self._initial_gain

    @property
    def final_gain(self) -> float:
        return self._final_gain

    @property
    def length(self) -> float:
        return self._length

    @property
    def distance(self) -> float:
        return self._length

    @property
    def segment_count(self) -> int:
        return len(self._tree)

    def segments(self) -> Iterator[DirectionSegment]:
        return iter(self._tree)

    def _bucket_key(self, t: float) -> DirectionSegment | None:
        # largest start offset <= t; an exact hit wins immediately
        return self._tree.floor(t)

    def value(self, t: float) -> float:
        segment = self._bucket_key(t)
        if segment is None:
            return self._initial_gain
        return float(segment.direction.value(t - segment.start_offset))

    def get_bucket(self, t: float) -> DirectionSegment:
        """Segment covering `t`, for callers evaluating it repeatedly.

        Before the first segment, a flat placeholder at the initial gain is
        returned instead, spanning the head's distance.
        """
        segment = self._bucket_key(t)
        if segment is not None:
            return segment
        span = 0.0 if self._head is None else self._head.direction.distance
        placeholder = MusicalDirection(self._initial_gain, self._initial_gain, span)
        return DirectionSegment(placeholder, -1, 0.0)


# =============================================================================
# DYNAMICS EVENTS → DIRECTIONS
# =============================================================================


_RAMP_SLOPES: Mapping[str, int] = MappingProxyType(
    {
        "crescendo": 1,
        "cresc": 1,
        "c": 1,
        "diminuendo": -1,
        "decrescendo": -1,
        "dim": -1,
        "d": -1,
    }
)


@dataclass(frozen=True, slots=True)
class DynamicsEvent:
    """A dynamics change at an absolute time position.

    `target` is a key velocity (0..127), a marking such as "mf", or a ramp
    marker ("crescendo" / "diminuendo") that shapes the next segment.
    """

    position: float
    target: float | str | Dynamics


def _ramp_slope(target: float | str | Dynamics) -> int | None:
    if isinstance(target, str):
        return _RAMP_SLOPES.get(target.strip().lower())
    return None


def _target_gain(target: float | str | Dynamics) -> float:
    if isinstance(target, (str, Dynamics)):
        return marking_amplitude(target)
    return velocity_to_amplitude(float(target))


def directions_from_events(
    events: Sequence[DynamicsEvent] | Iterable[DynamicsEvent],
    shape: ShapeFn = linear,
) -> list[MusicalDirection]:
    """Turn ordered dynamics changes into a list of ramps starting at time 0.

    A ramp whose marker disagrees with its endpoints is bent in the marked
    direction: a crescendo that would not rise ends at 0.2 + 0.8·√g, a
    diminuendo that would not fall ends at 0.8·g², where g is the starting gain.
    A marker stays in force for every later target until another marker.
    """
    directions: list[MusicalDirection] = []
    initial_gain = 0.0
    initial_position = 0.0
    slope = 0
    for event in events:
        marker = _ramp_slope(event.target)
        if marker is not None:
            slope = marker
            continue

        gain = _target_gain(event.target)
        if event.position < initial_position:
            raise InvalidConfigError(
                f"Dynamics events out of order: {event.position} after {initial_position}"
            )
        final_gain = gain
        if slope == 1 and initial_gain >= final_gain:
            final_gain = 0.2 + 0.8 * math.sqrt(initial_gain)
        if slope == -1 and initial_gain <= final_gain:
            final_gain = 0.8 * initial_gain**2

        directions.append(
            MusicalDirection(initial_gain, final_gain, event.position - initial_position, shape)
        )
        initial_gain = gain
        initial_position = event.position
    return directions


def piecewise_from_events(
    events: Iterable[DynamicsEvent],
    shape: ShapeFn = linear,
) -> PiecewiseMusicalDirection:
    return PiecewiseMusicalDirection(directions_from_events(events, shape))
