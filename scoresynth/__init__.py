from __future__ import annotations

from .audio import SAMPLE_RATE, mix_parts, write_wav
from .config import (
    EnvelopeConfig,
    GeneratorConfig,
    InstrumentConfig,
    RenderConfig,
    build_generator,
    build_instrument,
)
from .direction import (
    DirectionSegment,
    DynamicsEvent,
    MusicalDirection,
    PiecewiseMusicalDirection,
    directions_from_events,
    piecewise_from_events,
)
from .dynamics import Dynamics, velocity_to_amplitude
from .envelopes import ENVELOPES, EnvelopeParams, flat_envelope, linear_adsr
from .errors import (
    CapabilityError,
    ElementNotFoundError,
    EmptyTreeError,
    InvalidArgumentError,
    InvalidConfigError,
    RenderTimeoutError,
    ScoreSynthError,
)
from .generators import (
    ExactGenerator,
    LinearGreedyGenerator,
    MemoizedGenerator,
    PeriodicGreedyGenerator,
    SoundGenerator,
)
from .instrument import Instrument
from .logging_utils import configure_logging as _configure_logging
from .score import Chord, Note, Score, Voice
from .search_tree import BalancedSearchTree
from .waveforms import SAWTOOTH, SINE, SQUARE, TRIANGLE, PeriodicWaveform, Waveform

__all__ = [
    "ENVELOPES",
    "SAMPLE_RATE",
    "SAWTOOTH",
    "SINE",
    "SQUARE",
    "TRIANGLE",
    "BalancedSearchTree",
    "CapabilityError",
    "Chord",
    "DirectionSegment",
    "Dynamics",
    "DynamicsEvent",
    "ElementNotFoundError",
    "EmptyTreeError",
    "EnvelopeConfig",
    "EnvelopeParams",
    "ExactGenerator",
    "GeneratorConfig",
    "Instrument",
    "InstrumentConfig",
    "InvalidArgumentError",
    "InvalidConfigError",
    "LinearGreedyGenerator",
    "MemoizedGenerator",
    "MusicalDirection",
    "Note",
    "PeriodicGreedyGenerator",
    "PeriodicWaveform",
    "PiecewiseMusicalDirection",
    "RenderConfig",
    "RenderTimeoutError",
    "Score",
    "ScoreSynthError",
    "SoundGenerator",
    "Voice",
    "Waveform",
    "build_generator",
    "build_instrument",
    "directions_from_events",
    "flat_envelope",
    "linear_adsr",
    "mix_parts",
    "piecewise_from_events",
    "velocity_to_amplitude",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
