from __future__ import annotations

import logging
import math
from typing import Any, Literal, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .audio import SAMPLE_RATE
from .envelopes import EnvelopeParams, EnvelopeShape, envelope_by_name
from .errors import InvalidConfigError
from .generators import (
    DEFAULT_GREED,
    AnyGenerator,
    CacheBacking,
    ExactGenerator,
    LinearGreedyGenerator,
    MemoizedGenerator,
    PeriodicGreedyGenerator,
)
from .instrument import DEFAULT_TIMEOUT_FACTOR, PAN_LEFT, PAN_RIGHT, Instrument
from .waveforms import WaveformName, waveform_by_name

_LOGGER = logging.getLogger("scoresynth.config")

StrategyName = Literal["exact", "linear", "periodic"]

ModelT = TypeVar("ModelT", bound=BaseModel)


# -----------------------------------------------------------------------------
# Generator configuration
# -----------------------------------------------------------------------------


class EnvelopeConfig(BaseModel):
    """ADSR shape as fractions of a note's duration (sustain is a level)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    attack: float = Field(default=0.1, ge=0.0, le=1.0)
    decay: float = Field(default=0.1, ge=0.0, le=1.0)
    sustain: float = Field(default=0.7, ge=0.0, le=1.0)
    release: float = Field(default=0.2, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_total(self) -> EnvelopeConfig:
        if self.attack + self.decay + self.release > 1.0:
            raise ValueError("The sum of the attack, decay, and release is greater than 1.0")
        return self

    def to_params(self) -> EnvelopeParams:
        return EnvelopeParams(self.attack, self.decay, self.sustain, self.release)


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    waveform: WaveformName = "sine"
    envelope: EnvelopeConfig = Field(default_factory=EnvelopeConfig)
    envelope_shape: EnvelopeShape = "adsr"
    strategy: StrategyName = "periodic"
    greed: int = Field(default=DEFAULT_GREED, ge=0)
    memoize: bool = False
    cache_backing: CacheBacking = "hashed"


class InstrumentConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    pan_left: float = Field(default=PAN_LEFT, ge=0.0, le=math.pi / 2.0)
    pan_right: float = Field(default=PAN_RIGHT, ge=0.0, le=math.pi / 2.0)


class RenderConfig(BaseModel):
    """How a score is turned into samples."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sample_rate: float = Field(default=SAMPLE_RATE, gt=0.0)
    concurrent: bool = False
    max_workers: int | None = Field(default=None, ge=1)
    timeout_factor: float = Field(default=DEFAULT_TIMEOUT_FACTOR, gt=0.0)


# -----------------------------------------------------------------------------
# Parsing and factories
# -----------------------------------------------------------------------------


def _coerce(model: type[ModelT], payload: ModelT | Mapping[str, Any]) -> ModelT:
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidConfigError(f"Unsupported config type: {type(payload).__name__}")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        _LOGGER.warning("Failed to parse %s: %s", model.__name__, exc, exc_info=True)
        raise InvalidConfigError(str(exc)) from exc


def parse_render_config(payload: RenderConfig | Mapping[str, Any] | None = None) -> RenderConfig:
    """Parse render settings, raising InvalidConfigError on failure."""

    if payload is None:
        return RenderConfig()
    return _coerce(RenderConfig, payload)


def build_generator(config: GeneratorConfig | Mapping[str, Any]) -> AnyGenerator:
    """Build a generator from a validated (or raw) configuration."""

    parsed = _coerce(GeneratorConfig, config)
    waveform = waveform_by_name(parsed.waveform)
    params = parsed.envelope.to_params()
    envelope = envelope_by_name(parsed.envelope_shape)

    generator: AnyGenerator
    match parsed.strategy:
        case "exact":
            generator = ExactGenerator(waveform, params, envelope)
        case "linear":
            generator = LinearGreedyGenerator(waveform, params, parsed.greed, envelope)
        case "periodic":
            generator = PeriodicGreedyGenerator(waveform, params, envelope)
        case _:
            raise InvalidConfigError(f"Unknown generator strategy: {parsed.strategy!r}")

    if parsed.memoize:
        generator = MemoizedGenerator(generator, parsed.cache_backing)
    _LOGGER.debug(
        "Built %s generator (%s, %s envelope, memoize=%s)",
        parsed.strategy,
        parsed.waveform,
        parsed.envelope_shape,
        parsed.memoize,
    )
    return generator


def build_instrument(config: InstrumentConfig | Mapping[str, Any]) -> Instrument:
    parsed = _coerce(InstrumentConfig, config)
    return Instrument(
        name=parsed.name,
        generator=build_generator(parsed.generator),
        pan_left=parsed.pan_left,
        pan_right=parsed.pan_right,
    )
