from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray = NDArray[np.float64]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | Sequence[Sequence[float]]

SAMPLE_RATE = 44_100


def ensure_stereo_contract(audio: AudioNumbers, *, check_peak: bool = True) -> FloatArray:
    """Normalize dtype/shape to an (n, 2) float buffer, scaling down any overshoot."""

    array: FloatArray = np.asarray(audio, dtype=np.float64)
    match array.ndim:
        case 1:
            stereo = np.column_stack((array, array))
        case 2 if array.shape[1] == 2:
            stereo = array
        case 2 if array.shape[1] == 1:
            stereo = np.column_stack((array[:, 0], array[:, 0]))
        case _:
            raise InvalidConfigError(
                f"audio must be mono or a 2-column stereo buffer, got shape {array.shape}"
            )
    if stereo.size == 0 or not check_peak:
        return stereo
    peak = float(np.max(np.abs(stereo)))
    if peak > 1.0:
        stereo = stereo / peak
    return stereo


def mix_parts(parts: Iterable[AudioNumbers], *, normalize: bool = True) -> FloatArray:
    """Sum stereo parts sample-wise; shorter parts are padded with silence."""

    buffers = [ensure_stereo_contract(part, check_peak=False) for part in parts]
    if not buffers:
        return np.zeros((0, 2), dtype=np.float64)
    longest = max(buffer.shape[0] for buffer in buffers)
    mixed = np.zeros((longest, 2), dtype=np.float64)
    for buffer in buffers:
        mixed[: buffer.shape[0]] += buffer
    if not normalize:
        return mixed
    return ensure_stereo_contract(mixed)


def write_wav(
    path: str | Path,
    audio: AudioNumbers,
    *,
    sample_rate: float = SAMPLE_RATE,
    subtype: str = "FLOAT",
) -> Path:
    """Hand a stereo (or mono) buffer to soundfile as a WAV file."""

    target = Path(path)
    audio_obj: object = audio
    match audio_obj:
        case str() | bytes():
            raise InvalidConfigError("audio must be samples, not a string")
        case np.ndarray() | Sequence():
            normalized = ensure_stereo_contract(cast(AudioNumbers, audio_obj))
        case _:
            raise InvalidConfigError("audio must be a sample buffer")

    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[..., None], write_fn)
    # soundfile stubs are incomplete; cast is intentional for type safety.
    write_audio(target, normalized, int(sample_rate), subtype=subtype)
    return target
