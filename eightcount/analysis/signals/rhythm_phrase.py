"""Rhythm signal: onset density pattern across all bands."""

from typing import Sequence

import numpy as np

from eightcount.analysis.models import Beat, PHRASE_LENGTH, RhythmAlignment, frame_index
from eightcount.analysis.signals.positions import (
    average_by_position,
    offset_for_position,
    peak_position,
    warmup_beats,
)

# Sub-Bass .. Air
RHYTHM_BAND_WEIGHTS = (0.5, 1.0, 0.8, 0.6, 0.5, 0.4, 0.3, 0.2)
_EXTRA_BAND_WEIGHT = 0.1


def band_rhythm_pattern(
    beats: Sequence[Beat],
    envelope: np.ndarray,
    start: int,
    hop_seconds: float = 0.01,
    lag_frames: int = 3,
    half_width: int = 3,
) -> np.ndarray:
    """Mean ``onset * peak energy`` per position for one band.

    Beats whose lag-compensated frame falls outside the envelope are skipped.
    """
    n = len(envelope)
    values, indices = [], []
    for i in range(start, len(beats)):
        frame = frame_index(beats[i].time, hop_seconds) - lag_frames
        if frame <= 0 or frame >= n:
            continue
        window = np.clip(np.arange(frame - half_width, frame + half_width + 1), 1, n - 1)
        rises = envelope[window].astype(np.float64) - envelope[window - 1]
        onset = max(0.0, float(rises.max()))
        peak = max(0.0, float(envelope[window].max()))
        # Strong attack *and* high energy, e.g. bass on beat 1 in swing
        values.append(onset * peak)
        indices.append(i)

    if not values:
        return np.zeros(PHRASE_LENGTH)
    return average_by_position(np.array(values), np.array(indices))


def find_rhythm_alignment(
    beats: Sequence[Beat],
    envelopes: Sequence[np.ndarray],
    hop_seconds: float = 0.01,
    lag_frames: int = 3,
    min_beats: int = 32,
    band_weights: Sequence[float] = RHYTHM_BAND_WEIGHTS,
) -> RhythmAlignment:
    """Phrase offset from the weighted cross-band onset pattern.

    The peak position itself is taken as the phrase start.
    """
    if len(beats) < min_beats or not envelopes:
        return RhythmAlignment()

    start = warmup_beats(len(beats))
    patterns = [
        band_rhythm_pattern(beats, env, start, hop_seconds, lag_frames)
        for env in envelopes
    ]

    weights = np.array([
        band_weights[b] if b < len(band_weights) else _EXTRA_BAND_WEIGHT
        for b in range(len(patterns))
    ])
    combined = np.zeros(PHRASE_LENGTH)
    if weights.sum() > 0:
        combined = (weights[:, None] * np.vstack(patterns)).sum(axis=0) / weights.sum()

    best, confidence = peak_position(combined)
    return RhythmAlignment(
        offset=offset_for_position(best),
        confidence=confidence,
        band_patterns=patterns,
        combined_pattern=combined,
    )
