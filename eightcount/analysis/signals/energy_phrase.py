"""Energy signal: onset strength at each position of the 8-count.

The downbeat carries the strongest energy *increase* (attack or chord
change) rather than the highest sustained energy, so beats are scored by the
largest envelope rise around them. In swing the largest rise usually lands
on the backbeat, one beat after the phrase start, hence the backbeat
correction applied to the peak position.
"""

import logging
from typing import Sequence

import numpy as np

from eightcount.analysis.models import PHRASE_LENGTH, Beat, PhraseAlignment, frame_index
from eightcount.analysis.onset import onset_in_window
from eightcount.analysis.signals.positions import (
    average_by_position,
    backbeat_position,
    offset_for_position,
    peak_position,
    warmup_beats,
)

logger = logging.getLogger(__name__)

# Sub-Bass .. Air; bass carries the clearest phrase accents
ENERGY_BAND_WEIGHTS = (0.5, 1.0, 0.8, 0.6, 0.4, 0.3, 0.2, 0.1)
_EXTRA_BAND_WEIGHT = 0.1


def beat_onsets(
    beats: Sequence[Beat],
    envelope: np.ndarray,
    start: int,
    hop_seconds: float = 0.01,
    lag_frames: int = 3,
    half_width: int = 3,
) -> np.ndarray:
    """Peak envelope rise around every beat from *start* on."""
    onsets = np.zeros(max(0, len(beats) - start))
    for k, beat in enumerate(beats[start:]):
        center = frame_index(beat.time, hop_seconds) - lag_frames
        onsets[k] = onset_in_window(envelope, center, half_width)
    return onsets


def find_phrase_alignment(
    beats: Sequence[Beat],
    envelope: np.ndarray,
    hop_seconds: float = 0.01,
    lag_frames: int = 3,
    min_beats: int = 32,
) -> PhraseAlignment:
    """Phrase offset for one band's envelope on the given beat timeline.

    Returns offset 0 with confidence 0 for fewer than *min_beats* beats.
    """
    if len(beats) < min_beats:
        return PhraseAlignment()

    start = warmup_beats(len(beats))
    onsets = beat_onsets(beats, envelope, start, hop_seconds, lag_frames)
    scores = average_by_position(onsets, np.arange(start, len(beats)))

    best, confidence = peak_position(scores)
    return PhraseAlignment(
        offset=offset_for_position(backbeat_position(best)),
        confidence=confidence,
        position_scores=scores,
        best_position=best,
    )


def energy_consensus(
    beats: Sequence[Beat],
    envelopes: Sequence[np.ndarray],
    hop_seconds: float = 0.01,
    lag_frames: int = 3,
    min_beats: int = 32,
    band_weights: Sequence[float] = ENERGY_BAND_WEIGHTS,
) -> PhraseAlignment:
    """Aggregate every band's onset pattern on one shared beat timeline.

    Each band's per-position scores are scaled to a maximum of 1 so loud
    bands do not dominate, then summed with *band_weights*. The backbeat
    correction is applied once, on the aggregate.
    """
    if len(beats) < min_beats:
        return PhraseAlignment()

    aggregate = np.zeros(PHRASE_LENGTH)
    for b, envelope in enumerate(envelopes):
        scores = find_phrase_alignment(
            beats, envelope, hop_seconds, lag_frames, min_beats,
        ).position_scores
        band_max = float(scores.max())
        if band_max <= 0:
            continue
        weight = band_weights[b] if b < len(band_weights) else _EXTRA_BAND_WEIGHT
        aggregate += scores / band_max * weight

    best, confidence = peak_position(aggregate)
    logger.debug(f"Energy consensus pattern: {np.round(aggregate, 3).tolist()}")
    return PhraseAlignment(
        offset=offset_for_position(backbeat_position(best)),
        confidence=confidence,
        position_scores=aggregate,
        best_position=best,
    )
