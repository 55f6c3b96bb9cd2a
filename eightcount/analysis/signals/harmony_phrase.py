"""Harmony signal: where in the 8-count the chords change.

Chroma is averaged over a short window at each beat's attack, and the cosine
distance between consecutive beats measures harmonic change. Phrase starts
are assumed to coincide with the largest changes, so no backbeat correction
is applied here.
"""

import logging
from typing import Sequence

import numpy as np

from eightcount.analysis.models import Beat, ChromaMatrix, HarmonyAlignment, frame_index
from eightcount.analysis.signals.positions import (
    average_by_position,
    offset_for_position,
    peak_position,
    warmup_beats,
)

logger = logging.getLogger(__name__)


def beat_sync_chroma(
    chroma: ChromaMatrix,
    beats: Sequence[Beat],
    lag_frames: int = 5,
    onset_frames: int = 8,
) -> np.ndarray:
    """Average chroma over *onset_frames* frames at each beat.

    The window starts *lag_frames* before the beat frame to compensate for
    the FFT window centre lying ~46 ms after the frame start. Returns an
    (n_beats, 12) array; beats past the end of the chromagram get zeros.
    """
    n_frames = chroma.n_frames
    result = np.zeros((len(beats), 12))
    for i, beat in enumerate(beats):
        start = max(0, frame_index(beat.time, chroma.hop_seconds) - lag_frames)
        stop = min(n_frames, start + onset_frames)
        if stop > start:
            result[i] = chroma.chroma[:, start:stop].mean(axis=1)
    return result


def beat_chroma_distances(beat_chroma: np.ndarray) -> np.ndarray:
    """Cosine distance from each beat's chroma to the previous beat's.

    The first beat, and any pair involving an all-zero vector, get 0.
    """
    distances = np.zeros(len(beat_chroma))
    if len(beat_chroma) < 2:
        return distances

    prev, curr = beat_chroma[:-1], beat_chroma[1:]
    dots = np.sum(prev * curr, axis=1)
    norms = np.linalg.norm(prev, axis=1) * np.linalg.norm(curr, axis=1)
    cosine = np.divide(dots, norms, out=np.ones_like(dots), where=norms > 0)
    distances[1:] = np.clip(1.0 - cosine, 0.0, None)
    return distances


def find_harmony_alignment(
    chroma: ChromaMatrix,
    beats: Sequence[Beat],
    lag_frames: int = 5,
    onset_frames: int = 8,
    min_beats: int = 32,
) -> HarmonyAlignment:
    """Phrase offset from the position where chord changes cluster.

    Squared distances favour the big changes at phrase boundaries over small
    variations inside a phrase.
    """
    beat_chroma = beat_sync_chroma(chroma, beats, lag_frames, onset_frames)
    distances = beat_chroma_distances(beat_chroma)

    if len(beats) < min_beats:
        return HarmonyAlignment(beat_distances=distances, beat_chroma=beat_chroma)

    start = max(1, warmup_beats(len(beats)))
    indices = np.arange(start, len(beats))
    scores = average_by_position(distances[start:] ** 2, indices)

    best, confidence = peak_position(scores)
    logger.debug(f"Harmony pattern: {np.round(scores, 4).tolist()} (change at {best})")
    return HarmonyAlignment(
        offset=offset_for_position(best),
        confidence=confidence,
        beat_distances=distances,
        beat_chroma=beat_chroma,
        position_scores=scores,
    )
