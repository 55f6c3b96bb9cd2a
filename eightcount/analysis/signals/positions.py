"""Helpers shared by the phrase signals: beat positions within an 8-count."""

import numpy as np

from eightcount.analysis.models import PHRASE_LENGTH


def warmup_beats(n_beats: int, max_warmup: int = 16, fraction: float = 0.1) -> int:
    """Beats skipped at the start while the grid settles."""
    return min(max_warmup, int(n_beats * fraction))


def average_by_position(values: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """Mean of *values* grouped by ``index mod 8``; empty positions stay 0."""
    positions = np.asarray(indices, dtype=int) % PHRASE_LENGTH
    sums = np.bincount(positions, weights=values, minlength=PHRASE_LENGTH)
    counts = np.bincount(positions, minlength=PHRASE_LENGTH)
    averages = np.zeros(PHRASE_LENGTH)
    np.divide(sums, counts, out=averages, where=counts > 0)
    return averages


def peak_position(scores: np.ndarray) -> tuple[int, float]:
    """Position of the first maximum and its margin over the runner-up.

    Confidence is ``(max - second) / max``, 0 when every score is 0.
    """
    best, first, second = 0, 0.0, 0.0
    for pos, value in enumerate(scores):
        value = float(value)
        if value > first:
            second = first
            first = value
            best = pos
        elif value > second:
            second = value
    confidence = (first - second) / first if first > 0 else 0.0
    return best, confidence


def offset_for_position(position: int) -> int:
    """Offset that makes beat *position* (mod 8) count as "1"."""
    return (PHRASE_LENGTH - position % PHRASE_LENGTH) % PHRASE_LENGTH


def backbeat_position(position: int) -> int:
    """Downbeat implied by an accent peak on the backbeat (one beat later)."""
    return (position - 1) % PHRASE_LENGTH
