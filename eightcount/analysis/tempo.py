"""Tempo estimation from inter-beat interval statistics."""

import math
from collections import Counter

import numpy as np

from eightcount.analysis.models import Beat

DEFAULT_BPM = 120


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def beat_intervals(beats: list[Beat]) -> np.ndarray:
    """Consecutive differences of beat times."""
    if len(beats) < 2:
        return np.zeros(0)
    times = np.array([b.time for b in beats])
    return np.diff(times)


def estimate_bpm(
    beats: list[Beat],
    min_interval: float = 0.25,
    max_interval: float = 1.5,
    bin_width: int = 5,
    tolerance: float = 0.2,
) -> int:
    """Estimate tempo in whole BPM from a beat sequence.

    Intervals between *min_interval* and *max_interval* (exclusive) are
    binned by BPM rounded to the nearest *bin_width*; the most populated bin
    is refined with the median of intervals within *tolerance* of it.
    Returns 120 when no usable interval exists.
    """
    ibis = beat_intervals(beats)
    valid = ibis[(ibis > min_interval) & (ibis < max_interval)]
    if len(valid) == 0:
        return DEFAULT_BPM

    histogram = Counter(
        _round_half_up(_round_half_up(60.0 / ibi) / bin_width) * bin_width
        for ibi in valid
    )
    # Most votes wins; ties go to the slower tempo
    best_bpm = min(histogram, key=lambda bpm: (-histogram[bpm], bpm))

    target = 60.0 / best_bpm
    near = np.sort(valid[np.abs(valid - target) / target < tolerance])
    if len(near) == 0:
        return best_bpm

    median_ibi = float(near[len(near) // 2])
    return _round_half_up(60.0 / median_ibi)
