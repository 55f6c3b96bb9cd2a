"""Beat-grid regularization.

Raw detected beats are noisy: some are missing, some are off-beat hits and
some bands lock onto double time. The fitter builds an evenly spaced grid at
the refined beat interval, searches the phase that best matches the detected
beats, then snaps each grid point to a nearby detected beat when there is
one. The result is the authoritative timeline for everything downstream.
"""

import logging

import numpy as np

from eightcount.analysis.models import Beat, BeatGrid

logger = logging.getLogger(__name__)

PLACEHOLDER_ENERGY = 0.5


def generate_beats_from_bpm(bpm: float, duration: float, start_time: float = 0.5) -> BeatGrid:
    """Evenly spaced synthetic beats from *start_time* to ``duration - 0.5``."""
    interval = 60.0 / bpm
    end_time = duration - 0.5
    beats = []
    k = 0
    while True:
        t = start_time + k * interval
        if t >= end_time:
            break
        beats.append(Beat(time=t, energy=PLACEHOLDER_ENERGY))
        k += 1
    return BeatGrid(beats=beats)


def refine_interval(
    intervals: np.ndarray,
    bpm: float,
    min_interval: float = 0.3,
    max_interval: float = 1.5,
) -> float:
    """Correct the BPM-implied beat interval from observed intervals.

    Halves it when intervals near half the expected value dominate
    (double-time), otherwise takes the median of intervals within ±30%.
    """
    expected = 60.0 / bpm
    valid = intervals[(intervals > min_interval) & (intervals < max_interval)]
    half = valid[valid < expected * 0.7]
    normal = np.sort(valid[(valid >= expected * 0.7) & (valid <= expected * 1.3)])

    if len(half) > len(normal) * 2:
        logger.debug(f"Double-time detected, interval {expected:.3f}s -> {expected / 2:.3f}s")
        return expected / 2
    if len(normal) > 10:
        return float(normal[len(normal) // 2])
    return expected


def _nearest(times: np.ndarray, t: float) -> tuple[int, float]:
    """Index of and distance to the element of sorted *times* nearest *t*."""
    idx = int(np.searchsorted(times, t))
    best_idx, best_dist = -1, np.inf
    for j in (idx - 1, idx):
        if 0 <= j < len(times):
            d = abs(times[j] - t)
            if d < best_dist:
                best_idx, best_dist = j, d
    return best_idx, float(best_dist)


def find_best_phase(
    times: np.ndarray,
    interval: float,
    end_time: float,
    steps: int = 16,
    search_seconds: float = 30.0,
    tolerance: float = 0.25,
) -> tuple[float, float]:
    """Scan start offsets in ``[0, interval)`` and return (offset, score).

    Each trial grid point within *tolerance* intervals of a detected beat
    scores ``1 - distance / interval``. The first maximum wins.
    """
    start = times[0]
    stop = min(end_time, start + search_seconds)
    best_offset, best_score = 0.0, -np.inf

    for step in range(steps):
        offset = step * interval / steps
        score = 0.0
        k = 0
        while True:
            grid_time = start + offset + k * interval
            if grid_time >= stop:
                break
            _, dist = _nearest(times, grid_time)
            if dist < interval * tolerance:
                score += 1.0 - dist / interval
            k += 1
        if score > best_score:
            best_score, best_offset = score, offset

    return best_offset, best_score


def match_rate(grid: list[Beat], times: np.ndarray, interval: float, tolerance: float = 0.15) -> float:
    """Share of grid points within *tolerance* intervals of a detected beat."""
    if not grid or len(times) == 0:
        return 0.0
    matched = sum(1 for b in grid if _nearest(times, b.time)[1] < interval * tolerance)
    return matched / len(grid)


def fit_beat_grid(
    beats: list[Beat],
    bpm: float,
    duration: float,
    min_beats: int = 16,
    snap_tolerance: float = 0.2,
) -> BeatGrid:
    """Regularize detected beats into an evenly spaced, phase-aligned grid.

    With fewer than *min_beats* detections the grid is synthesized from
    *bpm* alone.
    """
    if len(beats) < min_beats:
        logger.info(f"Only {len(beats)} beats detected, generating grid from {bpm} BPM")
        return generate_beats_from_bpm(bpm, duration)

    beats = sorted(beats, key=lambda b: b.time)
    times = np.array([b.time for b in beats])
    interval = refine_interval(np.diff(times), bpm)
    end_time = duration - 0.5

    best_offset, best_score = find_best_phase(times, interval, end_time)
    logger.debug(
        f"Grid: {len(beats)} beats, refined {60.0 / interval:.1f} BPM, "
        f"offset {best_offset:.3f}s (score {best_score:.2f})"
    )

    origin = times[0] + best_offset
    while origin < 0:
        origin += interval

    grid: list[Beat] = []
    k = 0
    while True:
        grid_time = origin + k * interval
        if grid_time >= end_time:
            break
        idx, dist = _nearest(times, grid_time)
        if dist < interval * snap_tolerance:
            grid.append(Beat(time=float(times[idx]), energy=beats[idx].energy))
        else:
            grid.append(Beat(time=float(grid_time), energy=PLACEHOLDER_ENERGY))
        k += 1

    rate = match_rate(grid, times, interval)
    logger.debug(f"Grid has {len(grid)} beats, match rate {rate:.1%}")
    return BeatGrid(beats=grid, match_rate=rate)
