"""Shared test fixtures for phrase analysis tests."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from eightcount.analysis.models import Beat, BeatGrid, ChromaMatrix
from eightcount.main import app

HOP = 0.01


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


def generate_click_track(
    bpm: float,
    duration_seconds: float = 10.0,
    sr: int = 22050,
    accent_every: int = 8,
    accent_offset: int = 0,
    accent_ratio: float = 2.0,
) -> np.ndarray:
    """Synthetic track: a 60 Hz thump plus a 1 kHz click on every beat.

    Every *accent_every*-th beat (starting at *accent_offset*) is louder.
    """
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)

    beat_interval = 60.0 / bpm
    hit_samples = int(0.08 * sr)
    t_hit = np.arange(hit_samples) / sr
    hit = (
        np.sin(2 * np.pi * 60 * t_hit) * np.exp(-t_hit * 30)
        + 0.5 * np.sin(2 * np.pi * 1000 * t_hit) * np.exp(-t_hit * 100)
    )

    beat = 0
    time = 0.5
    while time < duration_seconds:
        sample_pos = int(time * sr)
        accented = beat % accent_every == accent_offset
        amplitude = accent_ratio if accented else 1.0

        end = min(sample_pos + hit_samples, n_samples)
        length = end - sample_pos
        if length > 0:
            audio[sample_pos:end] += hit[:length] * amplitude

        time += beat_interval
        beat += 1

    peak = np.max(np.abs(audio))
    if peak > 0:
        audio = audio / peak
    return audio


def make_grid(n_beats: int, interval: float = 0.5, start: float = 0.5) -> BeatGrid:
    """Evenly spaced beats."""
    return BeatGrid(beats=[Beat(time=start + i * interval, energy=1.0) for i in range(n_beats)])


def make_envelope(
    beats: BeatGrid,
    accents: dict[int, float] | None = None,
    base: float = 0.05,
    amplitude: float = 1.0,
    tail_frames: int = 100,
) -> np.ndarray:
    """Envelope with a decaying transient at every beat.

    *accents* maps ``beat_index mod 8`` to a transient amplitude that
    replaces *amplitude* for those beats.
    """
    accents = accents or {}
    n_frames = int(round(beats[-1].time / HOP)) + tail_frames
    env = np.full(n_frames, base, dtype=np.float64)
    for i, beat in enumerate(beats):
        f = int(round(beat.time / HOP))
        amp = accents.get(i % 8, amplitude)
        env[f] += amp
        env[f + 1] += amp * 0.5
        env[f + 2] += amp * 0.25
    return env


def make_chroma_with_changes(
    beats: BeatGrid,
    change_beats: set[int],
    lag_frames: int = 5,
    tail_frames: int = 100,
) -> ChromaMatrix:
    """Chromagram alternating between two chords at *change_beats*.

    Each beat's chord starts *lag_frames* before its beat frame, where a real
    STFT frame would first see it.
    """
    chord_a = np.zeros(12)
    chord_a[[0, 4, 7]] = 1.0
    chord_b = np.zeros(12)
    chord_b[[6, 10, 1]] = 1.0

    n_frames = int(round(beats[-1].time / HOP)) + tail_frames
    chroma = np.zeros((12, n_frames))
    current = chord_a
    for i, beat in enumerate(beats):
        if i in change_beats:
            current = chord_b if current is chord_a else chord_a
        start = max(0, int(round(beat.time / HOP)) - lag_frames)
        chroma[:, start:] = current[:, None]
    return ChromaMatrix(chroma=chroma, centroid=np.zeros(n_frames), hop_seconds=HOP)


@pytest.fixture
def grid_64():
    """64 beats at 120 BPM starting at 0.5 s."""
    return make_grid(64)

