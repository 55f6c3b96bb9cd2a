"""STFT chromagram and high-resolution spectral centroid."""

import logging

import numpy as np

from eightcount.analysis.models import ChromaMatrix
from eightcount.analysis.onset import hop_length
from eightcount.analysis.progress import NO_PROGRESS, Progress
from eightcount.analysis.spectral import bin_frequencies, hann_window, magnitude_spectrum

logger = logging.getLogger(__name__)

REFERENCE_HZ = 440.0  # A4
CHROMA_RANGE_HZ = (60.0, 5000.0)
CENTROID_RANGE_HZ = (60.0, 8000.0)


def pitch_class_map(n_fft: int, sr: int) -> np.ndarray:
    """One-hot (n_bins, 12) matrix mapping FFT bins to pitch classes.

    Bin 0 and bins outside ``CHROMA_RANGE_HZ`` map to no class. Class 0 is A.
    """
    freqs = bin_frequencies(n_fft, sr)
    mapping = np.zeros((len(freqs), 12))
    low, high = CHROMA_RANGE_HZ
    for b in range(1, n_fft // 2):
        freq = freqs[b]
        if freq < low or freq > high:
            continue
        semitone = 12 * np.log2(freq / REFERENCE_HZ)
        pitch_class = int(np.floor(semitone + 0.5)) % 12
        mapping[b, pitch_class] = 1.0
    return mapping


def compute_chromagram(
    audio: np.ndarray,
    sr: int,
    n_fft: int = 4096,
    hop_ms: float = 10.0,
    block_frames: int = 2000,
    progress: Progress = NO_PROGRESS,
    percent_range: tuple[float, float] = (0.0, 100.0),
) -> ChromaMatrix:
    """Pitch-class energy per 10 ms frame plus spectral centroid.

    Frames are processed in blocks of *block_frames*; after each block the
    progress hook gets a chance to run (and to cancel the analysis). Reported
    percents are scaled into *percent_range*; the detail text is the share of
    the chromagram itself.
    """
    hop = hop_length(sr, hop_ms)
    hop_seconds = hop_ms / 1000.0
    n_frames = max(0, (len(audio) - n_fft) // hop) if hop > 0 else 0

    chroma = np.zeros((12, n_frames))
    centroid = np.zeros(n_frames)
    if n_frames == 0:
        logger.info("Audio shorter than one FFT window, chromagram is empty")
        return ChromaMatrix(chroma=chroma, centroid=centroid, hop_seconds=hop_seconds)

    window = hann_window(n_fft)
    pc_map = pitch_class_map(n_fft, sr)
    freqs = bin_frequencies(n_fft, sr)
    centroid_mask = (freqs >= CENTROID_RANGE_HZ[0]) & (freqs <= CENTROID_RANGE_HZ[1])
    # The Nyquist bin is never used
    centroid_mask[0] = False
    centroid_mask[-1] = False
    centroid_freqs = freqs[centroid_mask]

    windows = np.lib.stride_tricks.sliding_window_view(np.asarray(audio, dtype=np.float64), n_fft)

    for start in range(0, n_frames, block_frames):
        stop = min(n_frames, start + block_frames)
        frames = windows[start * hop:stop * hop:hop] * window
        mags = magnitude_spectrum(frames)

        chroma[:, start:stop] = (mags @ pc_map).T

        band = mags[:, centroid_mask]
        total = band.sum(axis=1)
        weighted = band @ centroid_freqs
        centroid[start:stop] = np.divide(
            weighted, total, out=np.zeros_like(total), where=total > 0,
        )

        if stop < n_frames:
            done = stop / n_frames
            low, high = percent_range
            progress.report(
                "Computing chromagram...",
                f"{round(100.0 * done)}%",
                low + (high - low) * done,
            )

    return ChromaMatrix(chroma=chroma, centroid=centroid, hop_seconds=hop_seconds)
