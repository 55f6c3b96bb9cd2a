"""RMS energy envelopes and onset strength."""

import numpy as np
import librosa


def hop_length(sr: int, hop_ms: float = 10.0) -> int:
    """Samples per envelope frame."""
    return int(sr * hop_ms / 1000)


def compute_envelope(audio: np.ndarray, sr: int, hop_ms: float = 10.0) -> np.ndarray:
    """RMS energy of *audio* at a fixed hop.

    Frames are two hops long and start every hop; the frame count is
    ``floor((len - frame) / hop)`` so every frame is fully inside the signal.
    Returns an empty array when the signal is shorter than one frame.
    """
    hop = hop_length(sr, hop_ms)
    if hop <= 0:
        return np.zeros(0, dtype=np.float32)
    frame = hop * 2
    n_frames = (len(audio) - frame) // hop
    if n_frames <= 0:
        return np.zeros(0, dtype=np.float32)

    rms = librosa.feature.rms(
        y=np.asarray(audio, dtype=np.float32),
        frame_length=frame,
        hop_length=hop,
        center=False,
    )[0]
    return rms[:n_frames].astype(np.float32)


def spectral_flux(envelope: np.ndarray) -> np.ndarray:
    """Positive frame-to-frame energy increase, ``max(0, E[i] - E[i-1])``.

    Element ``j`` describes the rise into envelope frame ``j + 1``.
    """
    if len(envelope) < 2:
        return np.zeros(0)
    return np.maximum(np.diff(np.asarray(envelope, dtype=np.float64)), 0.0)


def onset_in_window(envelope: np.ndarray, center: int, half_width: int = 3) -> float:
    """Largest positive derivative of *envelope* within ``center ± half_width``.

    Frames outside ``[1, len)`` are ignored.
    """
    lo = max(1, center - half_width)
    hi = min(len(envelope), center + half_width + 1)
    if hi <= lo:
        return 0.0
    diffs = envelope[lo:hi].astype(np.float64) - envelope[lo - 1:hi - 1]
    return max(0.0, float(diffs.max()))
