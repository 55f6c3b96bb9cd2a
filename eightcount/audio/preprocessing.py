"""Audio preprocessing: normalization and the octave-band filter bank."""

from __future__ import annotations

import logging

import numpy as np
from scipy.signal import butter, sosfilt

from eightcount.analysis.models import FrequencyBand

logger = logging.getLogger(__name__)

# Keep the upper cutoff strictly inside (0, nyquist) for butter()
_NYQUIST_MARGIN = 0.99


def normalize(audio: np.ndarray) -> np.ndarray:
    """Peak-normalize audio to the range [-1, 1].

    If the audio is silent (all zeros), it is returned unchanged.
    """
    peak = np.max(np.abs(audio)) if len(audio) else 0.0
    if peak == 0:
        return audio
    return audio / peak


def band_filter(
    audio: np.ndarray,
    sr: int,
    band: FrequencyBand,
    order: int = 1,
) -> np.ndarray:
    """Isolate one frequency band with a Butterworth band-pass.

    Parameters
    ----------
    audio:
        Mono input signal. Not modified.
    sr:
        Sample rate in Hz.
    band:
        Band definition; ``low_hz`` / ``high_hz`` are the -3 dB edges.
    order:
        Butterworth order. ``1`` gives a single biquad section.
    """
    nyquist = sr / 2.0
    low = max(float(band.low_hz), 1e-3)
    high = min(float(band.high_hz), nyquist * _NYQUIST_MARGIN)
    if low >= high:
        logger.warning(
            f"Band {band.name} ({band.low_hz}-{band.high_hz} Hz) is above "
            f"Nyquist for sr={sr}; returning silence"
        )
        return np.zeros_like(audio, dtype=np.float64)

    sos = butter(N=order, Wn=[low, high], btype="bandpass", fs=sr, output="sos")
    return sosfilt(sos, audio)
