"""Beat detection by adaptive peak-picking over envelope spectral flux."""

import logging

import numpy as np

from eightcount.analysis.models import Beat
from eightcount.analysis.onset import spectral_flux
from eightcount.analysis.progress import NO_PROGRESS, Progress

logger = logging.getLogger(__name__)


def detect_beats(
    envelope: np.ndarray,
    hop_seconds: float = 0.01,
    window: int = 10,
    threshold: float = 0.3,
    min_interval: float = 0.2,
    progress: Progress = NO_PROGRESS,
    checkpoint_every: int = 2000,
) -> list[Beat]:
    """Pick beats from one band's energy envelope.

    A flux frame becomes a beat when it is a strict local maximum, exceeds
    the mean of the surrounding ``2 * window + 1`` frames by *threshold*
    (in normalized flux units) and lies more than *min_interval* seconds
    after the previously accepted beat.
    """
    flux = spectral_flux(envelope)
    if len(flux) == 0:
        return []

    max_flux = flux.max()
    if max_flux > 0:
        flux = flux / max_flux

    kernel = np.ones(2 * window + 1) / (2 * window + 1)
    local_avg = np.convolve(flux, kernel, mode="same")

    beats: list[Beat] = []
    last_time = None
    for i in range(window, len(flux) - window):
        if i % checkpoint_every == 0:
            progress.checkpoint()

        current = flux[i]
        if not (current > flux[i - 1] and current > flux[i + 1]):
            continue
        if current <= local_avg[i] + threshold:
            continue

        # flux[i] is the rise into envelope frame i + 1
        time = (i + 1) * hop_seconds
        if last_time is None or time - last_time > min_interval:
            beats.append(Beat(time=time, energy=float(envelope[i + 1])))
            last_time = time

    return beats
