"""Discrete Fourier transform helpers shared by the frequency-domain stages.

`fft` is the in-place complex transform. `magnitude_spectrum` is its batched
real-input form (the positive-frequency half of `|fft|` for every frame), and
is what the chromagram uses.
"""

import numpy as np


def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def fft(re: np.ndarray, im: np.ndarray) -> None:
    """In-place complex DFT of ``re + 1j * im``.

    Both arrays must be writable float arrays of the same power-of-two length.
    """
    n = len(re)
    if len(im) != n:
        raise ValueError(f"real/imaginary length mismatch: {n} vs {len(im)}")
    if not _is_power_of_two(n):
        raise ValueError(f"FFT length must be a power of two, got {n}")

    spectrum = np.fft.fft(np.asarray(re) + 1j * np.asarray(im))
    re[:] = spectrum.real
    im[:] = spectrum.imag


def hann_window(n: int) -> np.ndarray:
    """Symmetric Hann window, ``0.5 * (1 - cos(2*pi*i/(n-1)))``."""
    return np.hanning(n)


def magnitude_spectrum(frames: np.ndarray) -> np.ndarray:
    """Magnitudes of the real FFT along the last axis.

    Returns ``n_fft // 2 + 1`` bins per frame.
    """
    n_fft = frames.shape[-1]
    if not _is_power_of_two(n_fft):
        raise ValueError(f"FFT length must be a power of two, got {n_fft}")
    return np.abs(np.fft.rfft(frames, axis=-1))


def bin_frequencies(n_fft: int, sr: int) -> np.ndarray:
    """Centre frequency in Hz of each real-FFT bin."""
    return np.arange(n_fft // 2 + 1) * sr / n_fft
