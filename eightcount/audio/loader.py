"""Audio file loading utilities."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Union

import librosa

from eightcount.analysis.models import Track
from eightcount.audio.preprocessing import normalize


def load_track(
    file_path_or_buffer: Union[str, Path, BytesIO],
    sr: int = 22050,
) -> Track:
    """Decode an audio file or buffer into a peak-normalized mono Track.

    Parameters
    ----------
    file_path_or_buffer:
        Path to an audio file or a BytesIO buffer containing audio data.
    sr:
        Target sample rate. Defaults to 22050 Hz.
    """
    audio, sample_rate = librosa.load(file_path_or_buffer, sr=sr, mono=True)
    return Track(samples=normalize(audio), sample_rate=int(sample_rate))
