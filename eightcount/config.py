"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings with env var overrides."""

    # Audio
    sample_rate: int = 22050

    # Envelope / beat detection
    envelope_hop_ms: float = 10.0
    peak_window: int = 10  # frames on each side
    peak_threshold: float = 0.3  # normalized flux above local average
    min_beat_interval: float = 0.2  # seconds
    checkpoint_every_frames: int = 2000

    # Grid fitting
    min_grid_beats: int = 16

    # Phrase alignment
    min_phrase_beats: int = 32
    onset_lag_frames: int = 3  # band-pass group delay + RMS centre offset
    canonical_band: str = "Bass"

    # Chromagram
    chroma_fft_size: int = 4096
    chroma_lag_frames: int = 5
    chroma_onset_frames: int = 8

    # Combined voting
    energy_weight: float = 1.0
    harmony_weight: float = 1.5
    rhythm_weight: float = 1.0
    harmony_min_confidence: float = 0.15
    default_method: str = "combined"  # energy | harmony | rhythm | combined

    # Execution
    max_workers: int = 8

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    max_upload_mb: int = 50

    model_config = {"env_prefix": "EIGHTCOUNT_"}


settings = Settings()
