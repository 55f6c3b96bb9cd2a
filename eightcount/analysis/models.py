"""Core data models for phrase analysis."""

import enum
import math
from dataclasses import dataclass, field

import numpy as np

PHRASE_LENGTH = 8


def frame_index(time: float, hop_seconds: float) -> int:
    """Envelope frame containing *time*.

    A small epsilon keeps exact multiples of the hop (0.5 s / 0.01 s) from
    landing one frame short through float rounding.
    """
    return int(math.floor(time / hop_seconds + 1e-9))


@dataclass(frozen=True)
class FrequencyBand:
    """One octave band of the analysis filter bank."""
    name: str
    center_hz: float
    low_hz: float
    high_hz: float


BANDS: tuple[FrequencyBand, ...] = (
    FrequencyBand("Sub-Bass", 31.5, 20, 45),
    FrequencyBand("Bass", 63, 45, 90),
    FrequencyBand("Low-Mid", 125, 90, 180),
    FrequencyBand("Mid", 250, 180, 355),
    FrequencyBand("Upper-Mid", 500, 355, 710),
    FrequencyBand("Presence", 1000, 710, 1400),
    FrequencyBand("Brilliance", 2000, 1400, 2800),
    FrequencyBand("Air", 4000, 2800, 5600),
)


@dataclass(frozen=True)
class Track:
    """Decoded mono audio for one song."""
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return len(self.samples) / self.sample_rate


@dataclass
class Beat:
    """A single beat on the timeline."""
    time: float  # seconds
    energy: float = 0.5


@dataclass
class BeatGrid:
    """Ordered, strictly increasing beats.

    ``match_rate`` is the share of grid points that landed on a detected
    beat; ``None`` for grids that were not fitted (synthetic fallback).
    """
    beats: list[Beat] = field(default_factory=list)
    match_rate: float | None = None

    def __len__(self) -> int:
        return len(self.beats)

    def __iter__(self):
        return iter(self.beats)

    def __getitem__(self, index):
        return self.beats[index]

    @property
    def times(self) -> np.ndarray:
        return np.array([b.time for b in self.beats], dtype=float)


@dataclass
class PhraseOffset:
    """Which beat index counts as "1" of the repeating 8-count."""
    offset: int = 0  # 0-7
    confidence: float = 0.0  # 0.0-1.0

    def count(self, beat_index: int) -> int:
        """1-based count (1..8) spoken on beat *beat_index*."""
        return (beat_index + self.offset) % PHRASE_LENGTH + 1


@dataclass
class PhraseAlignment(PhraseOffset):
    """Onset-based alignment for one band (or the cross-band consensus)."""
    # Average onset strength per beat-index-mod-8 position
    position_scores: np.ndarray = field(default_factory=lambda: np.zeros(PHRASE_LENGTH))
    # Peak position before backbeat correction
    best_position: int = 0


@dataclass
class ChromaMatrix:
    """12 x N pitch-class energies plus the per-frame spectral centroid."""
    chroma: np.ndarray
    centroid: np.ndarray
    hop_seconds: float = 0.01

    @property
    def n_frames(self) -> int:
        return self.chroma.shape[1]


@dataclass
class HarmonyAlignment(PhraseOffset):
    """Beat-synchronous chroma distance alignment."""
    beat_distances: np.ndarray = field(default_factory=lambda: np.zeros(0))
    beat_chroma: np.ndarray = field(default_factory=lambda: np.zeros((0, 12)))  # n_beats x 12
    position_scores: np.ndarray = field(default_factory=lambda: np.zeros(PHRASE_LENGTH))


@dataclass
class RhythmAlignment(PhraseOffset):
    """Per-band onset x energy patterns combined across bands."""
    band_patterns: list[np.ndarray] = field(default_factory=list)
    combined_pattern: np.ndarray = field(default_factory=lambda: np.zeros(PHRASE_LENGTH))


@dataclass
class CombinedVote:
    """Confidence-weighted vote across the phrase methods."""
    tally: np.ndarray  # 8 bins, indexed by beat position
    offset: int


class AnalysisMethod(str, enum.Enum):
    """Phrase detection method used for the default offset."""
    ENERGY = "energy"
    HARMONY = "harmony"
    RHYTHM = "rhythm"
    COMBINED = "combined"


@dataclass
class BandAnalysis:
    """Output of one band's pipeline."""
    band: FrequencyBand
    envelope: np.ndarray
    beats: BeatGrid
    bpm: int
    phrase: PhraseAlignment

    @property
    def name(self) -> str:
        return self.band.name


@dataclass
class PhraseMethods:
    """Results of the three phrase estimators and their vote."""
    energy: PhraseAlignment
    chroma: ChromaMatrix
    harmony: HarmonyAlignment
    rhythm: RhythmAlignment
    combined: CombinedVote


@dataclass
class AnalysisResult:
    """Complete analysis result for one track."""
    bands: list[BandAnalysis]
    beats: BeatGrid  # canonical timeline (bass band)
    bpm: int
    duration: float
    canonical_index: int = 0  # band the timeline was taken from
    phrase_methods: PhraseMethods | None = None
    method: AnalysisMethod = AnalysisMethod.COMBINED
    phrase_offset: int = 0

    @property
    def canonical_band(self) -> BandAnalysis:
        return self.bands[self.canonical_index]


@dataclass
class AnalysisSession:
    """Explicit per-song state handed to the analysis functions.

    ``manual_offset`` is owned by the host application; the pipeline only
    reads it when resolving which offset to count with.
    """
    track: Track
    method: AnalysisMethod = AnalysisMethod.COMBINED
    manual_offset: int | None = None
    result: AnalysisResult | None = None
