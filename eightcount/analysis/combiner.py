"""Confidence-weighted voting across phrase methods, and default selection."""

from dataclasses import dataclass

import numpy as np

from eightcount.analysis.models import (
    PHRASE_LENGTH,
    AnalysisMethod,
    AnalysisResult,
    CombinedVote,
    PhraseOffset,
)
from eightcount.analysis.signals.positions import offset_for_position


@dataclass(frozen=True)
class CombinerConfig:
    """Per-method vote weights.

    Harmony only votes above ``harmony_min_confidence``: a near-uniform chroma
    distance pattern would otherwise cast a spurious strong vote.
    """
    energy_weight: float = 1.0
    harmony_weight: float = 1.5
    rhythm_weight: float = 1.0
    harmony_min_confidence: float = 0.15

    @classmethod
    def from_settings(cls, settings) -> "CombinerConfig":
        return cls(
            energy_weight=settings.energy_weight,
            harmony_weight=settings.harmony_weight,
            rhythm_weight=settings.rhythm_weight,
            harmony_min_confidence=settings.harmony_min_confidence,
        )


def combine_phrase_offsets(
    energy: PhraseOffset | None,
    harmony: PhraseOffset | None,
    rhythm: PhraseOffset | None,
    config: CombinerConfig = CombinerConfig(),
) -> CombinedVote:
    """Vote for the beat position that starts the phrase.

    Each method adds ``confidence * weight`` to the bin of the position its
    offset makes count "1". Ties go to the lowest bin.
    """
    tally = np.zeros(PHRASE_LENGTH)

    def vote(result: PhraseOffset, weight: float) -> None:
        tally[offset_for_position(result.offset)] += result.confidence * weight

    if energy is not None:
        vote(energy, config.energy_weight)
    if harmony is not None and harmony.confidence > config.harmony_min_confidence:
        vote(harmony, config.harmony_weight)
    if rhythm is not None:
        vote(rhythm, config.rhythm_weight)

    winner = int(np.argmax(tally))
    return CombinedVote(tally=tally, offset=offset_for_position(winner))


def select_phrase_offset(
    result: AnalysisResult,
    method: AnalysisMethod,
    manual_offset: int | None = None,
) -> int:
    """Offset to count with: manual override, then *method*, then bass band."""
    if manual_offset is not None:
        return manual_offset % PHRASE_LENGTH

    methods = result.phrase_methods
    if methods is None:
        return result.canonical_band.phrase.offset

    match method:
        case AnalysisMethod.ENERGY:
            return methods.energy.offset
        case AnalysisMethod.HARMONY:
            return methods.harmony.offset
        case AnalysisMethod.RHYTHM:
            return methods.rhythm.offset
        case AnalysisMethod.COMBINED:
            return methods.combined.offset
        case _:
            raise ValueError(f"Unknown analysis method: {method!r}")
