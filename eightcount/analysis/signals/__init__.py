"""Phrase signal subpackage, one signal per module."""

from eightcount.analysis.signals.energy_phrase import energy_consensus, find_phrase_alignment
from eightcount.analysis.signals.harmony_phrase import (
    beat_chroma_distances,
    beat_sync_chroma,
    find_harmony_alignment,
)
from eightcount.analysis.signals.rhythm_phrase import find_rhythm_alignment

__all__ = [
    "find_phrase_alignment",
    "energy_consensus",
    "beat_sync_chroma",
    "beat_chroma_distances",
    "find_harmony_alignment",
    "find_rhythm_alignment",
]
