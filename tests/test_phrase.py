"""Tests for the phrase signals, chromagram and the combined vote."""

import numpy as np
import pytest

from eightcount.analysis.chroma import compute_chromagram, pitch_class_map
from eightcount.analysis.combiner import CombinerConfig, combine_phrase_offsets, select_phrase_offset
from eightcount.analysis.models import (
    AnalysisMethod,
    AnalysisResult,
    BandAnalysis,
    BANDS,
    ChromaMatrix,
    HarmonyAlignment,
    PhraseAlignment,
    PhraseMethods,
    PhraseOffset,
    RhythmAlignment,
)
from eightcount.analysis.progress import Progress
from eightcount.analysis.signals import (
    beat_chroma_distances,
    beat_sync_chroma,
    energy_consensus,
    find_harmony_alignment,
    find_phrase_alignment,
    find_rhythm_alignment,
)
from eightcount.analysis.signals.positions import peak_position, warmup_beats
from tests.conftest import make_chroma_with_changes, make_envelope, make_grid


def _assert_valid(result: PhraseOffset):
    assert result.offset in range(8)
    assert 0.0 <= result.confidence <= 1.0


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


def test_phrase_offset_count_is_one_based():
    phrase = PhraseOffset(offset=3)
    assert [phrase.count(i) for i in range(8)] == [4, 5, 6, 7, 8, 1, 2, 3]


def test_warmup_is_ten_percent_capped_at_16():
    assert warmup_beats(40) == 4
    assert warmup_beats(500) == 16


def test_peak_position_first_maximum_and_zero_guard():
    assert peak_position(np.array([0, 2, 1, 2, 0, 0, 0, 0])) == (1, 0.0)
    assert peak_position(np.zeros(8)) == (0, 0.0)
    best, confidence = peak_position(np.array([1, 1, 1, 4, 1, 1, 1, 2.0]))
    assert best == 3
    assert confidence == pytest.approx(0.5)


# ---------------------------------------------------------------------------
# Energy (per band + consensus)
# ---------------------------------------------------------------------------


def test_phrase_alignment_backbeat_shift(grid_64):
    env = make_envelope(grid_64, accents={3: 2.0})
    result = find_phrase_alignment(grid_64, env)

    _assert_valid(result)
    assert result.best_position == 3
    # Beat 1 is placed one beat before the accent
    assert result.offset == 6
    assert result.count(2) == 1
    assert result.confidence == pytest.approx(0.5)


def test_phrase_alignment_accent_every_fourth_beat(grid_64):
    env = make_envelope(grid_64, accents={0: 2.5, 4: 2.5})
    result = find_phrase_alignment(grid_64, env)

    assert result.best_position == 0
    assert result.offset == 1
    assert result.count(7) == 1


def test_phrase_alignment_needs_32_beats():
    grid = make_grid(31)
    result = find_phrase_alignment(grid, make_envelope(grid, accents={3: 2.0}))
    assert result.offset == 0
    assert result.confidence == 0.0


def test_phrase_alignment_flat_envelope_has_zero_confidence(grid_64):
    result = find_phrase_alignment(grid_64, np.ones(4000))
    _assert_valid(result)
    assert result.confidence == 0.0


def test_energy_consensus_normalizes_loud_bands(grid_64):
    loud_sub = make_envelope(grid_64, accents={5: 100.0})
    bass = make_envelope(grid_64, accents={3: 4.0})

    result = energy_consensus(grid_64, [loud_sub, bass])

    _assert_valid(result)
    assert result.best_position == 3
    assert result.offset == 6


def test_energy_consensus_needs_32_beats():
    grid = make_grid(20)
    result = energy_consensus(grid, [make_envelope(grid)] * 8)
    assert (result.offset, result.confidence) == (0, 0.0)


# ---------------------------------------------------------------------------
# Chromagram / harmony
# ---------------------------------------------------------------------------


def test_pitch_class_map_excludes_out_of_range_bins():
    mapping = pitch_class_map(4096, 22050)
    freqs = np.arange(mapping.shape[0]) * 22050 / 4096
    assert mapping[0].sum() == 0
    assert mapping[freqs < 60].sum() == 0
    assert mapping[freqs > 5000].sum() == 0
    assert np.all(mapping[(freqs >= 60) & (freqs <= 5000)].sum(axis=1) == 1)


def test_chromagram_of_a440():
    sr = 22050
    t = np.arange(int(3.0 * sr)) / sr
    tone = np.sin(2 * np.pi * 440.0 * t)

    chroma = compute_chromagram(tone, sr)

    assert isinstance(chroma, ChromaMatrix)
    assert chroma.chroma.shape == (12, (len(tone) - 4096) // 220)
    assert chroma.centroid.shape == (chroma.n_frames,)
    assert np.all(chroma.chroma >= 0)
    assert np.all(np.argmax(chroma.chroma, axis=0) == 0)  # A
    assert abs(float(np.median(chroma.centroid)) - 440.0) < 30.0


def test_chromagram_reports_progress_per_block():
    sr = 22050
    calls = []
    compute_chromagram(
        np.random.RandomState(0).randn(sr * 3), sr,
        block_frames=50,
        progress=Progress(hook=lambda stage, detail, pct: calls.append((stage, pct))),
    )
    assert len(calls) > 1
    assert all(stage == "Computing chromagram..." for stage, _ in calls)
    percents = [pct for _, pct in calls]
    assert percents == sorted(percents)
    assert all(0 < pct < 100 for pct in percents)


def test_chromagram_short_audio_is_empty():
    chroma = compute_chromagram(np.zeros(1000), 22050)
    assert chroma.chroma.shape == (12, 0)
    assert len(chroma.centroid) == 0


def test_beat_chroma_distances_zero_vectors():
    vectors = np.array([[1.0, 0, 0], [0, 0, 0], [0, 1.0, 0], [0, 1.0, 0]])
    distances = beat_chroma_distances(vectors)
    np.testing.assert_allclose(distances, [0.0, 0.0, 0.0, 0.0], atol=1e-12)

    vectors = np.array([[1.0, 0, 0], [0, 1.0, 0]])
    np.testing.assert_allclose(beat_chroma_distances(vectors), [0.0, 1.0])


def test_beat_sync_chroma_clips_to_matrix():
    grid = make_grid(4)
    chroma = ChromaMatrix(chroma=np.ones((12, 120)), centroid=np.zeros(120))
    result = beat_sync_chroma(chroma, grid)
    assert result.shape == (4, 12)
    assert np.all(result[:2] == 1.0)
    # Beats past the end of the chromagram have no frames
    assert np.all(result[3] == 0.0)


def test_harmony_change_every_eight_beats_from_16(grid_64):
    chroma = make_chroma_with_changes(grid_64, change_beats=set(range(16, 64, 8)))
    result = find_harmony_alignment(chroma, grid_64)

    _assert_valid(result)
    assert int(np.argmax(result.position_scores)) == 0
    assert result.offset == 0
    assert result.confidence == pytest.approx(1.0)
    assert result.beat_chroma.shape == (64, 12)
    assert result.beat_distances[16] == pytest.approx(1.0)
    assert result.beat_distances[17] == pytest.approx(0.0)


def test_harmony_change_point_sets_offset_without_backbeat_shift(grid_64):
    chroma = make_chroma_with_changes(grid_64, change_beats=set(range(19, 64, 8)))
    result = find_harmony_alignment(chroma, grid_64)
    assert result.offset == 5
    assert result.count(19) == 1


def test_harmony_needs_32_beats():
    grid = make_grid(20)
    chroma = make_chroma_with_changes(grid, change_beats={8, 16})
    result = find_harmony_alignment(chroma, grid)
    assert (result.offset, result.confidence) == (0, 0.0)
    assert len(result.beat_distances) == 20


# ---------------------------------------------------------------------------
# Rhythm
# ---------------------------------------------------------------------------


def test_rhythm_peak_without_backbeat_shift(grid_64):
    envelopes = [make_envelope(grid_64, accents={2: 3.0}) for _ in range(8)]
    result = find_rhythm_alignment(grid_64, envelopes)

    _assert_valid(result)
    assert len(result.band_patterns) == 8
    assert int(np.argmax(result.combined_pattern)) == 2
    assert result.offset == 6
    assert result.count(2) == 1


def test_rhythm_needs_32_beats():
    grid = make_grid(10)
    result = find_rhythm_alignment(grid, [make_envelope(grid)])
    assert (result.offset, result.confidence) == (0, 0.0)
    assert result.band_patterns == []


def test_rhythm_skips_beats_outside_envelope(grid_64):
    short = make_envelope(grid_64, accents={2: 3.0})[:1000]
    result = find_rhythm_alignment(grid_64, [short])
    _assert_valid(result)
    assert np.all(np.isfinite(result.combined_pattern))


# ---------------------------------------------------------------------------
# Combined vote + default selection
# ---------------------------------------------------------------------------


def test_combiner_weighted_vote():
    energy = PhraseOffset(offset=2, confidence=0.4)
    harmony = PhraseOffset(offset=5, confidence=0.5)
    rhythm = PhraseOffset(offset=2, confidence=0.3)
    config = CombinerConfig(energy_weight=1.0, harmony_weight=1.5, rhythm_weight=1.0)

    vote = combine_phrase_offsets(energy, harmony, rhythm, config)

    assert vote.tally[6] == pytest.approx(0.7)
    assert vote.tally[3] == pytest.approx(0.75)
    assert vote.offset == 5


def test_combiner_ignores_low_confidence_harmony():
    energy = PhraseOffset(offset=2, confidence=0.4)
    harmony = PhraseOffset(offset=5, confidence=0.1)
    config = CombinerConfig(harmony_weight=100.0, harmony_min_confidence=0.15)

    vote = combine_phrase_offsets(energy, harmony, None, config)

    assert vote.tally[3] == 0.0
    assert vote.offset == 2


def test_combiner_ties_go_to_lowest_bin():
    vote = combine_phrase_offsets(
        PhraseOffset(offset=7, confidence=0.5),  # bin 1
        None,
        PhraseOffset(offset=5, confidence=0.5),  # bin 3
    )
    assert vote.offset == 7


def test_combiner_no_votes_is_offset_zero():
    vote = combine_phrase_offsets(None, None, None)
    assert vote.offset == 0
    assert np.all(vote.tally == 0)


def test_combiner_is_deterministic():
    args = (
        PhraseOffset(offset=1, confidence=0.3),
        PhraseOffset(offset=4, confidence=0.2),
        PhraseOffset(offset=6, confidence=0.3),
    )
    offsets = {combine_phrase_offsets(*args).offset for _ in range(20)}
    assert len(offsets) == 1


def _result(with_methods: bool) -> AnalysisResult:
    grid = make_grid(40)
    bands = [
        BandAnalysis(band=band, envelope=np.zeros(10), beats=grid, bpm=120,
                     phrase=PhraseAlignment(offset=i % 8, confidence=0.5))
        for i, band in enumerate(BANDS)
    ]
    methods = PhraseMethods(
        energy=PhraseAlignment(offset=1, confidence=0.5),
        chroma=ChromaMatrix(chroma=np.zeros((12, 0)), centroid=np.zeros(0)),
        harmony=HarmonyAlignment(offset=2, confidence=0.5),
        rhythm=RhythmAlignment(offset=3, confidence=0.5),
        combined=combine_phrase_offsets(None, None, PhraseOffset(offset=4, confidence=1.0)),
    ) if with_methods else None
    return AnalysisResult(bands=bands, beats=grid, bpm=120, duration=20.0,
                          canonical_index=1, phrase_methods=methods)


@pytest.mark.parametrize("method,expected", [
    (AnalysisMethod.ENERGY, 1),
    (AnalysisMethod.HARMONY, 2),
    (AnalysisMethod.RHYTHM, 3),
    (AnalysisMethod.COMBINED, 4),
])
def test_select_offset_by_method(method, expected):
    assert select_phrase_offset(_result(True), method) == expected


def test_select_offset_manual_override_wins():
    assert select_phrase_offset(_result(True), AnalysisMethod.HARMONY, manual_offset=6) == 6


def test_select_offset_falls_back_to_bass_band():
    assert select_phrase_offset(_result(False), AnalysisMethod.COMBINED) == 1


def test_chromagram_progress_scaled_into_range():
    sr = 22050
    calls = []
    compute_chromagram(
        np.random.RandomState(0).randn(sr * 3), sr,
        block_frames=50,
        progress=Progress(hook=lambda stage, detail, pct: calls.append((detail, pct))),
        percent_range=(55.0, 85.0),
    )
    percents = [pct for _, pct in calls]
    assert all(55.0 < pct < 85.0 for pct in percents)
    assert percents == sorted(percents)
    # Detail keeps the chromagram's own share
    assert calls[0][0] == f"{round(100 * 50 / 282)}%"
