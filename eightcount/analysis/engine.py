"""Analysis orchestrator - runs the band pipelines and the phrase methods."""

import dataclasses
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

import numpy as np

from eightcount.analysis.beat_tracking import detect_beats
from eightcount.analysis.chroma import compute_chromagram
from eightcount.analysis.combiner import CombinerConfig, combine_phrase_offsets, select_phrase_offset
from eightcount.analysis.grid import fit_beat_grid
from eightcount.analysis.models import (
    BANDS,
    AnalysisMethod,
    AnalysisResult,
    AnalysisSession,
    BandAnalysis,
    FrequencyBand,
    PhraseMethods,
    Track,
)
from eightcount.analysis.onset import compute_envelope
from eightcount.analysis.progress import (
    AnalysisCancelled,
    AnalysisError,
    InsufficientAudioError,
    Progress,
    ProgressHook,
)
from eightcount.analysis.signals import (
    energy_consensus,
    find_harmony_alignment,
    find_phrase_alignment,
    find_rhythm_alignment,
)
from eightcount.analysis.tempo import estimate_bpm
from eightcount.audio.loader import load_track
from eightcount.audio.preprocessing import band_filter
from eightcount.config import settings

logger = logging.getLogger(__name__)

# Share of the progress bar spent in the per-band pipelines
_BANDS_PERCENT = 50.0
# Chromagram blocks report within this range
_CHROMA_PERCENT = (55.0, 85.0)


class AnalysisEngine:
    """Orchestrates the full analysis pipeline."""

    def __init__(
        self,
        bands: Sequence[FrequencyBand] = BANDS,
        combiner: CombinerConfig | None = None,
        max_workers: int | None = None,
    ):
        self.bands = tuple(bands)
        self.combiner = combiner or CombinerConfig.from_settings(settings)
        self.max_workers = max_workers or settings.max_workers
        self.hop_seconds = settings.envelope_hop_ms / 1000.0

    def analyze_file(self, file_path: str, **kwargs) -> AnalysisResult:
        """Analyze an audio file."""
        try:
            track = load_track(file_path, sr=settings.sample_rate)
        except Exception as e:
            logger.warning(f"Could not decode {file_path}: {e}")
            raise AnalysisError(f"Could not decode audio: {e}") from e
        return self.analyze_track(track, **kwargs)

    def analyze_audio(self, audio: np.ndarray, sr: int = 22050, **kwargs) -> AnalysisResult:
        """Analyze pre-loaded mono audio."""
        return self.analyze_track(Track(samples=np.asarray(audio), sample_rate=sr), **kwargs)

    def analyze_session(self, session: AnalysisSession, **kwargs) -> AnalysisSession:
        """Analyze the session's track and return the session with its result."""
        result = self.analyze_track(
            session.track,
            method=session.method,
            manual_offset=session.manual_offset,
            **kwargs,
        )
        return dataclasses.replace(session, result=result)

    def analyze_track(
        self,
        track: Track,
        method: AnalysisMethod | None = None,
        manual_offset: int | None = None,
        phrase_methods: bool = True,
        progress_hook: Optional[ProgressHook] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AnalysisResult:
        """Run the whole-track analysis.

        If *phrase_methods* is False only the band pipelines run and the
        default offset falls back to the bass band's own alignment.
        Raises ``InsufficientAudioError`` for unusable input,
        ``AnalysisCancelled`` when *cancel_event* is set mid-run and
        ``AnalysisError`` for any other failure; no partial result is returned.
        """
        self._validate(track)
        method = method or AnalysisMethod(settings.default_method)
        progress = Progress(progress_hook, cancel_event)

        try:
            return self._run(track, method, manual_offset, phrase_methods, progress)
        except AnalysisCancelled:
            logger.info("Analysis cancelled")
            raise
        except AnalysisError:
            raise
        except Exception as e:
            logger.exception("Analysis failed")
            raise AnalysisError(f"Analysis failed: {e}") from e

    def _validate(self, track: Track) -> None:
        if track.sample_rate <= 0:
            raise InsufficientAudioError(f"invalid sample rate {track.sample_rate}")
        if track.samples is None or len(track.samples) == 0:
            raise InsufficientAudioError("empty sample buffer")
        if not self.bands:
            raise InsufficientAudioError("no frequency bands configured")

    def _run(
        self,
        track: Track,
        method: AnalysisMethod,
        manual_offset: int | None,
        with_phrase_methods: bool,
        progress: Progress,
    ) -> AnalysisResult:
        audio, sr = track.samples, track.sample_rate
        logger.info(f"Analyzing {track.duration:.1f}s of audio at {sr}Hz")

        # Step 1: per-band pipelines
        logger.info(f"Step 1: Band pipelines ({len(self.bands)} bands)")
        bands = self._run_bands(track, progress)
        for band in bands:
            logger.info(
                f"  {band.name}: {len(band.beats)} beats, {band.bpm} BPM, "
                f"offset {band.phrase.offset} ({band.phrase.confidence:.0%})"
            )

        canonical_index = self._canonical_index()
        canonical = bands[canonical_index]
        logger.info(f"  Canonical timeline: {canonical.name} ({len(canonical.beats)} beats, {canonical.bpm} BPM)")

        result = AnalysisResult(
            bands=bands,
            beats=canonical.beats,
            bpm=canonical.bpm,
            duration=track.duration,
            canonical_index=canonical_index,
            method=method,
        )

        if with_phrase_methods:
            result.phrase_methods = self._run_phrase_methods(audio, sr, bands, canonical, progress)

        result.phrase_offset = select_phrase_offset(result, method, manual_offset)
        logger.info(f"Phrase offset ({method.value}): {result.phrase_offset}")
        progress.report("Done", "", 100.0)
        return result

    def _run_bands(self, track: Track, progress: Progress) -> list[BandAnalysis]:
        """Run every band pipeline and wait for all of them."""
        n = len(self.bands)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, n)) as pool:
            futures = [
                pool.submit(self._analyze_band, track, band, progress)
                for band in self.bands
            ]
            results = []
            try:
                for b, future in enumerate(futures):
                    band = self.bands[b]
                    progress.report(
                        f"Analyzing band {b + 1}/{n}...",
                        f"{band.name} ({band.low_hz:g}-{band.high_hz:g} Hz)",
                        _BANDS_PERCENT * b / n,
                    )
                    results.append(future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return results

    def _analyze_band(self, track: Track, band: FrequencyBand, progress: Progress) -> BandAnalysis:
        """Filter -> envelope -> beats -> tempo -> grid -> phrase for one band."""
        progress.checkpoint()
        filtered = band_filter(track.samples, track.sample_rate, band)
        envelope = compute_envelope(filtered, track.sample_rate, settings.envelope_hop_ms)

        raw_beats = detect_beats(
            envelope,
            hop_seconds=self.hop_seconds,
            window=settings.peak_window,
            threshold=settings.peak_threshold,
            min_interval=settings.min_beat_interval,
            progress=progress,
            checkpoint_every=settings.checkpoint_every_frames,
        )
        bpm = estimate_bpm(raw_beats)
        grid = fit_beat_grid(raw_beats, bpm, track.duration, min_beats=settings.min_grid_beats)
        phrase = find_phrase_alignment(
            grid, envelope,
            hop_seconds=self.hop_seconds,
            lag_frames=settings.onset_lag_frames,
            min_beats=settings.min_phrase_beats,
        )
        logger.debug(f"{band.name}: {len(raw_beats)} raw beats, grid match {grid.match_rate}")
        return BandAnalysis(band=band, envelope=envelope, beats=grid, bpm=bpm, phrase=phrase)

    def _canonical_index(self) -> int:
        for i, band in enumerate(self.bands):
            if band.name == settings.canonical_band:
                return i
        logger.warning(f"No '{settings.canonical_band}' band configured, using {self.bands[0].name}")
        return 0

    def _run_phrase_methods(
        self,
        audio: np.ndarray,
        sr: int,
        bands: list[BandAnalysis],
        canonical: BandAnalysis,
        progress: Progress,
    ) -> PhraseMethods:
        beats = canonical.beats
        envelopes = [b.envelope for b in bands]

        # Step 2: energy consensus on the shared timeline
        logger.info("Step 2: Energy consensus")
        progress.report("Computing energy consensus...", "All bands on the bass grid", _BANDS_PERCENT)
        energy = energy_consensus(
            beats, envelopes,
            hop_seconds=self.hop_seconds,
            lag_frames=settings.onset_lag_frames,
            min_beats=settings.min_phrase_beats,
        )
        logger.info(f"  Energy: offset {energy.offset} ({energy.confidence:.1%})")

        # Step 3: chromagram + harmony
        logger.info("Step 3: Chromagram")
        progress.report("Computing chromagram...", "This may take a moment", _CHROMA_PERCENT[0])
        chroma = compute_chromagram(
            audio, sr,
            n_fft=settings.chroma_fft_size,
            hop_ms=settings.envelope_hop_ms,
            block_frames=settings.checkpoint_every_frames,
            progress=progress,
            percent_range=_CHROMA_PERCENT,
        )

        logger.info("Step 4: Harmony")
        progress.report("Computing harmony analysis...", "Beat-sync chroma distance", _CHROMA_PERCENT[1])
        harmony = find_harmony_alignment(
            chroma, beats,
            lag_frames=settings.chroma_lag_frames,
            onset_frames=settings.chroma_onset_frames,
            min_beats=settings.min_phrase_beats,
        )
        logger.info(f"  Harmony: offset {harmony.offset} ({harmony.confidence:.1%})")

        # Step 5: rhythm
        logger.info("Step 5: Rhythm")
        progress.report("Computing rhythm analysis...", "Per-band onset patterns", 90.0)
        rhythm = find_rhythm_alignment(
            beats, envelopes,
            hop_seconds=self.hop_seconds,
            lag_frames=settings.onset_lag_frames,
            min_beats=settings.min_phrase_beats,
        )
        logger.info(f"  Rhythm: offset {rhythm.offset} ({rhythm.confidence:.1%})")

        # Step 6: combined vote
        logger.info("Step 6: Combined vote")
        progress.report("Computing combined analysis...", "Multi-method voting", 95.0)
        combined = combine_phrase_offsets(energy, harmony, rhythm, self.combiner)
        logger.info(f"  Combined: offset {combined.offset}, tally {np.round(combined.tally, 3).tolist()}")

        return PhraseMethods(
            energy=energy,
            chroma=chroma,
            harmony=harmony,
            rhythm=rhythm,
            combined=combined,
        )
