"""File upload endpoint for phrase analysis."""

import logging
import os
import tempfile

from fastapi import APIRouter, UploadFile, File, HTTPException

from eightcount.api.schemas import (
    AnalysisResponse,
    BandResponse,
    BeatResponse,
    CombinedResponse,
    HarmonyResponse,
    PhraseResponse,
    RhythmResponse,
)
from eightcount.analysis.engine import AnalysisEngine
from eightcount.analysis.models import AnalysisMethod, AnalysisResult, BeatGrid
from eightcount.analysis.progress import AnalysisError
from eightcount.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {".wav", ".mp3", ".flac", ".ogg", ".m4a", ".aac", ".wma"}


def _beats(grid: BeatGrid) -> list[BeatResponse]:
    return [BeatResponse(time=b.time, energy=b.energy) for b in grid]


def result_to_response(result: AnalysisResult) -> AnalysisResponse:
    """Convert AnalysisResult to the API model (envelopes and chroma omitted)."""
    methods = result.phrase_methods
    return AnalysisResponse(
        bpm=result.bpm,
        duration=result.duration,
        beats=_beats(result.beats),
        bands=[
            BandResponse(
                name=b.band.name,
                center_hz=b.band.center_hz,
                low_hz=b.band.low_hz,
                high_hz=b.band.high_hz,
                bpm=b.bpm,
                beats=_beats(b.beats),
                match_rate=b.beats.match_rate,
                phrase=PhraseResponse(offset=b.phrase.offset, confidence=b.phrase.confidence),
            )
            for b in result.bands
        ],
        energy=PhraseResponse(
            offset=methods.energy.offset,
            confidence=methods.energy.confidence,
        ) if methods else None,
        harmony=HarmonyResponse(
            offset=methods.harmony.offset,
            confidence=methods.harmony.confidence,
            beat_distances=methods.harmony.beat_distances.tolist(),
        ) if methods else None,
        rhythm=RhythmResponse(
            offset=methods.rhythm.offset,
            confidence=methods.rhythm.confidence,
            band_patterns=[p.tolist() for p in methods.rhythm.band_patterns],
            combined_pattern=methods.rhythm.combined_pattern.tolist(),
        ) if methods else None,
        combined=CombinedResponse(
            tally=methods.combined.tally.tolist(),
            offset=methods.combined.offset,
        ) if methods else None,
        method=result.method.value,
        phrase_offset=result.phrase_offset,
    )


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze_file(file: UploadFile = File(...), method: AnalysisMethod | None = None):
    """Analyze an uploaded audio file for tempo and 8-count phrase alignment."""
    # Validate file
    if file.filename:
        ext = "." + file.filename.rsplit(".", 1)[-1].lower() if "." in file.filename else ""
        if ext and ext not in ALLOWED_EXTENSIONS:
            raise HTTPException(400, f"Unsupported format. Use: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

    content = await file.read()
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(400, f"File too large (max {settings.max_upload_mb} MB)")

    # librosa needs a file path for some formats
    suffix = ""
    if file.filename and "." in file.filename:
        suffix = "." + file.filename.rsplit(".", 1)[-1].lower()

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(content)
            tmp_path = tmp.name

        engine = AnalysisEngine()
        result = engine.analyze_file(tmp_path, method=method)
        return result_to_response(result)
    except AnalysisError as e:
        raise HTTPException(422, str(e))
    except Exception:
        logger.exception("Upload analysis failed")
        raise HTTPException(500, "Analysis failed")
    finally:
        if tmp_path:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
