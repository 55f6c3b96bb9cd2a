"""Pydantic response models for API."""

from pydantic import BaseModel


class BeatResponse(BaseModel):
    time: float
    energy: float


class PhraseResponse(BaseModel):
    offset: int
    confidence: float


class BandResponse(BaseModel):
    name: str
    center_hz: float
    low_hz: float
    high_hz: float
    bpm: int
    beats: list[BeatResponse]
    match_rate: float | None = None
    phrase: PhraseResponse


class HarmonyResponse(PhraseResponse):
    beat_distances: list[float] = []


class RhythmResponse(PhraseResponse):
    band_patterns: list[list[float]] = []
    combined_pattern: list[float] = []


class CombinedResponse(BaseModel):
    tally: list[float]
    offset: int


class AnalysisResponse(BaseModel):
    bpm: int
    duration: float
    beats: list[BeatResponse]
    bands: list[BandResponse]
    energy: PhraseResponse | None = None
    harmony: HarmonyResponse | None = None
    rhythm: RhythmResponse | None = None
    combined: CombinedResponse | None = None
    method: str
    phrase_offset: int
