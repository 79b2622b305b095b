"""Per-segment score policies plugged into the controller."""

from __future__ import annotations

from typing import Optional

from models import RadarProfile

MAX_SEGMENT_SCORE = 100.0


class TranscriptLengthScoring:
    """Two points per transcript character, capped at 100."""

    def __init__(self, points_per_char: float = 2.0) -> None:
        self._points_per_char = points_per_char

    def score(self, transcript: str, profile: Optional[RadarProfile]) -> float:
        return min(len(transcript.strip()) * self._points_per_char, MAX_SEGMENT_SCORE)


class RadarCompositeScoring:
    """Mean of the radar axes; transcript length when no assessment exists."""

    def __init__(self, fallback: Optional[TranscriptLengthScoring] = None) -> None:
        self._fallback = fallback or TranscriptLengthScoring()

    def score(self, transcript: str, profile: Optional[RadarProfile]) -> float:
        if profile is None:
            return self._fallback.score(transcript, profile)
        return round(profile.composite, 2)
