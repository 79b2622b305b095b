"""Protocol interfaces used by PracticeController."""

from __future__ import annotations

from queue import Queue
from typing import Any, Callable, Optional, Protocol

from models import AudioFrame, RadarProfile, RecognitionEvent


class MediaSource(Protocol):
    def get_current_time(self) -> float: ...

    def seek_to(self, seconds: float) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...

    def recorded_pcm(self) -> bytes: ...


class RecognizerAdapter(Protocol):
    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
        language: str,
    ) -> None: ...

    def stop(self) -> None: ...


class PronunciationAssessor(Protocol):
    def assess(
        self,
        pcm16_bytes: bytes,
        reference_text: str,
        language: str,
        sample_rate: int = 16000,
    ) -> Optional[dict[str, Any]]: ...


class ScoringPolicy(Protocol):
    def score(self, transcript: str, profile: Optional[RadarProfile]) -> float: ...
