"""Core data models for the practice orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PracticeMode(str, Enum):
    LISTENING = "LISTENING"
    INTERPRETING = "INTERPRETING"
    REVIEWING = "REVIEWING"


class PauseMode(str, Enum):
    PER_SEGMENT = "per_segment"
    PER_SENTENCE = "per_sentence"
    MANUAL = "manual"


class RecognitionKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"
    END = "end"


class WordErrorType(str, Enum):
    NONE = "None"
    OMISSION = "Omission"
    INSERTION = "Insertion"
    MISPRONUNCIATION = "Mispronunciation"
    UNEXPECTED_BREAK = "UnexpectedBreak"
    MISSING_BREAK = "MissingBreak"
    MONOTONE = "Monotone"


class ErrorCategory(str, Enum):
    TONE = "tone"
    CONSONANT = "consonant"
    VOWEL = "vowel"
    RHYTHM = "rhythm"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Segment:
    id: int
    order: int
    start_time: float
    end_time: float
    text: str
    auxiliary_text: str = ""
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlaybackSample:
    time: float
    is_playing: bool


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecognitionEvent:
    kind: str
    text: str = ""
    language: str = ""
    code: str = ""
    message: str = ""
    retryable: bool = False

    @property
    def is_final(self) -> bool:
        return self.kind == RecognitionKind.FINAL.value

    @property
    def transcript(self) -> str:
        return self.text


@dataclass
class PhonemeResult:
    label: str
    accuracy_score: float = 0.0
    offset: int = 0
    duration: int = 0


@dataclass
class SyllableResult:
    label: str
    accuracy_score: float = 0.0
    offset: int = 0
    duration: int = 0
    phonemes: list[PhonemeResult] = field(default_factory=list)


@dataclass
class WordResult:
    text: str
    accuracy_score: float = 0.0
    error_type: WordErrorType = WordErrorType.NONE
    syllables: list[SyllableResult] = field(default_factory=list)
    phonemes: list[PhonemeResult] = field(default_factory=list)
    offset: int = 0
    duration: int = 0


@dataclass
class AssessmentResult:
    accuracy: float = 0.0
    fluency: float = 0.0
    completeness: float = 0.0
    prosody: float = 0.0
    words: list[WordResult] = field(default_factory=list)


@dataclass(frozen=True)
class ErrorClassification:
    category: ErrorCategory
    severity: Severity
    pattern: str = ""
    remediation_hint: str = ""
    practice_example: str = ""
    phonemes: tuple[str, ...] = ()


@dataclass(frozen=True)
class RadarProfile:
    accuracy: float
    fluency: float
    completeness: float
    prosody: float
    confidence: float

    @property
    def composite(self) -> float:
        return (self.accuracy + self.fluency + self.completeness + self.prosody + self.confidence) / 5


@dataclass
class RadarFeedback:
    band: int
    advice: str
    strengths: list[str] = field(default_factory=list)
    improvements: list[str] = field(default_factory=list)
    problem_words: list[str] = field(default_factory=list)
    word_errors: list[tuple[str, ErrorClassification]] = field(default_factory=list)


@dataclass(frozen=True)
class SessionSummary:
    total_score: float
    completed_segment_count: int
    study_time_seconds: int
    average_score: float
    total_segments: int = 0
    completion_rate: float = 0.0
