"""Per-content practice session state and its pure updates."""

from __future__ import annotations

from dataclasses import dataclass, field

from models import PracticeMode, SessionSummary


@dataclass
class PracticeSession:
    started_at: float
    mode: PracticeMode = PracticeMode.LISTENING
    active_segment_index: int = 0
    recorded_text_by_segment: dict[int, str] = field(default_factory=dict)
    completed_segment_ids: set[int] = field(default_factory=set)
    score_by_segment: dict[int, float] = field(default_factory=dict)
    total_score: float = 0.0
    finished: bool = False

    def record(self, segment_id: int, transcript: str, score: float) -> bool:
        """Store the latest take; score only the first completion of a segment."""
        self.recorded_text_by_segment[segment_id] = transcript
        if segment_id in self.completed_segment_ids:
            return False
        self.completed_segment_ids.add(segment_id)
        self.score_by_segment[segment_id] = score
        self.total_score += score
        return True

    def summary(self, now: float, total_segments: int) -> SessionSummary:
        completed = len(self.completed_segment_ids)
        return SessionSummary(
            total_score=self.total_score,
            completed_segment_count=completed,
            study_time_seconds=max(0, int(now - self.started_at)),
            average_score=self.total_score / completed if completed else 0.0,
            total_segments=total_segments,
            completion_rate=completed / total_segments * 100 if total_segments else 0.0,
        )
