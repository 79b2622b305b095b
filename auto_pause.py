"""Boundary detection deciding when playback should pause for interpreting."""

from __future__ import annotations

import logging
from typing import Optional

from models import PauseMode, PlaybackSample, Segment
from segment_index import is_sentence_final

logger = logging.getLogger(__name__)

MIN_SEGMENT_DWELL_S = 1.0
DEFAULT_GUARD_WINDOW_S = 1.0


class AutoPauseDetector:
    """Emits at most one pause request per segment between seeks.

    ``suspend(now)`` must be called right before a programmatic seek. The
    detector re-enables itself one guard window later, evaluated on the next
    sample, and may fire once more than one guard window has passed since
    the seek.
    """

    def __init__(self, guard_window_s: float = DEFAULT_GUARD_WINDOW_S) -> None:
        self._guard_window_s = guard_window_s
        self._enabled = True
        self._last_enabled_at = float("-inf")
        self._suspended_at = float("-inf")
        self._reenable_at: Optional[float] = None
        self._fired_segment_id: Optional[int] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def last_enabled_at(self) -> float:
        return self._last_enabled_at

    @property
    def guard_window_s(self) -> float:
        return self._guard_window_s

    def suspend(self, now: float) -> None:
        self._enabled = False
        self._suspended_at = now
        self._reenable_at = now + self._guard_window_s
        self._fired_segment_id = None

    def enable(self, now: float) -> None:
        self._enabled = True
        self._last_enabled_at = now
        self._reenable_at = None

    def notify_play_state(self, is_playing: bool) -> None:
        # A play/pause cycle re-arms the segment that already fired.
        if is_playing:
            self._fired_segment_id = None

    def guard_open(self, now: float) -> bool:
        return self._enabled and now - self._last_enabled_at > self._guard_window_s

    def boundary_reached(self, sample: PlaybackSample, segment: Optional[Segment], pause_mode: PauseMode) -> bool:
        """Every pause condition except the guard window."""
        if pause_mode == PauseMode.MANUAL or segment is None:
            return False
        if not sample.is_playing or self._fired_segment_id == segment.id:
            return False
        if sample.time < segment.end_time:
            return False
        if sample.time - segment.start_time < MIN_SEGMENT_DWELL_S:
            return False
        if pause_mode == PauseMode.PER_SENTENCE and not is_sentence_final(segment):
            return False
        return True

    def observe(
        self,
        sample: PlaybackSample,
        segment: Optional[Segment],
        pause_mode: PauseMode,
        now: float,
    ) -> bool:
        """Return True when playback should pause at the end of ``segment``."""
        if not self._enabled and self._reenable_at is not None and now >= self._reenable_at:
            # The guard counts from the seek, not from the re-enable.
            self.enable(self._suspended_at)

        if not self.boundary_reached(sample, segment, pause_mode):
            return False
        if not self.guard_open(now):
            return False

        self._fired_segment_id = segment.id
        logger.debug("Pause requested at %.2fs for segment %s", sample.time, segment.id)
        return True
