"""State-machine based practice orchestration.

One ``PracticeController`` drives the Listening -> Interpreting -> Reviewing
cycle for a single loaded content instance. The practice mode field is the
only authority on what is happening; an unreleased ``RecordingSession``
exists exactly while the mode is ``INTERPRETING``. The released take is
kept for review until the next transition back to ``LISTENING``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Sequence

from auto_pause import DEFAULT_GUARD_WINDOW_S, AutoPauseDetector
from error_classifier import PhonemeRule
from errors import ASSESSMENT_FAILED, DEVICE_NOT_FOUND, AssessmentError, DeviceError, SegmentOrderError, message_for
from interfaces import MediaSource, PronunciationAssessor, Recorder, RecognizerAdapter, ScoringPolicy
from models import (
    AssessmentResult,
    PauseMode,
    PlaybackSample,
    PracticeMode,
    RadarFeedback,
    RadarProfile,
    Segment,
    SessionSummary,
)
from normalizer import normalize
from practice_session import PracticeSession
from radar import build_feedback, build_profile, hesitation_count
from recording import RecordingSession
from scoring import TranscriptLengthScoring
from segment_index import SegmentIndex

logger = logging.getLogger(__name__)

# Forward movement larger than this between samples is treated as a seek.
SEEK_JUMP_S = 2.0

StateCallback = Callable[[PracticeMode, PracticeMode], None]
PartialCallback = Callable[[str], None]
ErrorCallback = Callable[[str, str], None]
SegmentCallback = Callable[[int], None]
AssessmentCallback = Callable[[AssessmentResult, RadarProfile, RadarFeedback], None]
CompleteCallback = Callable[[SessionSummary], None]


class PracticeController:
    def __init__(
        self,
        segments: SegmentIndex,
        media: MediaSource,
        recorder: Recorder,
        recognizer: RecognizerAdapter,
        assessor: Optional[PronunciationAssessor] = None,
        scoring: Optional[ScoringPolicy] = None,
        pause_mode: PauseMode = PauseMode.PER_SENTENCE,
        auto_mode: bool = True,
        recognition_language: str = "ko-KR",
        assessment_language: str = "zh-CN",
        assess_against_source: bool = False,
        phoneme_rules: Optional[Sequence[PhonemeRule]] = None,
        guard_window_s: float = DEFAULT_GUARD_WINDOW_S,
        finalize_timeout_s: float = 2.0,
        queue_maxsize: int = 50,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Optional[StateCallback] = None,
        on_partial: Optional[PartialCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_segment_change: Optional[SegmentCallback] = None,
        on_assessment: Optional[AssessmentCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ) -> None:
        if len(segments) == 0:
            raise SegmentOrderError("no segments to practice")
        self._segments = segments
        self._media = media
        self._recorder = recorder
        self._recognizer = recognizer
        self._assessor = assessor
        self._scoring = scoring or TranscriptLengthScoring()
        self._pause_mode = pause_mode
        self._auto_mode = auto_mode
        self._recognition_language = recognition_language
        self._assessment_language = assessment_language
        self._assess_against_source = assess_against_source
        self._phoneme_rules = phoneme_rules
        self._finalize_timeout_s = finalize_timeout_s
        self._queue_maxsize = queue_maxsize
        self._clock = clock
        self._on_state_change = on_state_change
        self._on_partial = on_partial
        self._on_error = on_error
        self._on_segment_change = on_segment_change
        self._on_assessment = on_assessment
        self._on_complete = on_complete

        self._lock = threading.RLock()
        self._detector = AutoPauseDetector(guard_window_s)
        self._session = PracticeSession(started_at=clock())
        self._recording: Optional[RecordingSession] = None
        self._cursor = 0
        self._is_playing = False
        self._last_sample_time: Optional[float] = None
        self._seek_pending = False
        # A boundary reached inside the guard window, held until the guard opens.
        self._boundary_deferred = False
        self._restarts = 0
        # Segment whose end triggered the current auto-pause, until playback resumes.
        self._paused_index: Optional[int] = None
        self._last_assessment: Optional[AssessmentResult] = None
        self._last_profile: Optional[RadarProfile] = None
        self._last_feedback: Optional[RadarFeedback] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> PracticeMode:
        return self._session.mode

    @property
    def session(self) -> PracticeSession:
        return self._session

    @property
    def segments(self) -> SegmentIndex:
        return self._segments

    @property
    def detector(self) -> AutoPauseDetector:
        return self._detector

    @property
    def current_segment_index(self) -> int:
        return self._cursor

    @property
    def active_segment(self) -> Segment:
        return self._segments[self._session.active_segment_index]

    @property
    def pause_mode(self) -> PauseMode:
        return self._pause_mode

    @property
    def auto_mode(self) -> bool:
        return self._auto_mode

    @property
    def is_recording(self) -> bool:
        return self._recording is not None and self._recording.active

    @property
    def transient_text(self) -> str:
        return self._recording.transcript if self._recording else ""

    @property
    def interim_text(self) -> str:
        return self._recording.interim_text if self._recording else ""

    @property
    def recording_elapsed_s(self) -> float:
        return self._recording.elapsed_s if self._recording else 0.0

    @property
    def last_assessment(self) -> Optional[AssessmentResult]:
        return self._last_assessment

    @property
    def last_profile(self) -> Optional[RadarProfile]:
        return self._last_profile

    @property
    def last_feedback(self) -> Optional[RadarFeedback]:
        return self._last_feedback

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_pause_mode(self, mode: PauseMode) -> None:
        with self._lock:
            self._pause_mode = mode

    def set_auto_mode(self, enabled: bool) -> None:
        with self._lock:
            self._auto_mode = enabled

    # ------------------------------------------------------------------
    # Time source
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Poll the media clock once; fallback for sources without position events."""
        self.observe(PlaybackSample(time=self._media.get_current_time(), is_playing=self._is_playing))

    def observe(self, sample: PlaybackSample) -> None:
        with self._lock:
            if self._session.finished:
                return
            now = self._clock()
            last = self._last_sample_time
            jumped = last is not None and (sample.time < last or sample.time - last > SEEK_JUMP_S)
            if jumped and not self._seek_pending:
                logger.debug("Playback jumped from %.2fs to %.2fs", last, sample.time)
                self._detector.suspend(now)
            may_rewind = jumped or self._seek_pending
            self._last_sample_time = sample.time
            self._seek_pending = False

            # The boundary is judged against the segment that was playing up to
            # this sample, on the sample that crosses its end. A crossing the
            # guard window blocks keeps the cursor there until the guard opens.
            segment = self._segments[self._cursor]
            crossing = last is None or last < segment.end_time or self._boundary_deferred
            fired = deferred = False
            if crossing and self._session.mode == PracticeMode.LISTENING and self._recording is None:
                fired = self._detector.observe(sample, segment, self._pause_mode, now)
                if not fired and not jumped:
                    deferred = self._detector.boundary_reached(sample, segment, self._pause_mode)
            self._boundary_deferred = deferred
            if not fired:
                if deferred:
                    return
                located = self._segments.locate(sample.time)
                if located is not None and (located > self._cursor or (may_rewind and located != self._cursor)):
                    self._set_cursor(located)
                return

            logger.info("Auto-pause at end of segment %s", segment.id)
            self._media.pause()
            self._set_playing(False)
            self._paused_index = self._cursor
            if self._auto_mode:
                self._session.active_segment_index = self._cursor
                self._begin_recording()

    def notify_play_state(self, is_playing: bool) -> None:
        with self._lock:
            self._set_playing(is_playing)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def start_recording(self) -> bool:
        with self._lock:
            if self._session.finished or self._session.mode != PracticeMode.LISTENING:
                return False
            index = self._paused_index if self._paused_index is not None else self._cursor
            self._session.active_segment_index = index
            return self._begin_recording()

    def stop_recording(self) -> None:
        with self._lock:
            recording = self._recording
            if self._session.mode != PracticeMode.INTERPRETING or recording is None:
                return
            if recording.stopping:
                return
            recording.stop_capture()

        # The recognizer finishes the trailing utterance without holding our lock.
        recording.wait_drained(self._finalize_timeout_s)

        with self._lock:
            if self._recording is not recording or not recording.release():
                return
            session = self._session
            restarts = self._restarts
            segment = self.active_segment
            transcript = recording.transcript
            utterances = recording.utterance_count
            audio = recording.audio() if self._assessor is not None else b""
            self._transition(PracticeMode.REVIEWING)

        result = self._assess(segment, audio)

        with self._lock:
            if self._restarts != restarts:
                logger.info("Discarding take for segment %s after restart", segment.id)
                return
            profile = None
            if result is not None:
                profile = build_profile(result, hesitation_count(utterances))
                feedback = build_feedback(profile, result, self._phoneme_rules)
                if self._recording is recording:
                    self._last_assessment = result
                    self._last_profile = profile
                    self._last_feedback = feedback
                    if self._on_assessment:
                        self._on_assessment(result, profile, feedback)
            if not transcript and result is None:
                logger.info("Empty take for segment %s, nothing recorded", segment.id)
                return
            score = self._scoring.score(transcript, profile)
            if session.record(segment.id, transcript, score):
                logger.info("Segment %s completed, score %.1f", segment.id, score)

    def toggle_recording(self) -> None:
        if self.is_recording:
            self.stop_recording()
        else:
            self.start_recording()

    def practice_again(self) -> None:
        with self._lock:
            if self._session.mode != PracticeMode.REVIEWING:
                return
            index = self._session.active_segment_index
            self._reset_transient()
            self._set_cursor(index)
            self._seek(self._segments[index].start_time, play=True)
            self._transition(PracticeMode.LISTENING)

    def next_segment(self) -> None:
        with self._lock:
            if self._session.finished:
                return
            self._cancel_recording()
            nxt = self._session.active_segment_index + 1
            if nxt >= len(self._segments):
                self._reset_transient()
                self._transition(PracticeMode.LISTENING)
                self._complete()
                return
            self._session.active_segment_index = nxt
            self._reset_transient()
            self._set_cursor(nxt)
            if self._auto_mode:
                self._seek(self._segments[nxt].start_time, play=True)
            else:
                self._detector.suspend(self._clock())
            self._transition(PracticeMode.LISTENING)

    def select_segment(self, index: int) -> None:
        if not 0 <= index < len(self._segments):
            raise IndexError(f"segment index {index} out of range")
        with self._lock:
            self._cancel_recording()
            self._session.active_segment_index = index
            self._reset_transient()
            self._set_cursor(index)
            self._seek(self._segments[index].start_time, play=True)
            self._transition(PracticeMode.LISTENING)

    def restart(self) -> None:
        """Rewind to the first segment, keeping recorded takes and the score."""
        with self._lock:
            self._cancel_recording()
            self._reset_transient()
            self._restarts += 1
            self._session.active_segment_index = 0
            self._session.finished = False
            self._transition(PracticeMode.LISTENING)
            self._set_cursor(0)
            self._seek(self._segments[0].start_time, play=False)
            logger.info("Practice session restarted")

    def shutdown(self) -> None:
        with self._lock:
            self._cancel_recording()
            if self._session.mode == PracticeMode.INTERPRETING:
                self._transition(PracticeMode.LISTENING)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _begin_recording(self) -> bool:
        recording = RecordingSession(
            recorder=self._recorder,
            recognizer=self._recognizer,
            language=self._recognition_language,
            clock=self._clock,
            queue_maxsize=self._queue_maxsize,
            on_partial=self._handle_partial,
            on_error=self._handle_recording_error,
        )
        try:
            recording.acquire()
        except DeviceError as exc:
            self._emit_error(exc.code, str(exc))
            return False
        except Exception as exc:
            self._emit_error(DEVICE_NOT_FOUND, str(exc))
            return False

        self._recording = recording
        self._last_assessment = None
        self._last_profile = None
        self._last_feedback = None
        if self._auto_mode and self._is_playing:
            self._media.pause()
            self._set_playing(False)
        self._transition(PracticeMode.INTERPRETING)
        return True

    def _assess(self, segment: Segment, audio: bytes) -> Optional[AssessmentResult]:
        if self._assessor is None or not audio:
            return None
        reference = segment.text if self._assess_against_source else segment.auxiliary_text
        try:
            raw = self._assessor.assess(audio, reference, self._assessment_language)
        except AssessmentError as exc:
            self._emit_error(exc.code, str(exc))
            return None
        except Exception as exc:
            self._emit_error(ASSESSMENT_FAILED, str(exc))
            return None
        if raw is None:
            return None
        return normalize(raw)

    def _handle_partial(self, text: str) -> None:
        if self._on_partial:
            self._on_partial(text)

    def _handle_recording_error(self, recording: RecordingSession, code: str, message: str) -> None:
        with self._lock:
            if self._recording is not recording or recording.released:
                return
            logger.warning("Recognition failed with %s: %s", code, message)
            self._emit_error(code, message)
            recording.release()
            self._recording = None
            self._transition(PracticeMode.LISTENING)

    def _cancel_recording(self) -> None:
        recording = self._recording
        if recording is not None and recording.release():
            logger.info("Recording cancelled for segment %s", self.active_segment.id)

    def _reset_transient(self) -> None:
        self._recording = None
        self._paused_index = None
        self._boundary_deferred = False
        self._last_assessment = None
        self._last_profile = None
        self._last_feedback = None

    def _complete(self) -> None:
        self._session.finished = True
        summary = self._session.summary(self._clock(), len(self._segments))
        logger.info(
            "Session complete: %d/%d segments, total %.1f",
            summary.completed_segment_count,
            summary.total_segments,
            summary.total_score,
        )
        if self._on_complete:
            self._on_complete(summary)

    def _seek(self, seconds: float, play: bool) -> None:
        self._detector.suspend(self._clock())
        self._media.seek_to(seconds)
        self._seek_pending = True
        self._paused_index = None
        self._boundary_deferred = False
        if play:
            self._media.play()
            self._set_playing(True)

    def _set_playing(self, is_playing: bool) -> None:
        if self._is_playing == is_playing:
            return
        self._is_playing = is_playing
        if is_playing:
            self._paused_index = None
        self._detector.notify_play_state(is_playing)

    def _set_cursor(self, index: int) -> None:
        if index == self._cursor:
            return
        self._cursor = index
        if self._on_segment_change:
            self._on_segment_change(index)

    def _emit_error(self, code: str, message: str) -> None:
        logger.warning("%s: %s", code, message)
        if self._on_error:
            self._on_error(code, message or message_for(code))

    def _transition(self, to_state: PracticeMode) -> None:
        from_state = self._session.mode
        if from_state == to_state:
            return
        self._session.mode = to_state
        logger.debug("%s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
