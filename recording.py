"""Exclusive owner of one take's microphone, recognizer and timer."""

from __future__ import annotations

import logging
import threading
import time
from queue import Queue
from typing import Callable, Optional

from errors import TRANSIENT_RECOGNITION_ERRORS
from interfaces import Recorder, RecognizerAdapter
from models import AudioFrame, RecognitionEvent, RecognitionKind

logger = logging.getLogger(__name__)

PartialCallback = Callable[[str], None]
ErrorCallback = Callable[["RecordingSession", str, str], None]


class RecordingSession:
    """Acquire once, release exactly once.

    ``release()`` may be called from any exit path any number of times; only
    the first call stops the handles. Recognition events arriving after the
    release are dropped.
    """

    def __init__(
        self,
        recorder: Recorder,
        recognizer: RecognizerAdapter,
        language: str,
        clock: Callable[[], float] = time.monotonic,
        queue_maxsize: int = 50,
        on_partial: Optional[PartialCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._recorder = recorder
        self._recognizer = recognizer
        self._language = language
        self._clock = clock
        self._queue_maxsize = queue_maxsize
        self._on_partial = on_partial
        self._on_error = on_error

        self._lock = threading.Lock()
        self._drained = threading.Event()
        self._audio_queue: Queue[AudioFrame | None] = Queue(maxsize=queue_maxsize)
        self._finals: list[str] = []
        self._interim = ""
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._capture_stopped = False
        self._released = False
        self.release_count = 0

    @property
    def language(self) -> str:
        return self._language

    @property
    def active(self) -> bool:
        return self._started_at is not None and not self._released

    @property
    def stopping(self) -> bool:
        return self._capture_stopped or self._released

    @property
    def released(self) -> bool:
        return self._released

    @property
    def transcript(self) -> str:
        with self._lock:
            return " ".join(self._finals)

    @property
    def interim_text(self) -> str:
        return self._interim

    @property
    def utterance_count(self) -> int:
        return len(self._finals)

    @property
    def elapsed_s(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0.0, end - self._started_at)

    def acquire(self) -> None:
        """Start recognizer and microphone; on failure nothing stays open."""
        self._recognizer.start(self._audio_queue, self._handle_event, self._language)
        try:
            self._recorder.start(self._audio_queue)
        except Exception:
            self._safe_stop_recognizer()
            self._released = True
            raise
        self._started_at = self._clock()
        logger.debug("Recording acquired (%s)", self._language)

    def stop_capture(self) -> None:
        """Close the microphone so the recognizer can finish the last utterance."""
        if self._capture_stopped or self._released:
            return
        self._capture_stopped = True
        self._stopped_at = self._clock()
        self._safe_stop_recorder()

    def wait_drained(self, timeout_s: float) -> bool:
        if timeout_s <= 0:
            return self._drained.is_set()
        return self._drained.wait(timeout=timeout_s)

    def release(self) -> bool:
        with self._lock:
            if self._released:
                return False
            self._released = True
            self._interim = ""
        if self._started_at is not None and self._stopped_at is None:
            self._stopped_at = self._clock()
        if not self._capture_stopped:
            self._capture_stopped = True
            self._safe_stop_recorder()
        self._safe_stop_recognizer()
        self.release_count += 1
        logger.debug("Recording released after %.1fs", self.elapsed_s)
        return True

    def audio(self) -> bytes:
        try:
            return self._recorder.recorded_pcm()
        except Exception as exc:
            logger.warning("Could not read recorded audio: %s", exc)
            return b""

    def _handle_event(self, event: RecognitionEvent) -> None:
        with self._lock:
            if self._released:
                return
            kind = event.kind
            if kind == RecognitionKind.PARTIAL.value:
                self._interim = event.text
            elif kind == RecognitionKind.FINAL.value:
                self._interim = ""
                if event.text.strip():
                    self._finals.append(event.text.strip())
            elif kind == RecognitionKind.END.value:
                self._drained.set()
                return
            elif kind != RecognitionKind.ERROR.value:
                return

        if kind == RecognitionKind.PARTIAL.value:
            if self._on_partial:
                self._on_partial(event.text)
            return
        if kind == RecognitionKind.ERROR.value:
            if event.code in TRANSIENT_RECOGNITION_ERRORS:
                logger.debug("Ignoring transient recognition error %s", event.code)
                return
            if self._on_error:
                self._on_error(self, event.code, event.message)

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception as exc:
            logger.warning("Recorder stop failed: %s", exc)

    def _safe_stop_recognizer(self) -> None:
        try:
            self._recognizer.stop()
        except Exception as exc:
            logger.warning("Recognizer stop failed: %s", exc)
