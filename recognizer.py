"""ASR recognizer adapter using DashScope qwen3-asr-flash.

qwen3-asr-flash recognises complete audio clips, so the worker cuts the
incoming PCM into utterances at trailing silence and sends each one as a
base64 WAV with ``stream=True``. Every utterance yields its partial results
followed by one ``final`` event; the number of finals is what the radar
profile counts as hesitations. When the recorder's sentinel arrives the
trailing utterance is flushed and an ``end`` event is emitted. ``stop()``
cancels without flushing anything and returns at once; the cancelled worker
exits on its own and emits nothing further.
"""

from __future__ import annotations

import base64
import io
import logging
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from errors import ASR_PROTOCOL_ERROR, AUTH_FAILED, NETWORK_ERROR, NO_SPEECH
from models import AudioFrame, RecognitionEvent, RecognitionKind

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _frame_rms(frame: AudioFrame) -> float:
    if np is None:
        return float("inf")
    samples = np.frombuffer(frame.pcm16_bytes, dtype=np.int16)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))


def _frame_ms(frame: AudioFrame) -> float:
    bytes_per_second = frame.sample_rate * frame.channels * 2
    return len(frame.pcm16_bytes) * 1000.0 / bytes_per_second if bytes_per_second else 0.0


def _asr_language(tag: str) -> str:
    return tag.split("-")[0].lower() if tag else ""


class _Take:
    """Queue, callback and stop flag owned by one worker thread."""

    def __init__(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
        language: str,
    ) -> None:
        self.audio_queue = audio_queue
        self.on_event = on_event
        self.language = language
        self.stop_event = threading.Event()

    def emit(self, kind: RecognitionKind, **fields) -> None:
        if self.stop_event.is_set():
            return
        self.on_event(RecognitionEvent(kind=kind.value, language=self.language, **fields))


class DashscopeRecognizerAdapter:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 10.0,
        silence_rms: float = 500.0,
        silence_tail_ms: float = 700.0,
        min_utterance_ms: float = 300.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._silence_rms = silence_rms
        self._silence_tail_ms = silence_tail_ms
        self._min_utterance_ms = min_utterance_ms
        self._thread: Optional[threading.Thread] = None
        self._take: Optional[_Take] = None

    def start(
        self,
        audio_queue: Queue[AudioFrame | None],
        on_event: Callable[[RecognitionEvent], None],
        language: str = "zh-CN",
    ) -> None:
        # A cancelled worker may still be blocked in a request. It keeps its own
        # queue and stop flag, so the new take always gets a fresh worker.
        previous = self._take
        if previous is not None and not previous.stop_event.is_set() and self._thread and self._thread.is_alive():
            return
        take = _Take(audio_queue=audio_queue, on_event=on_event, language=language)
        self._take = take
        self._thread = threading.Thread(target=self._worker, args=(take,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Cancel the current take without waiting for its worker to exit."""
        take = self._take
        if take is not None:
            take.stop_event.set()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _worker(self, take: _Take) -> None:
        """Split frames into utterances until the sentinel, then signal the end."""
        utterance = bytearray()
        voiced_ms = 0.0
        silent_ms = 0.0
        heard_speech = False
        sample_rate = 16000
        channels = 1

        while not take.stop_event.is_set():
            try:
                frame = take.audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:  # Sentinel
                break
            sample_rate = frame.sample_rate
            channels = frame.channels
            duration = _frame_ms(frame)

            if _frame_rms(frame) >= self._silence_rms:
                voiced_ms += duration
                silent_ms = 0.0
                utterance.extend(frame.pcm16_bytes)
                continue
            if not voiced_ms:
                continue
            utterance.extend(frame.pcm16_bytes)
            silent_ms += duration
            if silent_ms < self._silence_tail_ms:
                continue
            if voiced_ms >= self._min_utterance_ms:
                heard_speech = True
                if not self._recognize(take, bytes(utterance), sample_rate, channels):
                    return
            utterance = bytearray()
            voiced_ms = silent_ms = 0.0

        if take.stop_event.is_set():
            return

        if voiced_ms >= self._min_utterance_ms:
            heard_speech = True
            if not self._recognize(take, bytes(utterance), sample_rate, channels):
                return
        if not heard_speech:
            take.emit(RecognitionKind.ERROR, code=NO_SPEECH, message="no speech detected", retryable=True)
        take.emit(RecognitionKind.END)

    def _recognize(self, take: _Take, pcm: bytes, sample_rate: int, channels: int) -> bool:
        """Recognise one utterance; False once an error event has been emitted."""
        if dashscope is None:
            take.emit(
                RecognitionKind.ERROR,
                code=ASR_PROTOCOL_ERROR,
                message="dashscope is not installed",
                retryable=False,
            )
            return False

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            take.emit(RecognitionKind.ERROR, code=AUTH_FAILED, message="No API key configured", retryable=False)
            return False

        asr_options = {"enable_itn": False}
        language = _asr_language(take.language)
        if language:
            asr_options["language"] = language

        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": _pcm_to_wav_base64(pcm, sample_rate, channels)}]},
                ],
                result_format="message",
                asr_options=asr_options,
                stream=True,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            self._emit_error(take, exc)
            return False

        latest_text = ""
        try:
            for chunk in response:
                if take.stop_event.is_set():
                    return False
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    take.emit(RecognitionKind.PARTIAL, text=text)
        except Exception as exc:
            self._emit_error(take, exc)
            return False

        if take.stop_event.is_set():
            return False
        if latest_text.strip():
            take.emit(RecognitionKind.FINAL, text=latest_text)
        else:
            logger.debug("Utterance of %d bytes produced no text", len(pcm))
        return True

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if isinstance(chunk, dict):
            output = chunk.get("output", {})
            choices = output.get("choices", [])
            if not choices:
                return ""
            message = choices[0].get("message", {})
            content = message.get("content", [])
            if not content:
                return ""
            value = content[0]
            if isinstance(value, dict):
                return str(value.get("text", ""))
        return ""

    def _emit_error(self, take: _Take, exc: Exception) -> None:
        """Map an SDK/network exception to a standard error event."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "auth" in low or "api key" in low:
            code = AUTH_FAILED
            retryable = False
        elif "timeout" in low or "network" in low or "connection" in low:
            code = NETWORK_ERROR
            retryable = True
        else:
            code = ASR_PROTOCOL_ERROR
            retryable = True
        logger.warning("Recognition request failed (%s): %s", code, message)
        take.emit(RecognitionKind.ERROR, code=code, message=message, retryable=retryable)
