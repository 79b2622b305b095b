"""Pronunciation assessment adapter using the Azure Speech SDK."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from errors import ASSESSMENT_FAILED, AUTH_FAILED, NETWORK_ERROR, AssessmentError

try:
    import azure.cognitiveservices.speech as speechsdk
except Exception:  # pragma: no cover
    speechsdk = None  # type: ignore

logger = logging.getLogger(__name__)


def _error_code(details: str) -> str:
    low = details.lower()
    if "401" in low or "auth" in low or "subscription" in low:
        return AUTH_FAILED
    if "timeout" in low or "network" in low or "connection" in low:
        return NETWORK_ERROR
    return ASSESSMENT_FAILED


class AzurePronunciationAssessor:
    """Scores one recorded take against a reference text.

    Returns the provider's raw JSON result (NBest/Words/Syllables/Phonemes)
    untouched; normalisation happens in ``normalizer.normalize``.
    """

    def __init__(self, speech_key: str, region: str, enable_prosody: bool = True) -> None:
        self._speech_key = speech_key
        self._region = region
        self._enable_prosody = enable_prosody

    def assess(
        self,
        pcm16_bytes: bytes,
        reference_text: str,
        language: str,
        sample_rate: int = 16000,
    ) -> Optional[dict[str, Any]]:
        if speechsdk is None:
            raise AssessmentError(ASSESSMENT_FAILED, "azure-cognitiveservices-speech is not installed")
        if not self._speech_key or not self._region:
            raise AssessmentError(AUTH_FAILED, "No speech key or region configured")
        if not pcm16_bytes:
            return None

        speech_config = speechsdk.SpeechConfig(subscription=self._speech_key, region=self._region)
        speech_config.speech_recognition_language = language

        stream_format = speechsdk.audio.AudioStreamFormat(
            samples_per_second=sample_rate, bits_per_sample=16, channels=1
        )
        push_stream = speechsdk.audio.PushAudioInputStream(stream_format=stream_format)
        push_stream.write(pcm16_bytes)
        push_stream.close()
        audio_config = speechsdk.audio.AudioConfig(stream=push_stream)
        recognizer = speechsdk.SpeechRecognizer(speech_config=speech_config, audio_config=audio_config)

        pa_config = speechsdk.PronunciationAssessmentConfig(
            reference_text=reference_text,
            grading_system=speechsdk.PronunciationAssessmentGradingSystem.HundredMark,
            granularity=speechsdk.PronunciationAssessmentGranularity.Phoneme,
            enable_miscue=True,
        )
        if self._enable_prosody:
            pa_config.enable_prosody_assessment()
        pa_config.apply_to(recognizer)

        try:
            result = recognizer.recognize_once()
        except Exception as exc:
            raise AssessmentError(_error_code(str(exc)), str(exc)) from exc

        if result.reason == speechsdk.ResultReason.RecognizedSpeech:
            raw = result.properties.get(speechsdk.PropertyId.SpeechServiceResponse_JsonResult)
            if not raw:
                logger.warning("Assessment result carried no JSON payload")
                return None
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Assessment result JSON could not be parsed")
                return None
        if result.reason == speechsdk.ResultReason.NoMatch:
            logger.info("Assessment found no speech matching the reference")
            return None

        details = result.cancellation_details
        message = str(details.error_details or details.reason)
        raise AssessmentError(_error_code(message), message)
