"""Flatten raw pronunciation-assessment JSON into AssessmentResult.

The provider payload is untrusted: every field is read defensively and a
missing or malformed value degrades to its default instead of aborting.
Only a payload with no usable top-level shape yields ``None``.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Mapping, Optional

from models import AssessmentResult, PhonemeResult, SyllableResult, WordErrorType, WordResult

logger = logging.getLogger(__name__)


def normalize(raw: Any) -> Optional[AssessmentResult]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Assessment payload is not valid JSON")
            return None
    if not isinstance(raw, Mapping):
        logger.warning("Assessment payload has unexpected type %s", type(raw).__name__)
        return None

    best = _first_nbest(raw)
    if best is None:
        logger.warning("Assessment payload has no NBest entry")
        return None

    scores = _mapping(best.get("PronunciationAssessment"))
    return AssessmentResult(
        accuracy=_score(scores, "AccuracyScore"),
        fluency=_score(scores, "FluencyScore"),
        completeness=_score(scores, "CompletenessScore"),
        prosody=_score(scores, "ProsodyScore"),
        words=[_word(entry) for entry in _list(best.get("Words")) if isinstance(entry, Mapping)],
    )


def _first_nbest(raw: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    nbest = raw.get("NBest")
    if isinstance(nbest, list):
        if nbest and isinstance(nbest[0], Mapping):
            return nbest[0]
        return None
    # Some providers return the best hypothesis unwrapped.
    if "PronunciationAssessment" in raw or "Words" in raw:
        return raw
    return None


def _word(entry: Mapping[str, Any]) -> WordResult:
    assessment = _mapping(entry.get("PronunciationAssessment"))
    return WordResult(
        text=_text(entry.get("Word")),
        accuracy_score=_score(assessment, "AccuracyScore"),
        error_type=_error_type(assessment.get("ErrorType")),
        syllables=[_syllable(s) for s in _list(entry.get("Syllables")) if isinstance(s, Mapping)],
        phonemes=[_phoneme(p) for p in _list(entry.get("Phonemes")) if isinstance(p, Mapping)],
        offset=_int(entry.get("Offset")),
        duration=_int(entry.get("Duration")),
    )


def _syllable(entry: Mapping[str, Any]) -> SyllableResult:
    return SyllableResult(
        label=_text(entry.get("Syllable")),
        accuracy_score=_score(_mapping(entry.get("PronunciationAssessment")), "AccuracyScore"),
        offset=_int(entry.get("Offset")),
        duration=_int(entry.get("Duration")),
        phonemes=[_phoneme(p) for p in _list(entry.get("Phonemes")) if isinstance(p, Mapping)],
    )


def _phoneme(entry: Mapping[str, Any]) -> PhonemeResult:
    # Syllable-level phonemes have been seen under either key.
    assessment = _mapping(entry.get("PronunciationAssessment") or entry.get("PhonemeAssessment"))
    return PhonemeResult(
        label=_text(entry.get("Phoneme")),
        accuracy_score=_score(assessment, "AccuracyScore"),
        offset=_int(entry.get("Offset")),
        duration=_int(entry.get("Duration")),
    )


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _score(container: Mapping[str, Any], key: str) -> float:
    value = container.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return float(value)


def _int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if math.isnan(value) or math.isinf(value):
        return 0
    return int(value)


def _error_type(value: Any) -> WordErrorType:
    try:
        return WordErrorType(value)
    except ValueError:
        return WordErrorType.NONE
