"""Tests for the assessment payload normalizer."""

from __future__ import annotations

import json

import pytest

from models import WordErrorType
from normalizer import normalize

PAYLOAD = {
    "RecognitionStatus": "Success",
    "NBest": [
        {
            "Display": "中国。",
            "PronunciationAssessment": {
                "AccuracyScore": 82.0,
                "FluencyScore": 75,
                "CompletenessScore": 100,
                "ProsodyScore": 68.5,
            },
            "Words": [
                {
                    "Word": "中国",
                    "Offset": 5000000,
                    "Duration": 9000000,
                    "PronunciationAssessment": {"AccuracyScore": 58, "ErrorType": "Mispronunciation"},
                    "Syllables": [
                        {
                            "Syllable": "zhong1",
                            "PronunciationAssessment": {"AccuracyScore": 40},
                            "Phonemes": [
                                {"Phoneme": "zh", "PhonemeAssessment": {"AccuracyScore": 35}},
                                {"Phoneme": "ong", "PronunciationAssessment": {"AccuracyScore": 90}},
                            ],
                        },
                    ],
                    "Phonemes": [
                        {"Phoneme": "zh", "PronunciationAssessment": {"AccuracyScore": 35}},
                        {"Phoneme": "ong", "PronunciationAssessment": {"AccuracyScore": 90}},
                    ],
                },
            ],
        }
    ],
}


def test_full_payload() -> None:
    result = normalize(PAYLOAD)

    assert result is not None
    assert result.accuracy == 82.0
    assert result.fluency == 75.0
    assert result.completeness == 100.0
    assert result.prosody == 68.5
    word = result.words[0]
    assert word.text == "中国"
    assert word.error_type == WordErrorType.MISPRONUNCIATION
    assert word.offset == 5000000
    assert [p.label for p in word.phonemes] == ["zh", "ong"]
    syllable = word.syllables[0]
    assert syllable.label == "zhong1"
    assert syllable.accuracy_score == 40
    assert syllable.phonemes[0].accuracy_score == 35


def test_json_string_accepted() -> None:
    assert normalize(json.dumps(PAYLOAD, ensure_ascii=False)).accuracy == 82.0
    assert normalize(json.dumps(PAYLOAD).encode("utf-8")).fluency == 75.0


def test_unwrapped_best_hypothesis_accepted() -> None:
    result = normalize(PAYLOAD["NBest"][0])
    assert result is not None
    assert len(result.words) == 1


@pytest.mark.parametrize("raw", [None, 42, [], "not json", b"\xff\xfe", {"NBest": []}, {"NBest": ["x"]}, {}])
def test_unusable_top_level_yields_none(raw) -> None:  # noqa: ANN001
    assert normalize(raw) is None


def test_missing_scores_default_to_zero() -> None:
    result = normalize({"NBest": [{"Words": [{"Word": "好"}]}]})

    assert result.accuracy == 0.0
    assert result.prosody == 0.0
    assert result.words[0].accuracy_score == 0.0
    assert result.words[0].error_type == WordErrorType.NONE


def test_malformed_fields_degrade() -> None:
    raw = {
        "NBest": [
            {
                "PronunciationAssessment": {"AccuracyScore": "high", "FluencyScore": float("nan"), "ProsodyScore": True},
                "Words": [
                    "garbage",
                    {
                        "Word": 7,
                        "Offset": "soon",
                        "PronunciationAssessment": {"AccuracyScore": 61, "ErrorType": "Mumbled"},
                        "Syllables": "none",
                        "Phonemes": [None, {"Phoneme": "a"}],
                    },
                ],
            }
        ]
    }

    result = normalize(raw)

    assert result.accuracy == 0.0
    assert result.fluency == 0.0
    assert result.prosody == 0.0
    assert len(result.words) == 1
    word = result.words[0]
    assert word.text == ""
    assert word.offset == 0
    assert word.accuracy_score == 61
    assert word.error_type == WordErrorType.NONE
    assert word.syllables == []
    assert [p.label for p in word.phonemes] == ["a"]
