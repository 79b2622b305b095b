"""Priority-ordered mapping of word results to learner-facing error hints.

Rules are data. ``KNOWN_PHONEME_RULES`` holds the per language-pair
problem phonemes checked first (in table order); the tone and generic
phoneme fallbacks follow, and anything else is a low-severity pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from models import ErrorCategory, ErrorClassification, Severity, WordErrorType, WordResult

PHONEME_THRESHOLD = 70
TONE_THRESHOLD = 60


@dataclass(frozen=True)
class PhonemeRule:
    phoneme: str
    category: ErrorCategory
    severity: Severity
    pattern: str
    remediation_hint: str
    practice_example: str


# Korean speakers learning Mandarin.
KO_ZH_RULES: tuple[PhonemeRule, ...] = (
    PhonemeRule(
        phoneme="zh",
        category=ErrorCategory.CONSONANT,
        severity=Severity.HIGH,
        pattern="Retroflex zh pronounced as the dental z",
        remediation_hint="Curl the tongue tip back and practice the 'zh' onset slowly",
        practice_example="zhōng guó, slowly five times",
    ),
    PhonemeRule(
        phoneme="ü",
        category=ErrorCategory.VOWEL,
        severity=Severity.HIGH,
        pattern="Rounded front vowel ü merged into u",
        remediation_hint="Round the lips forward while keeping the tongue in the 'i' position",
        practice_example="lǜ, nǚ, repeated",
    ),
    PhonemeRule(
        phoneme="r",
        category=ErrorCategory.CONSONANT,
        severity=Severity.MEDIUM,
        pattern="Rhotic r weakened or replaced by l",
        remediation_hint="Keep the tongue tip off the palate while voicing 'r'",
        practice_example="rén, rì, repeated",
    ),
)

KNOWN_PHONEME_RULES: dict[str, tuple[PhonemeRule, ...]] = {
    "ko-zh": KO_ZH_RULES,
}

TONE_RULE = ErrorClassification(
    category=ErrorCategory.TONE,
    severity=Severity.HIGH,
    pattern="Tone contour not distinguished",
    remediation_hint="Trace each tone contour with your hand while speaking",
    practice_example="Tones 1, 2, 3 and 4, five times each",
)

GENERIC_PHONEME_PATTERN = "Some phonemes below target accuracy"
GENERIC_PHONEME_HINT = "Repeat the problem phonemes slowly"

NO_ERROR = ErrorClassification(category=ErrorCategory.CONSONANT, severity=Severity.LOW)


def problem_phonemes(word: WordResult, threshold: float = PHONEME_THRESHOLD) -> list[str]:
    return [p.label for p in word.phonemes if p.accuracy_score < threshold]


def classify(
    word: WordResult,
    rules: Optional[Sequence[PhonemeRule]] = None,
) -> ErrorClassification:
    rules = KO_ZH_RULES if rules is None else rules
    weak = problem_phonemes(word)

    for rule in rules:
        if rule.phoneme in weak:
            return ErrorClassification(
                category=rule.category,
                severity=rule.severity,
                pattern=rule.pattern,
                remediation_hint=rule.remediation_hint,
                practice_example=rule.practice_example,
                phonemes=(rule.phoneme,),
            )

    if word.error_type == WordErrorType.MISPRONUNCIATION and word.accuracy_score < TONE_THRESHOLD:
        return TONE_RULE

    if weak:
        return ErrorClassification(
            category=ErrorCategory.CONSONANT,
            severity=Severity.MEDIUM,
            pattern=GENERIC_PHONEME_PATTERN,
            remediation_hint=GENERIC_PHONEME_HINT,
            practice_example=f"{', '.join(weak)}: repeat ten times",
            phonemes=tuple(weak),
        )

    return NO_ERROR


def rules_for(language_pair: str, table: Mapping[str, Sequence[PhonemeRule]] = KNOWN_PHONEME_RULES) -> Sequence[PhonemeRule]:
    return table.get(language_pair, ())
