"""Five-axis score profile and tiered feedback."""

from __future__ import annotations

from typing import Optional, Sequence

from error_classifier import PhonemeRule, classify
from models import AssessmentResult, RadarFeedback, RadarProfile, Severity

HESITATION_PENALTY = 10
STRENGTH_THRESHOLD = 80
IMPROVEMENT_THRESHOLD = 60
PROBLEM_WORD_THRESHOLD = 70

# (minimum average, advice), checked top-down.
FEEDBACK_BANDS: tuple[tuple[float, str], ...] = (
    (90, "Close to native level. Broaden your practice to new topics."),
    (80, "Very good pronunciation. Polish tones and intonation a little more."),
    (70, "Good pronunciation with a few gaps. Practice tones and phoneme contrasts."),
    (60, "The basics are in place but need more practice. Drill tones and core phonemes."),
    (40, "Pronunciation needs significant work. Build up tones and core phonemes step by step."),
    (float("-inf"), "Start again from the fundamentals of tones and phonemes."),
)

AXIS_LABELS = {
    "accuracy": ("Accurate pronunciation", "Basic pronunciation accuracy"),
    "fluency": ("Good fluency", "Speaking pace and rhythm"),
    "completeness": ("Complete sentences", "Sentence completeness"),
    "prosody": ("Natural intonation", "Tones and intonation"),
}


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def hesitation_count(final_utterances: int) -> int:
    """Every finalized utterance after the first counts as one restart."""
    return max(0, final_utterances - 1)


def build_profile(result: AssessmentResult, hesitations: int) -> RadarProfile:
    return RadarProfile(
        accuracy=clamp(result.accuracy),
        fluency=clamp(result.fluency),
        completeness=clamp(result.completeness),
        prosody=clamp(result.prosody),
        confidence=clamp(100 - HESITATION_PENALTY * hesitations),
    )


def build_feedback(
    profile: RadarProfile,
    result: Optional[AssessmentResult] = None,
    rules: Optional[Sequence[PhonemeRule]] = None,
) -> RadarFeedback:
    axes = {
        "accuracy": profile.accuracy,
        "fluency": profile.fluency,
        "completeness": profile.completeness,
        "prosody": profile.prosody,
    }
    average = sum(axes.values()) / len(axes)
    band = next(i for i, (floor, _) in enumerate(FEEDBACK_BANDS) if average >= floor)

    feedback = RadarFeedback(band=band, advice=FEEDBACK_BANDS[band][1])
    for axis, score in axes.items():
        strength, improvement = AXIS_LABELS[axis]
        if score >= STRENGTH_THRESHOLD:
            feedback.strengths.append(strength)
        elif score < IMPROVEMENT_THRESHOLD:
            feedback.improvements.append(improvement)
    if result is not None:
        feedback.problem_words = [
            w.text for w in result.words if w.accuracy_score < PROBLEM_WORD_THRESHOLD
        ]
        for word in result.words:
            hint = classify(word, rules)
            if hint.severity != Severity.LOW:
                feedback.word_errors.append((word.text, hint))
    return feedback
