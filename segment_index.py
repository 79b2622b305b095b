"""Time-ordered transcript segments and timestamp lookup."""

from __future__ import annotations

import bisect
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from errors import SegmentOrderError
from models import Segment

logger = logging.getLogger(__name__)

# Terminal punctuation of the source language (Chinese full-width marks).
SENTENCE_TERMINALS = ("。", "！", "？", "；")


def parse_timestamp(value: Any) -> float:
    """Convert ``HH:MM:SS,mmm`` (or a number) to seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    hours, minutes, rest = text.split(":")
    seconds, _, millis = rest.replace(".", ",").partition(",")
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds) + int(millis or 0) / 1000


def is_sentence_final(segment: Segment, terminals: Sequence[str] = SENTENCE_TERMINALS) -> bool:
    return segment.text.strip().endswith(tuple(terminals))


class SegmentIndex:
    """Immutable, sorted, non-overlapping segments with O(log n) lookup.

    Construction validates ordering and raises ``SegmentOrderError`` instead
    of producing undefined lookups later.
    """

    def __init__(self, segments: Iterable[Segment]) -> None:
        self._segments: tuple[Segment, ...] = tuple(segments)
        self._validate()
        self._starts = [seg.start_time for seg in self._segments]

    def _validate(self) -> None:
        for i, seg in enumerate(self._segments):
            if not seg.start_time < seg.end_time:
                raise SegmentOrderError(
                    f"segment {seg.id} has start {seg.start_time} >= end {seg.end_time}"
                )
            if i == 0:
                continue
            prev = self._segments[i - 1]
            if prev.end_time > seg.start_time:
                raise SegmentOrderError(
                    f"segment {seg.id} starts at {seg.start_time} before "
                    f"segment {prev.id} ends at {prev.end_time}"
                )

    def __len__(self) -> int:
        return len(self._segments)

    def __getitem__(self, index: int) -> Segment:
        return self._segments[index]

    def __iter__(self):
        return iter(self._segments)

    @property
    def segments(self) -> tuple[Segment, ...]:
        return self._segments

    @property
    def total_duration(self) -> float:
        return self._segments[-1].end_time if self._segments else 0.0

    def locate(self, time: float) -> Optional[int]:
        """Index of the segment with ``start <= time <= end``, else None.

        On a shared boundary the later segment wins.
        """
        i = bisect.bisect_right(self._starts, time) - 1
        if i < 0:
            return None
        if time <= self._segments[i].end_time:
            return i
        return None

    def index_of(self, segment_id: int) -> Optional[int]:
        for i, seg in enumerate(self._segments):
            if seg.id == segment_id:
                return i
        return None

    @classmethod
    def from_content(cls, data: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> "SegmentIndex":
        """Build an index from a content document.

        Accepts either a list of segment dicts, a document with a
        ``segments`` list, or a document with ``segment_001``-style keys.
        """
        if isinstance(data, Mapping):
            raw = data.get("segments")
            if not isinstance(raw, list):
                keys = sorted(k for k in data if str(k).startswith("segment_"))
                raw = [data[k] for k in keys]
        else:
            raw = list(data)
        segments = [_segment_from_dict(entry, order) for order, entry in enumerate(raw)]
        logger.info("Loaded %d segments", len(segments))
        return cls(segments)


def _segment_from_dict(entry: Mapping[str, Any], order: int) -> Segment:
    if "start_seconds" in entry and "end_seconds" in entry:
        start, end = float(entry["start_seconds"]), float(entry["end_seconds"])
    else:
        start, end = parse_timestamp(entry["start_time"]), parse_timestamp(entry["end_time"])
    text = entry.get("original_text", entry.get("text", ""))
    auxiliary = entry.get("translation_suggestion", entry.get("pinyin", ""))
    return Segment(
        id=int(entry.get("id", order)),
        order=order,
        start_time=start,
        end_time=end,
        text=str(text or ""),
        auxiliary_text=str(auxiliary or ""),
        keywords=tuple(str(k) for k in entry.get("keywords") or ()),
    )
