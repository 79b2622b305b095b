"""Simple JSON-based config store and session summary log."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from models import PauseMode, SessionSummary

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "interp_trainer"

DEFAULTS: dict[str, Any] = {
    "dashscope_api_key": "",
    "speech_key": "",
    "speech_region": "",
    "recognition_language": "ko-KR",
    "assessment_language": "zh-CN",
    "native_language": "ko",
    "pause_mode": PauseMode.PER_SENTENCE.value,
    "auto_mode": True,
    "guard_window_s": 1.0,
    "tick_ms": 100,
    "hotkey_record": "Key.space",
    "hotkey_next": "Key.right",
    "hotkey_replay": "Key.left",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get_api_key(self) -> str:
        return str(self._get("dashscope_api_key"))

    def set_api_key(self, key: str) -> None:
        self._set("dashscope_api_key", key)

    def get_speech_credentials(self) -> tuple[str, str]:
        return str(self._get("speech_key")), str(self._get("speech_region"))

    def set_speech_credentials(self, key: str, region: str) -> None:
        data = self._read_all()
        data["speech_key"] = key
        data["speech_region"] = region
        self._write_all(data)

    def get_recognition_language(self) -> str:
        return str(self._get("recognition_language"))

    def get_assessment_language(self) -> str:
        return str(self._get("assessment_language"))

    def get_language_pair(self) -> str:
        """Learner-to-target pair keying the phoneme rule table, e.g. ``ko-zh``."""
        target = self.get_assessment_language().split("-")[0].lower()
        native = str(self._get("native_language")).lower()
        return f"{native}-{target}"

    def get_pause_mode(self) -> PauseMode:
        value = self._get("pause_mode")
        try:
            return PauseMode(value)
        except ValueError:
            logger.warning("Unknown pause_mode %r in %s, using default", value, self._path)
            return PauseMode(DEFAULTS["pause_mode"])

    def set_pause_mode(self, mode: PauseMode) -> None:
        self._set("pause_mode", mode.value)

    def get_auto_mode(self) -> bool:
        return bool(self._get("auto_mode"))

    def set_auto_mode(self, enabled: bool) -> None:
        self._set("auto_mode", bool(enabled))

    def get_guard_window_s(self) -> float:
        return self._get_number("guard_window_s")

    def get_tick_ms(self) -> int:
        return int(self._get_number("tick_ms"))

    def get_hotkeys(self) -> dict[str, str]:
        return {
            "record": str(self._get("hotkey_record")),
            "next": str(self._get("hotkey_next")),
            "replay": str(self._get("hotkey_replay")),
        }

    def _get(self, key: str) -> Any:
        return self._read_all().get(key, DEFAULTS[key])

    def _get_number(self, key: str) -> float:
        value = self._get(key)
        try:
            number = float(value)
        except (TypeError, ValueError):
            return float(DEFAULTS[key])
        return number if number > 0 else float(DEFAULTS[key])

    def _set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


class JsonSummaryLog:
    """Append-only JSON-lines log of completed practice sessions."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "sessions.jsonl"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, summary: SessionSummary, **metadata: Any) -> None:
        record = asdict(summary)
        record.update(metadata)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=False) + "\n")

    def read_all(self) -> list[dict]:
        if not self._path.exists():
            return []
        records = []
        for line in self._path.read_text(encoding="utf-8").splitlines():
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning("Skipping corrupt summary line in %s", self._path)
        return records
