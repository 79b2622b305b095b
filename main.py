"""Application entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path

from assessor import AzurePronunciationAssessor
from config import JsonConfigStore, JsonSummaryLog
from error_classifier import rules_for
from hotkey import PracticeHotkeyAdapter
from media_source import QtMediaSource
from models import AssessmentResult, PauseMode, PracticeMode, RadarFeedback, RadarProfile, SessionSummary
from recorder import SoundDeviceRecorder
from recognizer import DashscopeRecognizerAdapter
from scoring import RadarCompositeScoring
from segment_index import SegmentIndex
from session_controller import PracticeController

try:
    from PySide6.QtCore import QObject, QSize, QTimer, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_COLORS = {
    PracticeMode.LISTENING.value: "#4488FF",     # blue
    PracticeMode.INTERPRETING.value: "#FF4444",  # red
    PracticeMode.REVIEWING.value: "#44AA44",     # green
}

PAUSE_MODE_LABELS = {
    PauseMode.PER_SEGMENT: "Pause after every segment",
    PauseMode.PER_SENTENCE: "Pause at sentence ends",
    PauseMode.MANUAL: "Never pause automatically",
}


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_state, to_state
    error_signal = Signal(str)
    action_signal = Signal(str)
    complete_signal = Signal(object)
    feedback_signal = Signal(object, object)  # profile, feedback


class App:
    def __init__(self, content_path: Path, media_path: Path, shadowing: bool = False, poll: bool = False) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.summary_log = JsonSummaryLog()
        self.content_path = content_path
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.action_signal.connect(self._run_action)
        self.ui.complete_signal.connect(self._on_complete_ui)
        self.ui.feedback_signal.connect(self._on_feedback_ui)

        segments = SegmentIndex.from_content(json.loads(content_path.read_text(encoding="utf-8")))
        self.media = QtMediaSource(str(media_path))

        speech_key, region = self.config_store.get_speech_credentials()
        assessor = AzurePronunciationAssessor(speech_key, region) if speech_key and region else None
        assessment_language = self.config_store.get_assessment_language()
        recognition_language = (
            assessment_language if shadowing else self.config_store.get_recognition_language()
        )

        self.controller = PracticeController(
            segments=segments,
            media=self.media,
            recorder=SoundDeviceRecorder(),
            recognizer=DashscopeRecognizerAdapter(api_key=self.config_store.get_api_key()),
            assessor=assessor,
            scoring=RadarCompositeScoring(),
            pause_mode=self.config_store.get_pause_mode(),
            auto_mode=self.config_store.get_auto_mode(),
            recognition_language=recognition_language,
            assessment_language=assessment_language,
            assess_against_source=shadowing,
            phoneme_rules=rules_for(self.config_store.get_language_pair()),
            guard_window_s=self.config_store.get_guard_window_s(),
            on_state_change=self._on_state_change,
            on_error=self._on_error,
            on_assessment=self._on_assessment,
            on_complete=self._on_complete,
        )

        self.poll = poll
        self.poll_timer = QTimer()
        self.poll_timer.setInterval(self.config_store.get_tick_ms())
        if poll:
            self.media.connect(self.controller.notify_play_state)
            self.poll_timer.timeout.connect(self.controller.tick)
        else:
            self.media.connect(self.controller.notify_play_state, self.controller.observe)

        self.hotkey = PracticeHotkeyAdapter(self.config_store.get_hotkeys())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_COLORS[PracticeMode.LISTENING.value]))
        self.tray.setToolTip("Interpretation Trainer — Listening")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        play_action = QAction("Play", menu)
        play_action.triggered.connect(self.media.play)
        menu.addAction(play_action)

        pause_menu = menu.addMenu("Pause mode")
        group = QActionGroup(pause_menu)
        for mode, label in PAUSE_MODE_LABELS.items():
            action = QAction(label, pause_menu, checkable=True)
            action.setChecked(mode == self.controller.pause_mode)
            action.triggered.connect(lambda _checked=False, m=mode: self._set_pause_mode(m))
            group.addAction(action)
            pause_menu.addAction(action)

        auto_action = QAction("Auto interpret mode", menu, checkable=True)
        auto_action.setChecked(self.controller.auto_mode)
        auto_action.toggled.connect(self._set_auto_mode)
        menu.addAction(auto_action)

        menu.addSeparator()
        restart_action = QAction("Restart from the beginning", menu)
        restart_action.triggered.connect(self.controller.restart)
        menu.addAction(restart_action)

        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_pause_mode(self, mode: PauseMode) -> None:
        self.controller.set_pause_mode(mode)
        self.config_store.set_pause_mode(mode)

    def _set_auto_mode(self, enabled: bool) -> None:
        self.controller.set_auto_mode(enabled)
        self.config_store.set_auto_mode(enabled)

    # ------------------------------------------------------------------
    # Callbacks (may run on worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: PracticeMode, to_state: PracticeMode) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{code}: {message}")

    def _on_complete(self, summary: SessionSummary) -> None:
        self.ui.complete_signal.emit(summary)

    def _on_assessment(self, result: AssessmentResult, profile: RadarProfile, feedback: RadarFeedback) -> None:
        self.ui.feedback_signal.emit(profile, feedback)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.tray.setIcon(_create_icon(ICON_COLORS[to_state]))
        self.tray.setToolTip(f"Interpretation Trainer — {to_state.title()}")

    def _on_error_ui(self, msg: str) -> None:
        self.tray.showMessage("Interpretation Trainer", msg, QSystemTrayIcon.Warning)

    def _on_feedback_ui(self, profile: RadarProfile, feedback: RadarFeedback) -> None:
        lines = [f"Score {profile.composite:.0f}. {feedback.advice}"]
        if feedback.word_errors:
            word, hint = feedback.word_errors[0]
            lines.append(f"{word}: {hint.remediation_hint}")
        self.tray.showMessage("Pronunciation feedback", "\n".join(lines))

    def _on_complete_ui(self, summary: SessionSummary) -> None:
        self.summary_log.append(summary, content=self.content_path.name)
        self.tray.showMessage(
            "Session complete",
            f"{summary.completed_segment_count} segments, average {summary.average_score:.1f}",
        )

    # ------------------------------------------------------------------
    # Hotkey handlers (pynput thread → UI thread)
    # ------------------------------------------------------------------

    def _run_action(self, name: str) -> None:
        if name == "record":
            if self.controller.is_recording:
                # Stop drains the recognizer and runs the assessment; keep it off the UI thread.
                threading.Thread(target=self.controller.stop_recording, daemon=True).start()
            else:
                self.controller.start_recording()
        elif name == "next":
            self.controller.next_segment()
        elif name == "replay":
            self.controller.practice_again()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        try:
            self.hotkey.start(
                {
                    name: (lambda n=name: self.ui.action_signal.emit(n))
                    for name in ("record", "next", "replay")
                }
            )
        except Exception as exc:
            self.tray.showMessage("Interpretation Trainer", f"Hotkeys disabled: {exc}")
        if self.poll:
            self.poll_timer.start()
        return self.app.exec()

    def quit(self) -> None:
        self.poll_timer.stop()
        self.hotkey.stop()
        self.controller.shutdown()
        self.app.quit()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Segment-synchronised interpretation practice")
    parser.add_argument("content", type=Path, help="JSON document with timed segments")
    parser.add_argument("media", type=Path, help="Audio or video file to practise with")
    parser.add_argument("--shadowing", action="store_true", help="Repeat the source instead of interpreting it")
    parser.add_argument("--poll", action="store_true", help="Sample the playback clock on a timer")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        app = App(args.content, args.media, shadowing=args.shadowing, poll=args.poll)
    except (OSError, KeyError, ValueError) as exc:
        logger.error("Cannot load practice content: %s", exc)
        return 2
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
