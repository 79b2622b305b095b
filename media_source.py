"""QMediaPlayer-backed media source."""

from __future__ import annotations

from typing import Callable, Optional

from models import PlaybackSample

try:
    from PySide6.QtCore import QUrl
    from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer
except Exception:  # pragma: no cover
    QMediaPlayer = None  # type: ignore
    QAudioOutput = None  # type: ignore
    QUrl = None  # type: ignore


class QtMediaSource:
    """Seconds-based facade over a QMediaPlayer (which works in milliseconds).

    Position updates are forwarded as samples so the controller is driven by
    player events; ``get_current_time`` stays available for tick polling.
    """

    def __init__(self, media_path: str, player: Optional[object] = None) -> None:
        if player is None:
            if QMediaPlayer is None:
                raise RuntimeError("PySide6 multimedia is not installed")
            player = QMediaPlayer()
            self._audio_output = QAudioOutput()
            player.setAudioOutput(self._audio_output)
            player.setSource(QUrl.fromLocalFile(media_path))
        self._player = player

    @property
    def player(self) -> object:
        return self._player

    def get_current_time(self) -> float:
        return self._player.position() / 1000.0

    def seek_to(self, seconds: float) -> None:
        self._player.setPosition(int(round(seconds * 1000)))

    def play(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.pause()

    def is_playing(self) -> bool:
        return self._player.playbackState() == QMediaPlayer.PlaybackState.PlayingState

    def connect(
        self,
        on_play_state: Callable[[bool], None],
        on_sample: Optional[Callable[[PlaybackSample], None]] = None,
    ) -> None:
        self._player.playbackStateChanged.connect(
            lambda state: on_play_state(state == QMediaPlayer.PlaybackState.PlayingState)
        )
        if on_sample is not None:
            self._player.positionChanged.connect(
                lambda ms: on_sample(PlaybackSample(time=ms / 1000.0, is_playing=self.is_playing()))
            )
