"""Tests for SoundDeviceRecorder."""

from __future__ import annotations

from queue import Queue
from unittest.mock import MagicMock, patch

import pytest

from errors import DEVICE_NOT_FOUND, PERMISSION_DENIED, DeviceError
from models import AudioFrame
from recorder import SoundDeviceRecorder


class _FakeNp:
    """numpy stand-in: ``asarray`` hands the block back untouched."""

    int16 = "int16"

    @staticmethod
    def asarray(data, dtype=None):  # noqa: ANN001, ANN205
        return data


class _Block:
    """What sounddevice passes to the callback, reduced to ``tobytes``."""

    def __init__(self, n_samples: int = 1600, value: bytes = b"\x10\x00") -> None:
        self._data = value * n_samples

    def tobytes(self) -> bytes:
        return self._data


def _started(mock_sd: MagicMock, maxsize: int = 0) -> tuple[SoundDeviceRecorder, Queue]:
    mock_sd.InputStream.return_value = MagicMock()
    recorder = SoundDeviceRecorder()
    q: Queue[AudioFrame | None] = Queue(maxsize=maxsize)
    recorder.start(q)
    return recorder, q


# ---------------------------------------------------------------
# Start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_opens_int16_stream(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder(sample_rate=16000, chunk_ms=100)
    q: Queue[AudioFrame | None] = Queue()
    recorder.start(q)

    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["dtype"] == "int16"
    assert kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert q.get_nowait() is None


@patch("recorder.sd")
def test_start_twice_opens_one_stream(mock_sd: MagicMock) -> None:
    recorder, q = _started(mock_sd)
    recorder.start(q)

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_second_stop_does_not_touch_stream(mock_sd: MagicMock) -> None:
    recorder, q = _started(mock_sd)
    stream = mock_sd.InputStream.return_value

    recorder.stop()
    recorder.stop()

    assert stream.close.call_count == 1
    assert q.get_nowait() is None


def test_start_raises_without_sounddevice(monkeypatch: pytest.MonkeyPatch) -> None:
    import recorder as rec_mod

    monkeypatch.setattr(rec_mod, "sd", None)
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        SoundDeviceRecorder().start(Queue())


# ---------------------------------------------------------------
# Device errors
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "message, code",
    [
        ("Error opening InputStream: Permission denied", PERMISSION_DENIED),
        ("Microphone access not allowed", PERMISSION_DENIED),
        ("Error querying device -1", DEVICE_NOT_FOUND),
    ],
)
@patch("recorder.sd")
def test_open_failure_maps_to_device_error(mock_sd: MagicMock, message: str, code: str) -> None:
    mock_sd.InputStream.side_effect = Exception(message)

    recorder = SoundDeviceRecorder()
    with pytest.raises(DeviceError) as info:
        recorder.start(Queue())

    assert info.value.code == code
    # A failed open leaves the recorder startable again.
    mock_sd.InputStream.side_effect = None
    mock_sd.InputStream.return_value = MagicMock()
    recorder.start(Queue())
    recorder.stop()


# ---------------------------------------------------------------
# Audio callback
# ---------------------------------------------------------------

@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_pushes_frames_and_keeps_take(mock_sd: MagicMock) -> None:
    recorder, q = _started(mock_sd)

    recorder._on_audio(_Block(1600), frames=1600, time_info=None, status=None)
    recorder._on_audio(_Block(800), frames=800, time_info=None, status=None)

    frame = q.get_nowait()
    assert isinstance(frame, AudioFrame)
    assert frame.sample_rate == 16000
    assert len(frame.pcm16_bytes) == 3200
    assert len(recorder.recorded_pcm()) == (1600 + 800) * 2
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_full_queue_drops_frame_but_keeps_pcm(mock_sd: MagicMock) -> None:
    recorder, q = _started(mock_sd, maxsize=1)

    recorder._on_audio(_Block(), frames=1600, time_info=None, status=None)
    recorder._on_audio(_Block(), frames=1600, time_info=None, status=None)

    assert recorder.dropped_chunks == 1
    assert len(recorder.recorded_pcm()) == 2 * 3200
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_new_take_clears_previous_pcm(mock_sd: MagicMock) -> None:
    recorder, q = _started(mock_sd)
    recorder._on_audio(_Block(), frames=1600, time_info=None, status=None)
    recorder.stop()

    recorder.start(Queue())

    assert recorder.recorded_pcm() == b""
    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    recorder, q = _started(mock_sd)
    recorder.stop()
    q.get_nowait()

    recorder._on_audio(_Block(), frames=1600, time_info=None, status=None)

    assert q.empty()
    assert recorder.recorded_pcm() == b""
