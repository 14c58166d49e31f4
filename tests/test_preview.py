import pytest

from audio.errors import EncodeError
from audio.preview import encode_preview, preview_object_name, preview_window

SONG_ID = "8c0f4a52-54a8-4a8e-9d1e-3f3c2b7d1a10"


def test_start_policy_caps_at_thirty_seconds():
    assert preview_window(45.0, 30) == (0.0, 30.0)
    assert preview_window(30.0, 30) == (0.0, 30.0)
    assert preview_window(12.0, 30) == (0.0, 12.0)


def test_unknown_duration_clips_first_window():
    assert preview_window(None, 30) == (0.0, 30.0)
    assert preview_window(0.0, 30, "middle") == (0.0, 30.0)


def test_middle_policy_biases_toward_mid_section():
    # min(d - 30, d/2 - 15) for a 3 minute song
    assert preview_window(180.0, 30, "middle") == (75.0, 30.0)
    assert preview_window(40.0, 30, "middle") == (5.0, 30.0)
    assert preview_window(12.0, 30, "middle") == (0.0, 12.0)


@pytest.mark.parametrize("duration", [1.0, 29.9, 30.0, 31.0, 95.5, 600.0])
def test_window_never_exceeds_cap_or_source(duration):
    for policy in ("start", "middle"):
        offset, length = preview_window(duration, 30, policy)
        assert 0.0 <= offset <= duration
        assert length <= min(30.0, duration)
        assert offset + length <= duration + 1e-9


def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError):
        preview_window(60.0, 30, "loudest")


def test_object_names_are_unique_per_run():
    a = preview_object_name(SONG_ID, now_ms=1700000000000)
    b = preview_object_name(SONG_ID, now_ms=1700000000000)
    assert a != b
    assert a.startswith(f"{SONG_ID}/preview-1700000000000-")
    assert a.endswith(".mp3")


def test_encode_uses_fixed_bitrate_rate_and_first_stream(storage, install_ffmpeg, tmp_path, settings):
    ff = install_ffmpeg(duration=45.0)
    src = tmp_path / "original.wav"
    src.write_bytes(b"wav")
    asset = encode_preview(storage, SONG_ID, src, 45.0, tmp_path)

    (cmd,) = ff.commands_of("encode")
    assert cmd[cmd.index("-b:a") + 1] == "128k"
    assert cmd[cmd.index("-ar") + 1] == "44100"
    assert cmd[cmd.index("-map") + 1] == "0:a:0"
    assert cmd[cmd.index("-t") + 1] == "30.000"
    assert "-ss" not in cmd
    assert asset.duration == 30.0
    assert asset.bitrate_kbps == 128
    assert storage.keys(settings.PREVIEW_BUCKET) == [asset.key]
    assert storage.objects[(settings.PREVIEW_BUCKET, asset.key)][1] == "audio/mpeg"


def test_middle_policy_seeks_before_input(storage, install_ffmpeg, tmp_path, settings):
    settings.PREVIEW_OFFSET_POLICY = "middle"
    ff = install_ffmpeg(duration=180.0)
    src = tmp_path / "original.wav"
    src.write_bytes(b"wav")
    asset = encode_preview(storage, SONG_ID, src, 180.0, tmp_path)

    (cmd,) = ff.commands_of("encode")
    assert cmd.index("-ss") < cmd.index("-i")
    assert cmd[cmd.index("-ss") + 1] == "75.000"
    assert asset.offset == 75.0


def test_encode_failure_raises_encode_error(storage, install_ffmpeg, tmp_path, settings):
    ff = install_ffmpeg()
    ff.fail.add("encode")
    with pytest.raises(EncodeError, match="Invalid data"):
        encode_preview(storage, SONG_ID, tmp_path / "original.wav", 45.0, tmp_path)
    assert storage.keys(settings.PREVIEW_BUCKET) == []


def test_encode_timeout_raises_encode_error(storage, install_ffmpeg, tmp_path):
    ff = install_ffmpeg()
    ff.timeout.add("encode")
    with pytest.raises(EncodeError, match="timed out"):
        encode_preview(storage, SONG_ID, tmp_path / "original.wav", 45.0, tmp_path)


def test_upload_failure_raises_encode_error(storage, install_ffmpeg, tmp_path, settings):
    install_ffmpeg()
    storage.fail_upload_to.add(settings.PREVIEW_BUCKET)
    with pytest.raises(EncodeError, match="preview upload failed"):
        encode_preview(storage, SONG_ID, tmp_path / "original.wav", 45.0, tmp_path)
