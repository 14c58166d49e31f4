import json
import uuid
from pathlib import Path

import numpy as np
import pytest

from audio import preview as preview_mod
from audio import probe as probe_mod
from audio import quantize as quantize_mod
from audio import waveform as waveform_mod
from audio.models import Song
from audio.s3 import StorageError
from audio.tools import ToolError, ToolResult, ToolTimeout


class FakeStorage:
    """In-memory object store with the same surface as ObjectStorage."""

    def __init__(self):
        self.objects = {}   # (bucket, key) -> (bytes, content_type)
        self.calls = []     # ("upload"|"remove"|..., bucket, key(s))
        self.fail_upload_to = set()
        self.fail_download = False
        self.fail_remove = False

    def put(self, bucket, key, data, content_type=None):
        self.objects[(bucket, key)] = (data, content_type)

    def download(self, bucket, key):
        self.calls.append(("download", bucket, key))
        if self.fail_download:
            raise StorageError(f"download {bucket}/{key} failed: connection reset")
        try:
            return self.objects[(bucket, key)][0]
        except KeyError:
            raise StorageError(f"download {bucket}/{key} failed: NoSuchKey")

    def upload(self, bucket, key, data, content_type=None, *, upsert=False):
        self.calls.append(("upload", bucket, key))
        if bucket in self.fail_upload_to:
            raise StorageError(f"upload {bucket}/{key} failed: 503 Slow Down")
        if not upsert and (bucket, key) in self.objects:
            raise StorageError(f"upload {bucket}/{key} failed: object already exists")
        self.objects[(bucket, key)] = (data, content_type)

    def remove(self, bucket, keys):
        self.calls.append(("remove", bucket, list(keys)))
        if self.fail_remove:
            raise StorageError(f"remove from {bucket} failed: AccessDenied")
        for k in keys:
            self.objects.pop((bucket, k), None)

    def public_url(self, bucket, key):
        return f"http://storage.test/{bucket}/{key}"

    def signed_url(self, bucket, key, expires=None):
        return f"http://storage.test/{bucket}/{key}?X-Amz-Signature=abc"

    def keys(self, bucket):
        return sorted(k for b, k in self.objects if b == bucket)


def _arg_after(cmd, flag):
    i = cmd.index(flag)
    return cmd[i + 1]


class FakeFFmpeg:
    """
    Stands in for ffprobe/ffmpeg. Describes the "source" with the probe
    fields and synthesizes outputs for the quantize/encode/decode commands.
    """

    def __init__(self, *, sample_fmt="s16", bit_depth=16, sample_rate=44100, channels=2,
                 duration=45.0, codec="pcm_s16le"):
        self.stream = {
            "codec_name": codec,
            "sample_rate": str(sample_rate),
            "channels": channels,
            "sample_fmt": sample_fmt,
            "bits_per_sample": bit_depth or 0,
            "bits_per_raw_sample": str(bit_depth) if bit_depth else None,
        }
        self.duration = duration
        self.fail = set()        # subset of {"probe", "quantize", "encode", "decode"}
        self.timeout = set()
        self.commands = []
        self.pcm = None          # bytes returned by the waveform decode

    def kind(self, cmd):
        if "-show_entries" in cmd:
            return "probe"
        if "libmp3lame" in cmd:
            return "encode"
        if "pipe:1" in cmd:
            return "decode"
        return "quantize"

    def __call__(self, cmd, *, timeout=None, binary=False):
        kind = self.kind(cmd)
        self.commands.append((kind, list(cmd)))
        if kind in self.timeout:
            raise ToolTimeout(cmd[0], timeout or 120)
        if kind in self.fail:
            raise ToolError(cmd[0], 1, f"{kind}: Invalid data found when processing input")

        if kind == "probe":
            out = {"streams": [self.stream], "format": {"duration": str(self.duration)}}
            return ToolResult(stdout=json.dumps(out), stderr="")
        if kind == "quantize":
            Path(cmd[-1]).write_bytes(b"RIFF-16bit-wav")
            return ToolResult(stdout="", stderr="")
        if kind == "encode":
            Path(cmd[-1]).write_bytes(b"ID3-mp3-preview")
            return ToolResult(stdout="", stderr="")

        if self.pcm is not None:
            return ToolResult(stdout=self.pcm, stderr="")
        seconds = min(float(_arg_after(cmd, "-t")), self.preview_length())
        rate = int(_arg_after(cmd, "-ar"))
        t = np.arange(int(seconds * rate)) / rate
        wave = (0.5 * np.sin(2 * np.pi * 220 * t) * 32767).astype("<i2")
        return ToolResult(stdout=wave.tobytes(), stderr="")

    def preview_length(self):
        for kind, cmd in self.commands:
            if kind == "encode":
                return float(_arg_after(cmd, "-t"))
        return self.duration

    def commands_of(self, kind):
        return [c for k, c in self.commands if k == kind]


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def install_ffmpeg(monkeypatch):
    def install(**kwargs):
        fake = FakeFFmpeg(**kwargs)
        for mod in (probe_mod, quantize_mod, preview_mod, waveform_mod):
            monkeypatch.setattr(mod, "run_tool", fake)
        return fake
    return install


@pytest.fixture(autouse=True)
def _scratch_root(tmp_path, settings):
    root = tmp_path / "scratch"
    root.mkdir()
    settings.SCRATCH_ROOT = str(root)
    return root


@pytest.fixture
def scratch_root(_scratch_root):
    return _scratch_root


@pytest.fixture
def song(db):
    return Song.objects.create(id=uuid.uuid4())


@pytest.fixture
def uploaded(song, storage, settings):
    """A song whose original was just uploaded to the source bucket."""
    key = f"{song.id}/mix-v3.wav"
    storage.put(settings.SOURCE_BUCKET, key, b"RIFF....WAVEfmt original-bytes", "audio/wav")
    Song.objects.filter(pk=song.id).update(audio_url=key)
    song.refresh_from_db()
    return song, key
