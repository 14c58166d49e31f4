import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from django.conf import settings

from .errors import EncodeError
from .s3 import ObjectStorage, StorageError
from .tools import ToolError, run_tool

logger = logging.getLogger(__name__)

MP3_CONTENT_TYPE = "audio/mpeg"
OFFSET_POLICIES = ("start", "middle")


@dataclass
class PreviewAsset:
    bucket: str
    key: str
    path: Path
    offset: float
    duration: float
    bitrate_kbps: int

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


def preview_window(duration: float | None, cap: float, policy: str = "start") -> tuple[float, float]:
    """
    Return (offset, length) of the clip to cut from a source of `duration`
    seconds. Unknown durations clip the first `cap` seconds.
    """
    if policy not in OFFSET_POLICIES:
        raise ValueError(f"unknown preview offset policy: {policy!r}")
    if not duration or duration <= 0:
        return 0.0, float(cap)

    length = min(float(cap), duration)
    if policy == "start":
        return 0.0, length

    offset = min(duration - cap, duration / 2 - cap / 2)
    offset = max(0.0, min(offset, duration))
    return offset, min(length, duration - offset)


def preview_object_name(song_id: str, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{song_id}/preview-{now_ms}-{secrets.token_hex(4)}.mp3"


def encode_command(src: Path, dest: Path, offset: float, length: float) -> list[str]:
    cmd = [settings.FFMPEG_BIN, "-y", "-nostats", "-hide_banner"]
    if offset > 0:
        cmd += ["-ss", f"{offset:.3f}"]
    cmd += [
        "-i", str(src),
        "-t", f"{length:.3f}",
        "-map", "0:a:0",
        "-vn",
        "-c:a", "libmp3lame",
        "-b:a", f"{settings.PREVIEW_BITRATE_KBPS}k",
        "-ar", str(settings.PREVIEW_SAMPLE_RATE),
        str(dest),
    ]
    return cmd


def encode_preview(
    storage: ObjectStorage,
    song_id: str,
    source: Path,
    source_duration: float | None,
    scratch: Path,
) -> PreviewAsset:
    """Cut, transcode and upload the streamable preview. Failures raise EncodeError."""
    offset, length = preview_window(
        source_duration, settings.PREVIEW_DURATION_SECONDS, settings.PREVIEW_OFFSET_POLICY
    )
    dest = scratch / "preview.mp3"
    try:
        run_tool(encode_command(source, dest, offset, length))
    except ToolError as e:
        raise EncodeError(f"preview encode failed: {e}") from e
    if not dest.exists() or dest.stat().st_size == 0:
        raise EncodeError("preview encode produced no output")

    key = preview_object_name(song_id)
    try:
        storage.upload(settings.PREVIEW_BUCKET, key, dest.read_bytes(), MP3_CONTENT_TYPE, upsert=True)
    except StorageError as e:
        raise EncodeError(f"preview upload failed: {e}") from e

    logger.info("preview %s: offset=%.1fs length=%.1fs", key, offset, length)
    return PreviewAsset(
        bucket=settings.PREVIEW_BUCKET,
        key=key,
        path=dest,
        offset=offset,
        duration=length,
        bitrate_kbps=settings.PREVIEW_BITRATE_KBPS,
    )
