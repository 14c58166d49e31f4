import logging
import time
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from django.conf import settings

from .errors import QuantizeError
from .s3 import ObjectStorage, StorageError
from .tools import ToolError, run_tool

logger = logging.getLogger(__name__)

QUANTIZED_PREFIX = "orig-16bit"
WAV_CONTENT_TYPE = "audio/wav"


@dataclass
class CanonicalOriginal:
    """The authoritative stored source: where it lives and its local copy."""
    bucket: str
    key: str
    path: Path

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


def quantized_object_name(object_name: str, now_ms: int | None = None) -> str:
    """<dir>/orig-16bit-<epoch ms>-<stem>.wav next to the original object."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    p = PurePosixPath(object_name)
    return str(p.parent / f"{QUANTIZED_PREFIX}-{now_ms}-{p.stem}.wav")


def quantize_command(src: Path, dest: Path) -> list[str]:
    return [
        settings.FFMPEG_BIN,
        "-y",
        "-nostats",
        "-hide_banner",
        "-i", str(src),
        "-map", "0:a:0",
        "-vn",
        "-c:a", "pcm_s16le",
        "-af", "aresample=osf=s16:dither_method=triangular",
        str(dest),
    ]


def quantize_original(storage: ObjectStorage, original: CanonicalOriginal, scratch: Path) -> CanonicalOriginal:
    """
    Replace a high bit-depth original with dithered 16-bit PCM WAV.

    The new object is uploaded first; the old one is removed only after the
    upload is acknowledged. Any failure before that point leaves the stored
    original untouched.
    """
    dest = scratch / "original-16bit.wav"
    try:
        run_tool(quantize_command(original.path, dest))
    except ToolError as e:
        raise QuantizeError(f"re-encode to 16-bit failed: {e}") from e
    if not dest.exists() or dest.stat().st_size == 0:
        raise QuantizeError("re-encode to 16-bit produced no output")

    new_key = quantized_object_name(original.key)
    try:
        storage.upload(original.bucket, new_key, dest.read_bytes(), WAV_CONTENT_TYPE, upsert=True)
    except StorageError as e:
        raise QuantizeError(f"upload of 16-bit original failed: {e}") from e

    try:
        storage.remove(original.bucket, [original.key])
    except StorageError as e:
        # replacement is already uploaded and canonical
        logger.warning("could not remove superseded original %s: %s", original.key, e)
    else:
        logger.info("replaced original %s with 16-bit %s", original.key, new_key)

    return CanonicalOriginal(bucket=original.bucket, key=new_key, path=dest)
