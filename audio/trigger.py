import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from django.conf import settings

from .errors import TriggerValidationError
from .quantize import QUANTIZED_PREFIX
from .serializers import StorageEventSerializer

logger = logging.getLogger(__name__)

MIN_SONG_ID_LENGTH = 10
_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass
class ProcessingJob:
    """One pipeline run for one uploaded original."""
    song_id: str
    bucket: str
    object_name: str
    size: int = 0
    metadata: dict = field(default_factory=dict)


def song_id_from_object_name(name: str) -> str:
    """
    Object names look like <songId>/<file>. Returns songId or raises
    TriggerValidationError.
    """
    if not name or name.startswith("/") or "\\" in name:
        raise TriggerValidationError(f"malformed object name: {name!r}")
    parts = name.split("/")
    if len(parts) < 2 or not parts[-1]:
        raise TriggerValidationError(f"object name has no file part: {name!r}")
    if any(p in ("", ".", "..") for p in parts):
        raise TriggerValidationError(f"malformed object name: {name!r}")
    song_id = parts[0]
    if len(song_id) < MIN_SONG_ID_LENGTH or not _SEGMENT_RE.match(song_id):
        raise TriggerValidationError(f"invalid song id segment: {song_id!r}")
    return song_id


def parse_storage_event(payload) -> ProcessingJob | None:
    """
    Validate a storage event. Returns None for events that start no job
    (acknowledged and ignored), a ProcessingJob otherwise.

    Ignored: other buckets, and 16-bit replacements written by a running
    job, which already owns the record. Re-emitted events (metadata
    "retrigger") for such objects are processed.
    """
    ser = StorageEventSerializer(data=payload)
    if not ser.is_valid():
        raise TriggerValidationError(f"invalid storage event: {ser.errors}")
    record = ser.validated_data["record"]

    bucket = record["bucket_id"]
    if bucket != settings.SOURCE_BUCKET:
        logger.debug("ignoring event for bucket %s", bucket)
        return None

    name = record["name"]
    metadata = record.get("metadata") or {}
    song_id = song_id_from_object_name(name)
    if is_quantized_replacement(name) and not metadata.get("retrigger"):
        logger.debug("ignoring 16-bit replacement %s", name)
        return None
    return ProcessingJob(
        song_id=song_id,
        bucket=bucket,
        object_name=name,
        size=record.get("size") or 0,
        metadata=metadata,
    )


def is_quantized_replacement(object_name: str) -> bool:
    return PurePosixPath(object_name).name.startswith(f"{QUANTIZED_PREFIX}-")


def storage_event_for(object_name: str, bucket: str | None = None, *, retrigger: bool = False) -> dict:
    """Payload equivalent to the one the storage trigger sends for object_name."""
    return {
        "type": "INSERT",
        "table": "storage.objects",
        "record": {
            "bucket_id": bucket or settings.SOURCE_BUCKET,
            "name": object_name,
            "size": 0,
            "metadata": {"retrigger": True} if retrigger else {},
        },
    }
