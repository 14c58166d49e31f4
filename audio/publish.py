import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.utils import timezone

from .errors import PublishError
from .models import Song
from .preview import PreviewAsset
from .probe import ProbeResult
from .quantize import CanonicalOriginal
from .s3 import ObjectStorage, StorageError
from .waveform import Waveform

logger = logging.getLogger(__name__)

MAX_ERROR_CHARS = 4000


def preview_url(storage: ObjectStorage, preview: PreviewAsset) -> str:
    if settings.PREVIEW_URL_MODE == "signed":
        return storage.signed_url(preview.bucket, preview.key)
    return storage.public_url(preview.bucket, preview.key)


def _update_song(song_id: str, **fields) -> int:
    fields["updated_at"] = timezone.now()
    return Song.objects.filter(pk=song_id).update(**fields)


def publish_success(
    storage: ObjectStorage,
    song_id: str,
    original: CanonicalOriginal,
    preview: PreviewAsset,
    waveform: Waveform,
    probe: ProbeResult,
) -> str:
    """Write the full success payload in one keyed update. Returns the preview URL."""
    try:
        url = preview_url(storage, preview)
    except StorageError as e:
        raise PublishError(f"could not derive preview URL: {e}") from e

    try:
        updated = _update_song(
            song_id,
            audio_url=original.key,
            preview_url=url,
            waveform_json=waveform.as_json(),
            original_size_bytes=original.size_bytes,
            playback_size_bytes=preview.size_bytes,
            playback_bitrate_kbps=preview.bitrate_kbps,
            original_bit_depth=probe.bit_depth,
            original_sample_rate=probe.sample_rate,
            processing_status=Song.ProcessingStatus.SUCCEEDED,
            last_processing_error="",
        )
    except (DatabaseError, DjangoValidationError) as e:
        raise PublishError(f"record update failed: {e}") from e
    if not updated:
        raise PublishError(f"record update failed: song {song_id} not found")
    logger.info("song %s published: %s", song_id, url)
    return url


def publish_failure(song_id: str, message: str, audio_url: str | None = None) -> bool:
    """
    Best-effort failure write. Never raises; returns whether a row was updated.

    audio_url is the 16-bit replacement when the job already swapped the
    original before failing; the old key no longer exists in storage.
    """
    fields = {"audio_url": audio_url} if audio_url else {}
    try:
        updated = _update_song(
            song_id,
            preview_url=None,
            **fields,
            processing_status=Song.ProcessingStatus.FAILED,
            last_processing_error=message[:MAX_ERROR_CHARS],
        )
    except Exception:
        logger.exception("could not record failure for song %s", song_id)
        return False
    if not updated:
        logger.error("could not record failure for song %s: song not found", song_id)
        return False
    logger.info("song %s marked failed: %s", song_id, message)
    return True
