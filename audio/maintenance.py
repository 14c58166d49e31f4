"""
Recovery for songs whose preview job never ran: re-emit the storage event
for every song that has an original but lacks a preview or waveform.
"""
import logging
import time
from dataclasses import asdict, dataclass
from itertools import islice

from celery.exceptions import TimeoutError as CeleryTimeoutError
from django.conf import settings
from django.db.models import Q
from kombu.exceptions import OperationalError

from .models import Song
from .tasks import handle_storage_event
from .trigger import storage_event_for

logger = logging.getLogger(__name__)


@dataclass
class RetriggerSummary:
    triggered: int = 0
    succeeded: int = 0
    failed: int = 0    # job finished but did not succeed
    errors: int = 0    # timed out or could not be dispatched

    def as_dict(self) -> dict:
        return asdict(self)


def songs_missing_media():
    return (
        Song.objects.filter(Q(preview_url__isnull=True) | Q(waveform_json__isnull=True))
        .filter(audio_url__isnull=False)
        .exclude(audio_url="")
        .order_by("created_at")
    )


def _batched(items, size):
    it = iter(items)
    while batch := list(islice(it, size)):
        yield batch


def retrigger_missing(batch_size: int | None = None, item_timeout: float | None = None) -> RetriggerSummary:
    """
    Dispatch batches of `batch_size` jobs and wait on each batch with a shared
    per-item deadline, so a stuck job costs at most `item_timeout` seconds.
    Timed-out jobs keep running in their workers; they are only counted.
    """
    batch_size = batch_size or settings.RETRIGGER_BATCH_SIZE
    item_timeout = item_timeout or settings.RETRIGGER_ITEM_TIMEOUT

    object_names = list(songs_missing_media().values_list("audio_url", flat=True))
    summary = RetriggerSummary(triggered=len(object_names))
    logger.info("re-triggering %d songs in batches of %d", summary.triggered, batch_size)

    for batch in _batched(object_names, batch_size):
        deadline = time.monotonic() + item_timeout
        pending = []
        for name in batch:
            try:
                payload = storage_event_for(name, retrigger=True)
                pending.append((name, handle_storage_event.apply_async(args=[payload])))
            except OperationalError as e:
                logger.error("could not dispatch %s: %s", name, e)
                summary.errors += 1

        for name, result in pending:
            remaining = max(deadline - time.monotonic(), 0.001)
            try:
                value = result.get(timeout=remaining)
            except CeleryTimeoutError:
                logger.warning("job for %s did not finish within %ss", name, item_timeout)
                summary.errors += 1
                continue
            except Exception as e:
                logger.warning("job for %s raised: %s", name, e)
                summary.failed += 1
                continue
            if (value or {}).get("status") == Song.ProcessingStatus.SUCCEEDED:
                summary.succeeded += 1
            else:
                summary.failed += 1

    logger.info("re-trigger done: %s", summary.as_dict())
    return summary
