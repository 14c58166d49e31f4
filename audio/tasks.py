import logging

from celery import shared_task

from .errors import TriggerValidationError
from .pipeline import run_job
from .trigger import ProcessingJob, parse_storage_event

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def process_song_media(self, song_id: str, bucket: str, object_name: str, size: int = 0):
    """Run the preview pipeline for one uploaded original."""
    job = ProcessingJob(song_id=song_id, bucket=bucket, object_name=object_name, size=size)
    return run_job(job).as_dict()


@shared_task(bind=True)
def handle_storage_event(self, payload: dict):
    """
    Trigger-receiver entry point for re-emitted storage events: validate the
    payload, then run the job in this worker.
    """
    try:
        job = parse_storage_event(payload)
    except TriggerValidationError as e:
        logger.warning("rejected storage event: %s", e)
        return {"status": "rejected", "error": str(e)}
    if job is None:
        return {"status": "ignored"}
    return run_job(job).as_dict()
