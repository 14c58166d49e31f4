import logging
from pathlib import Path, PurePosixPath

from .errors import FetchError
from .s3 import ObjectStorage, StorageError
from .trigger import ProcessingJob

logger = logging.getLogger(__name__)


def fetch_original(storage: ObjectStorage, job: ProcessingJob, scratch: Path) -> Path:
    """Download the uploaded original into scratch space, keeping its extension."""
    try:
        data = storage.download(job.bucket, job.object_name)
    except StorageError as e:
        raise FetchError(str(e)) from e
    if not data:
        raise FetchError(f"download {job.bucket}/{job.object_name} failed: empty object")

    suffix = PurePosixPath(job.object_name).suffix.lower()
    dest = scratch / f"original{suffix}"
    dest.write_bytes(data)
    logger.info("fetched %s/%s (%d bytes)", job.bucket, job.object_name, len(data))
    return dest
