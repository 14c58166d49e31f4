import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from django.conf import settings

logger = logging.getLogger(__name__)


@contextmanager
def scratch_space(song_id: str = "") -> Iterator[Path]:
    """
    Job-local temporary directory, removed recursively on every exit path.
    """
    prefix = f"song-{song_id[:12]}-" if song_id else "song-"
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=settings.SCRATCH_ROOT))
    logger.debug("scratch space %s created", path)
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("could not remove scratch space %s: %s", path, e)
        else:
            logger.debug("scratch space %s removed", path)
