"""
One preview job, start to finish.

    Created -> Fetched -> Probed -> [Quantized] -> Previewed -> Analyzed -> Published(succeeded)

A fatal error at any step goes straight to Published(failed) with the error
message kept verbatim. The scratch directory is removed after the terminal
state is written, whatever the outcome.
"""
import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import PipelineError, PublishError
from .fetch import fetch_original
from .models import Song
from .preview import encode_preview
from .probe import QuantizeDecision, decide_quantization, probe_source
from .publish import publish_failure, publish_success
from .quantize import CanonicalOriginal, quantize_original
from .s3 import ObjectStorage
from .scratch import scratch_space
from .trigger import ProcessingJob
from .waveform import analyze_waveform

logger = logging.getLogger(__name__)


class JobState(str, enum.Enum):
    CREATED = "created"
    FETCHED = "fetched"
    PROBED = "probed"
    QUANTIZED = "quantized"
    PREVIEWED = "previewed"
    ANALYZED = "analyzed"
    PUBLISHED = "published"


@dataclass
class JobOutcome:
    song_id: str
    status: str                      # Song.ProcessingStatus value
    state: JobState                  # last state reached
    preview_url: str | None = None
    audio_url: str | None = None
    error: str = ""
    quantized: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == Song.ProcessingStatus.SUCCEEDED

    def as_dict(self) -> dict:
        return {
            "song_id": self.song_id,
            "status": str(self.status),
            "state": self.state.value,
            "preview_url": self.preview_url,
            "audio_url": self.audio_url,
            "error": self.error,
            "quantized": self.quantized,
        }


class _Run:
    def __init__(self, job: ProcessingJob):
        self.job = job
        self.state = JobState.CREATED
        self.quantized = False
        self.audio_url: str | None = None   # canonical key once the original was replaced

    def advance(self, state: JobState):
        self.state = state
        logger.debug("song %s: %s", self.job.song_id, state.value)


def _run_steps(run: _Run, storage: ObjectStorage, scratch: Path) -> JobOutcome:
    job = run.job

    path = fetch_original(storage, job, scratch)
    run.advance(JobState.FETCHED)

    probe = probe_source(path)
    decision = decide_quantization(probe)
    run.advance(JobState.PROBED)

    original = CanonicalOriginal(bucket=job.bucket, key=job.object_name, path=path)
    if decision is QuantizeDecision.QUANTIZE:
        original = quantize_original(storage, original, scratch)
        run.quantized = True
        run.audio_url = original.key
        run.advance(JobState.QUANTIZED)

    preview = encode_preview(storage, job.song_id, original.path, probe.duration, scratch)
    run.advance(JobState.PREVIEWED)

    waveform = analyze_waveform(preview.path, original.path, fallback_duration=preview.duration)
    run.advance(JobState.ANALYZED)

    url = publish_success(storage, job.song_id, original, preview, waveform, probe)
    run.advance(JobState.PUBLISHED)
    return JobOutcome(
        song_id=job.song_id,
        status=Song.ProcessingStatus.SUCCEEDED,
        state=run.state,
        preview_url=url,
        audio_url=original.key,
        quantized=run.quantized,
    )


def _fail(run: _Run, message: str) -> JobOutcome:
    publish_failure(run.job.song_id, message, audio_url=run.audio_url)
    return JobOutcome(
        song_id=run.job.song_id,
        status=Song.ProcessingStatus.FAILED,
        state=run.state,
        audio_url=run.audio_url,
        error=message,
        quantized=run.quantized,
    )


def run_job(job: ProcessingJob, storage: ObjectStorage | None = None) -> JobOutcome:
    storage = storage or ObjectStorage()
    run = _Run(job)
    logger.info("song %s: processing %s/%s", job.song_id, job.bucket, job.object_name)

    with scratch_space(job.song_id) as scratch:
        try:
            outcome = _run_steps(run, storage, scratch)
        except PublishError as e:
            logger.error("song %s: publishing result failed: %s", job.song_id, e)
            outcome = _fail(run, str(e))
        except PipelineError as e:
            logger.error("song %s: %s at %s: %s", job.song_id, type(e).__name__, run.state.value, e)
            outcome = _fail(run, str(e))
        except Exception as e:
            logger.exception("song %s: unexpected error at %s", job.song_id, run.state.value)
            _fail(run, str(e) or type(e).__name__)
            raise

    logger.info("song %s: finished with status %s", job.song_id, outcome.status)
    return outcome
