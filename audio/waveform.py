"""
Waveform summary for UI rendering.

The analysis source is decoded by ffmpeg to mono, low-rate, signed 16-bit
PCM on stdout and reduced to a fixed number of normalized values. The
waveform is cosmetic: analysis failures produce an all-zero summary of the
same length instead of failing the job.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from django.conf import settings

from .errors import AnalyzeError
from .tools import ToolError, run_tool

logger = logging.getLogger(__name__)

FULL_SCALE = 32768.0  # |min(int16)|
REDUCTIONS = ("peak", "rms")


@dataclass
class Waveform:
    peaks: list[float] = field(default_factory=list)
    duration: float = 0.0

    def as_json(self) -> dict:
        return {"peaks": self.peaks, "duration": round(self.duration, 3)}


def zero_peaks(points: int) -> list[float]:
    return [0.0] * points


def summarize_peaks(samples: np.ndarray, points: int, reduction: str = "peak") -> list[float]:
    """
    Split samples into exactly `points` contiguous buckets and reduce each to
    a value in [0, 1] relative to int16 full scale. Buckets left empty (fewer
    samples than points) are 0.
    """
    if reduction not in REDUCTIONS:
        raise ValueError(f"unknown reduction: {reduction!r}")
    if points <= 0:
        return []
    samples = np.asarray(samples)
    if samples.size == 0:
        return zero_peaks(points)

    mags = np.abs(samples.astype(np.float64).ravel())
    values = []
    for bucket in np.array_split(mags, points):
        if bucket.size == 0:
            values.append(0.0)
        elif reduction == "peak":
            values.append(float(bucket.max()))
        else:
            values.append(float(np.sqrt(np.mean(bucket * bucket))))

    normalized = np.clip(np.asarray(values) / FULL_SCALE, 0.0, 1.0)
    return [round(float(v), 4) for v in normalized]


def decode_command(source: Path, max_seconds: float, sample_rate: int) -> list[str]:
    return [
        settings.FFMPEG_BIN,
        "-v", "error",
        "-i", str(source),
        "-t", f"{max_seconds:.3f}",
        "-map", "0:a:0",
        "-vn",
        "-ac", "1",
        "-ar", str(sample_rate),
        "-f", "s16le",
        "-acodec", "pcm_s16le",
        "pipe:1",
    ]


def decode_pcm(source: Path, max_seconds: float, sample_rate: int) -> np.ndarray:
    try:
        result = run_tool(decode_command(source, max_seconds, sample_rate), binary=True)
    except ToolError as e:
        raise AnalyzeError(f"decode for waveform failed: {e}") from e
    raw = result.stdout
    if len(raw) % 2:
        raw = raw[:-1]
    samples = np.frombuffer(raw, dtype="<i2")
    if samples.size == 0:
        raise AnalyzeError("decode for waveform produced no samples")
    return samples


def analyze_waveform(preview: Path | None, original: Path, fallback_duration: float = 0.0) -> Waveform:
    """
    Waveform of the preview (what listeners hear), or of the original when
    there is no preview. Never raises.
    """
    points = settings.WAVEFORM_POINTS
    rate = settings.WAVEFORM_SAMPLE_RATE
    source = preview if preview is not None and preview.exists() else original
    try:
        samples = decode_pcm(source, settings.PREVIEW_DURATION_SECONDS, rate)
        peaks = summarize_peaks(samples, points)
    except (AnalyzeError, ValueError) as e:
        logger.warning("waveform analysis of %s failed, using silence: %s", source.name, e)
        return Waveform(peaks=zero_peaks(points), duration=fallback_duration)
    return Waveform(peaks=peaks, duration=samples.size / rate)
