import enum
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from django.conf import settings

from .errors import ProbeError
from .tools import ToolError, run_tool

logger = logging.getLogger(__name__)

# Sample formats that always carry more resolution than 16/24-bit integer PCM
FLOAT_SAMPLE_FORMATS = frozenset({"flt", "fltp", "dbl", "dblp"})
WIDE_INT_SAMPLE_FORMATS = frozenset({"s32", "s32p"})
MAX_PLAIN_BIT_DEPTH = 24


class QuantizeDecision(enum.Enum):
    SKIP = "skip"
    QUANTIZE = "quantize"


@dataclass
class ProbeResult:
    codec_name: str | None = None
    sample_rate: int | None = None
    channels: int | None = None
    sample_fmt: str | None = None
    bit_depth: int | None = None
    duration: float | None = None

    @classmethod
    def unknown(cls) -> "ProbeResult":
        return cls()


def _positive_int(value) -> int | None:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def _positive_float(value) -> float | None:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if f > 0 else None


def parse_ffprobe_output(raw: str) -> ProbeResult:
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON: {e}") from e

    streams = data.get("streams") or []
    if not streams:
        raise ProbeError("no audio stream found")
    st = streams[0]
    fmt = data.get("format") or {}

    # bits_per_raw_sample is the real depth (24 for pcm_s24le decoded as s32);
    # bits_per_sample is the container width and 0 for compressed codecs.
    bit_depth = _positive_int(st.get("bits_per_raw_sample")) or _positive_int(st.get("bits_per_sample"))

    return ProbeResult(
        codec_name=st.get("codec_name") or None,
        sample_rate=_positive_int(st.get("sample_rate")),
        channels=_positive_int(st.get("channels")),
        sample_fmt=st.get("sample_fmt") or None,
        bit_depth=bit_depth,
        duration=_positive_float(fmt.get("duration")) or _positive_float(st.get("duration")),
    )


def probe_format(path: Path) -> ProbeResult:
    """Inspect the first audio stream of path with ffprobe."""
    cmd = [
        settings.FFPROBE_BIN,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries",
        "stream=codec_name,sample_rate,channels,sample_fmt,bits_per_sample,bits_per_raw_sample,duration"
        ":format=duration",
        "-of", "json",
        str(path),
    ]
    try:
        result = run_tool(cmd)
    except ToolError as e:
        raise ProbeError(str(e)) from e
    return parse_ffprobe_output(result.stdout)


def needs_quantization(sample_fmt: str | None, bit_depth: int | None) -> bool:
    """
    True iff the source is floating point, a 32-bit integer format, or
    deeper than 24 bits.

    Exception to the s32/s32p rule: ffmpeg decodes 24-bit PCM (pcm_s24le)
    into s32 and reports bits_per_raw_sample=24, which parse_ffprobe_output
    surfaces as bit_depth. A reported depth of 24 or less therefore wins over
    an s32/s32p sample format, so 24-bit WAVs are left untouched. Without a
    reported depth, s32/s32p still count as high resolution.
    """
    fmt = (sample_fmt or "").lower()
    if fmt in FLOAT_SAMPLE_FORMATS:
        return True
    if bit_depth is not None and bit_depth > MAX_PLAIN_BIT_DEPTH:
        return True
    if fmt in WIDE_INT_SAMPLE_FORMATS:
        return bit_depth is None
    return False


def decide_quantization(probe: ProbeResult) -> QuantizeDecision:
    if needs_quantization(probe.sample_fmt, probe.bit_depth):
        return QuantizeDecision.QUANTIZE
    return QuantizeDecision.SKIP


def probe_source(path: Path) -> ProbeResult:
    """probe_format, degrading to an all-unknown result when probing fails."""
    try:
        probe = probe_format(path)
    except ProbeError as e:
        logger.warning("probe failed for %s, continuing without format info: %s", path.name, e)
        return ProbeResult.unknown()
    logger.info(
        "probed %s: codec=%s rate=%s channels=%s fmt=%s depth=%s duration=%s",
        path.name, probe.codec_name, probe.sample_rate, probe.channels,
        probe.sample_fmt, probe.bit_depth, probe.duration,
    )
    return probe
