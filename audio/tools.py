import logging
import subprocess
from dataclasses import dataclass

from django.conf import settings

logger = logging.getLogger(__name__)

STDERR_EXCERPT_CHARS = 2000


@dataclass
class ToolResult:
    stdout: str | bytes
    stderr: str


class ToolError(Exception):
    """An external tool could not be started or exited non-zero."""

    def __init__(self, tool: str, returncode: int | None, stderr: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"{tool} failed (exit {returncode}){detail}")


class ToolTimeout(ToolError):
    def __init__(self, tool: str, timeout: float):
        self.timeout = timeout
        super().__init__(tool, None, f"timed out after {timeout}s")


def _excerpt(stderr) -> str:
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="ignore")
    stderr = (stderr or "").strip()
    # ffmpeg puts the useful part at the end
    return stderr[-STDERR_EXCERPT_CHARS:]


def run_tool(cmd: list[str], *, timeout: float | None = None, binary: bool = False) -> ToolResult:
    """
    Run an external tool and return its captured output.

    stdout is returned as bytes when binary=True (raw PCM), text otherwise.
    Raises ToolError on a missing binary or non-zero exit, ToolTimeout when
    the wall-clock bound is exceeded (the child is killed by subprocess.run).
    """
    tool = cmd[0]
    timeout = timeout or settings.TOOL_TIMEOUT_SECONDS
    logger.debug("running %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise ToolTimeout(tool, timeout)
    except OSError as e:
        raise ToolError(tool, None, str(e)) from e

    stderr = _excerpt(proc.stderr)
    if proc.returncode != 0:
        raise ToolError(tool, proc.returncode, stderr)

    stdout = proc.stdout if binary else proc.stdout.decode("utf-8", errors="ignore")
    return ToolResult(stdout=stdout, stderr=stderr)
