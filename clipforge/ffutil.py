"""FFmpeg subprocess helpers: binary lookup, blocking and streaming runs."""

import asyncio
import logging
import os
import re
import shutil
import subprocess
from collections import deque
from pathlib import Path
from typing import Sequence

from clipforge.command import build_args, to_string
from clipforge.errors import (
    ExecutionError,
    FFmpegNotFoundError,
    OutputValidationError,
    SpawnError,
)
from clipforge.models import TransformSpec
from clipforge.progress import ProgressTracker

logger = logging.getLogger(__name__)

FFMPEG_ENV = "CLIPFORGE_FFMPEG"
STDERR_TAIL_LINES = 50

_PROGRESS_LINE = re.compile(r"^\w+=\S*$")


def locate_ffmpeg(path: str | Path | None = None) -> str:
    """Resolve the ffmpeg binary: explicit path, $CLIPFORGE_FFMPEG, then PATH."""
    candidate = str(path) if path else os.environ.get(FFMPEG_ENV)
    if candidate:
        resolved = shutil.which(candidate)
        if resolved is None:
            raise FFmpegNotFoundError(f"ffmpeg binary not found or not executable: {candidate}")
        return resolved
    resolved = shutil.which("ffmpeg")
    if resolved is None:
        raise FFmpegNotFoundError("ffmpeg not found on PATH")
    return resolved


def run(binary: str, args: Sequence[str], output: str | Path | None = None) -> str:
    """Run ffmpeg to completion and return its stdout.

    Raises ExecutionError carrying stderr on a non-zero exit, and
    OutputValidationError if *output* is given but was not written.
    """
    cmd = [binary, *args]
    logger.debug("running: %s", to_string(binary, tuple(args)))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
    except OSError as e:
        raise SpawnError(f"Failed to spawn {binary}: {e}") from e

    if result.returncode != 0:
        raise ExecutionError(result.returncode, result.stderr)
    if output is not None and not Path(output).exists():
        raise OutputValidationError(str(output))
    return result.stdout


def version(binary: str) -> str:
    """Return the first line of ``ffmpeg -version``."""
    out = run(binary, ["-version"])
    return out.splitlines()[0] if out else ""


async def run_with_progress(
    binary: str,
    args: Sequence[str],
    output: str | Path | None = None,
    tracker: ProgressTracker | None = None,
) -> str | None:
    """Run ffmpeg, streaming stderr lines into *tracker* while it runs.

    Success requires a zero exit status and, when *output* is given, the
    output file existing afterwards. The tracker's window end is emitted
    only once both hold.
    """
    logger.debug("running: %s", to_string(binary, tuple(args)))
    try:
        process = await asyncio.create_subprocess_exec(
            binary,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnError(f"Failed to spawn {binary}: {e}") from e

    diagnostics: deque[str] = deque(maxlen=STDERR_TAIL_LINES)

    async def read_stderr() -> None:
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            text = line.decode(errors="replace").rstrip()
            if tracker is not None and tracker.feed(text):
                continue
            if text and not _PROGRESS_LINE.match(text):
                diagnostics.append(text)

    await asyncio.gather(read_stderr(), process.wait())

    if process.returncode != 0:
        raise ExecutionError(process.returncode, "\n".join(diagnostics))

    if output is not None and not Path(output).exists():
        raise OutputValidationError(str(output))

    if tracker is not None:
        tracker.complete()
    return str(output) if output is not None else None


async def execute(
    binary: str,
    spec: TransformSpec,
    tracker: ProgressTracker | None = None,
) -> str | None:
    """Build the arguments for *spec* and run them with progress."""
    return await run_with_progress(binary, build_args(spec), spec.output, tracker)
