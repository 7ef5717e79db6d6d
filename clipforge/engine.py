"""Orchestrator — runs an export job as one or more ffmpeg phases.

A single clip is rendered straight to the output path. Several clips are
each rendered to a scratch file at identical codec settings (so they can be
stream-copied), then joined with the concat demuxer. Per-clip phases share
the first 90% of the progress bar in proportion to clip duration; the
concat phase takes the last 10%.
"""

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from clipforge import ffutil
from clipforge.command import CommandBuilder
from clipforge.errors import ClipForgeError, InputValidationError, PhaseError
from clipforge.models import (
    ClipSpec,
    EncodeProfile,
    ExportJob,
    ProgressWindow,
    Resolution,
    TransformSpec,
)
from clipforge.progress import ProgressChannel, ProgressTracker

logger = logging.getLogger(__name__)

RENDER_SHARE = 90.0
CONCAT_SHARE = 10.0
CONCAT_DURATION_FACTOR = 0.1


@dataclass
class EngineResult:
    output_path: Path
    clip_count: int = 0
    duration: float = 0.0


def validate_job(job: ExportJob) -> Resolution:
    """Reject a job before anything is spawned or written."""
    if not job.clips:
        raise InputValidationError("No clips provided for export")
    for clip in job.clips:
        if not Path(clip.path).exists():
            raise InputValidationError(f"Clip not found: {clip.path}")
    return Resolution.parse(job.resolution)


def phase_windows(durations: list[float], share: float = RENDER_SHARE) -> list[ProgressWindow]:
    """Split *share* percent of the bar across phases by duration."""
    total = sum(durations)
    windows: list[ProgressWindow] = []
    done = 0.0
    for d in durations:
        if total > 0:
            windows.append(ProgressWindow(offset=done / total * share, range=d / total * share))
        else:
            windows.append(ProgressWindow(offset=0.0, range=0.0))
        done += d
    return windows


def clip_command(
    clip: ClipSpec,
    output: Path,
    size: tuple[int, int],
    profile: EncodeProfile,
) -> TransformSpec:
    """Trim, letterbox to *size*, re-encode and apply the clip's audio setting."""
    width, height = size
    builder = (
        CommandBuilder()
        .input(clip.path)
        .trim(clip.trim_start, clip.duration)
        .scale_with_pad(width, height)
        .encode(profile)
        .with_progress()
        .output(output)
    )
    if clip.muted:
        builder.mute()
    elif clip.volume is not None:
        builder.volume(clip.volume)
    return builder.build()


def concat_command(list_path: Path, output: Path) -> TransformSpec:
    return (
        CommandBuilder()
        .concat(list_path)
        .stream_copy()
        .with_progress()
        .output(output)
        .build()
    )


def write_concat_list(paths: list[Path], list_path: Path) -> Path:
    # Paths are not escaped; scratch names never contain quotes.
    lines = [f"file '{p}'" for p in paths]
    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


async def export_video(
    job: ExportJob,
    ffmpeg: str | None = None,
    on_progress: Callable[[int], None] | None = None,
    scratch_dir: Path | None = None,
) -> EngineResult:
    """Export *job* and return the final output path.

    Args:
        job: Clips, target resolution and output path.
        ffmpeg: Resolved ffmpeg binary; located on PATH when omitted.
        on_progress: Optional callback(percent) with overall progress 0-100.
        scratch_dir: Parent directory for per-job scratch files.
    """

    def _progress(value: int) -> None:
        if on_progress:
            on_progress(value)

    resolution = validate_job(job)
    binary = ffmpeg or ffutil.locate_ffmpeg()
    size = resolution.size
    output = Path(job.output)

    logger.info(
        "exporting %d clip(s) at %s (%dx%d) to %s",
        len(job.clips), resolution.value, size[0], size[1], output,
    )
    _progress(0)

    if len(job.clips) == 1:
        clip = job.clips[0]
        tracker = ProgressTracker(_progress, total=clip.duration, window=ProgressWindow(0, 100))
        await ffutil.execute(binary, clip_command(clip, output, size, job.profile), tracker)
    else:
        await _export_multi(job, binary, size, output, _progress, scratch_dir)

    _progress(100)
    logger.info("export finished: %s", output)
    return EngineResult(output_path=output, clip_count=len(job.clips), duration=job.total_duration)


async def _export_multi(
    job: ExportJob,
    binary: str,
    size: tuple[int, int],
    output: Path,
    progress: Callable[[int], None],
    scratch_dir: Path | None,
) -> None:
    work_dir = Path(tempfile.mkdtemp(prefix="clipforge_export_", dir=scratch_dir))
    total = job.total_duration
    windows = phase_windows([c.duration for c in job.clips])
    rendered: list[Path] = []

    try:
        for i, (clip, window) in enumerate(zip(job.clips, windows)):
            scratch = work_dir / f"clip_{i:03d}.mp4"
            logger.info(
                "clip %d/%d: %s [%.2fs-%.2fs] window %.1f+%.1f",
                i + 1, len(job.clips), clip.path, clip.trim_start, clip.trim_end,
                window.offset, window.range,
            )
            tracker = ProgressTracker(progress, total=clip.duration, window=window)
            try:
                await ffutil.execute(binary, clip_command(clip, scratch, size, job.profile), tracker)
            except ClipForgeError as e:
                raise PhaseError(f"process clip {i}", e, clip_index=i) from e
            rendered.append(scratch)

        list_path = write_concat_list(rendered, work_dir / "concat_list.txt")
        tracker = ProgressTracker(
            progress,
            total=total * CONCAT_DURATION_FACTOR,
            window=ProgressWindow(RENDER_SHARE, CONCAT_SHARE),
        )
        logger.info("concatenating %d clips into %s", len(rendered), output)
        try:
            await ffutil.execute(binary, concat_command(list_path, output), tracker)
        except ClipForgeError as e:
            raise PhaseError("concatenate clips", e) from e
    finally:
        _cleanup(work_dir)


def _cleanup(work_dir: Path) -> None:
    for path in work_dir.iterdir():
        try:
            path.unlink()
        except OSError as e:
            logger.warning("could not remove scratch file %s: %s", path, e)
    try:
        work_dir.rmdir()
    except OSError as e:
        logger.warning("could not remove scratch dir %s: %s", work_dir, e)


def export(
    job: ExportJob,
    ffmpeg: str | None = None,
    on_progress: Callable[[int], None] | None = None,
    scratch_dir: Path | None = None,
) -> EngineResult:
    """Blocking wrapper around ``export_video``."""
    return asyncio.run(export_video(job, ffmpeg, on_progress, scratch_dir))


def stream_export(
    job: ExportJob,
    ffmpeg: str | None = None,
    scratch_dir: Path | None = None,
    maxsize: int = 32,
) -> tuple[ProgressChannel, "asyncio.Task[EngineResult]"]:
    """Start an export and return its progress channel and task.

    Must be called from a running event loop. The channel is closed when the
    task finishes, successfully or not.
    """
    channel = ProgressChannel(maxsize=maxsize)

    async def _run() -> EngineResult:
        try:
            return await export_video(job, ffmpeg, channel.put, scratch_dir)
        finally:
            channel.close()

    return channel, asyncio.create_task(_run())


def trim_clip(
    source: Path,
    output: Path,
    start: float,
    end: float,
    ffmpeg: str | None = None,
) -> Path:
    """Cut ``[start, end)`` out of *source* without re-encoding."""
    source, output = Path(source), Path(output)
    if not source.exists():
        raise InputValidationError(f"Input file not found: {source}")
    if start < 0 or end < 0:
        raise InputValidationError("Start and end times must be non-negative")
    if start >= end:
        raise InputValidationError("Start time must be less than end time")

    binary = ffmpeg or ffutil.locate_ffmpeg()
    output.parent.mkdir(parents=True, exist_ok=True)
    args = (
        CommandBuilder()
        .input(source)
        .trim(start, end - start)
        .stream_copy()
        .output(output)
        .build_args()
    )
    ffutil.run(binary, args, output=output)
    return output
