"""Exception hierarchy for the export pipeline."""


class ClipForgeError(Exception):
    """Base error for ClipForge."""


class InputValidationError(ClipForgeError, ValueError):
    """Raised when caller-supplied clips, paths or time ranges are invalid."""


class TransformSpecError(ClipForgeError, ValueError):
    """Raised when a TransformSpec combines mutually exclusive operations."""


class FFmpegError(ClipForgeError):
    """Base error for ffmpeg invocations."""


class SpawnError(FFmpegError):
    """Raised when the ffmpeg binary cannot be started."""


class FFmpegNotFoundError(SpawnError):
    """Raised when no ffmpeg binary can be located."""


class ExecutionError(FFmpegError):
    """Raised when ffmpeg exits with a non-zero status."""

    def __init__(self, returncode: int, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        detail = _tail(stderr)
        msg = f"ffmpeg exited with code {returncode}"
        super().__init__(f"{msg}: {detail}" if detail else msg)


class OutputValidationError(FFmpegError):
    """Raised when ffmpeg reports success but the output file is missing."""

    def __init__(self, output: str):
        self.output = output
        super().__init__(f"Output file was not created: {output}")


class PhaseError(ClipForgeError):
    """A failed phase of a multi-step export.

    ``clip_index`` is ``None`` for the concat phase.
    """

    def __init__(self, phase: str, cause: Exception, clip_index: int | None = None):
        self.phase = phase
        self.clip_index = clip_index
        self.cause = cause
        super().__init__(f"Failed to {phase}: {cause}")


def _tail(text: str, limit: int = 500) -> str:
    text = text.strip()
    return text[-limit:] if len(text) > limit else text
