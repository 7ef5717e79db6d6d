"""Shared test fixtures."""

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


class FakeStream:
    """Stands in for an asyncio StreamReader over ffmpeg's stderr."""

    def __init__(self, lines: list[str]):
        self._lines = [(line + "\n").encode() for line in lines]

    async def readline(self) -> bytes:
        if not self._lines:
            return b""
        return self._lines.pop(0)


class FakeProcess:
    def __init__(self, lines: list[str], returncode: int = 0):
        self.stderr = FakeStream(lines)
        self.returncode = None
        self._exit_code = returncode

    async def wait(self) -> int:
        self.returncode = self._exit_code
        return self._exit_code


class FakeFFmpeg:
    """Replacement for asyncio.create_subprocess_exec.

    Each call pops the next (lines, returncode) outcome, records the argument
    list and, on a zero exit, creates the file named after ``-y``.
    """

    def __init__(self, outcomes=None, create_output: bool = True):
        self.outcomes = list(outcomes or [])
        self.create_output = create_output
        self.calls: list[list[str]] = []
        self.concat_lists: list[str] = []

    async def __call__(self, binary, *args, **kwargs):
        args = list(args)
        self.calls.append(args)
        lines, code = self.outcomes.pop(0) if self.outcomes else ([], 0)
        if "concat" in args:
            self.concat_lists.append(Path(args[args.index("-i") + 1]).read_text())
        if code == 0 and self.create_output and "-y" in args:
            Path(args[args.index("-y") + 1]).write_bytes(b"video")
        return FakeProcess(lines, code)


def progress_lines(seconds: float, step: float = 0.5) -> list[str]:
    """A -progress stream reporting up to *seconds*."""
    lines: list[str] = []
    t = 0.0
    while t <= seconds + 1e-9:
        us = int(round(t * 1_000_000))
        lines += [
            "frame=1",
            f"out_time_us={us}",
            f"out_time_ms={us}",
            "speed=1x",
            "progress=continue",
        ]
        t += step
    lines.append("progress=end")
    return lines
