"""JSON manifest schema — the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from clipforge.models import ClipSpec, EncodeProfile, ExportJob, Resolution


@dataclass
class ClipConfig:
    """One clip entry of a manifest."""

    path: Path
    trim_start: float
    trim_end: float
    volume: float | None = None
    muted: bool = False


@dataclass
class EncodeConfig:
    """Encoder settings shared by every rendered clip."""

    video_codec: str = "libx264"
    preset: str = "medium"
    crf: int = 23
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    pixel_format: str | None = None


@dataclass
class Manifest:
    """Top-level export manifest."""

    output: Path
    clips: list[ClipConfig] = field(default_factory=list)
    version: str = "1"
    resolution: str = "720p"
    encode: EncodeConfig = field(default_factory=EncodeConfig)

    def to_job(self) -> ExportJob:
        """Validate field values and build an ExportJob."""
        clips = [
            ClipSpec(
                path=Path(c.path),
                trim_start=float(c.trim_start),
                trim_end=float(c.trim_end),
                volume=None if c.volume is None else float(c.volume),
                muted=bool(c.muted),
            )
            for c in self.clips
        ]
        e = self.encode
        profile = EncodeProfile(
            video_codec=e.video_codec,
            preset=e.preset,
            crf=e.crf,
            pixel_format=e.pixel_format,
            audio_codec=e.audio_codec,
            audio_bitrate=e.audio_bitrate,
        )
        return ExportJob(
            clips=clips,
            output=Path(self.output),
            resolution=Resolution.parse(self.resolution),
            profile=profile,
        )


def parse_manifest(data: dict) -> Manifest:
    """Build a Manifest from already-decoded JSON."""
    if "clips" not in data or "output" not in data:
        raise ValueError("Manifest must contain 'clips' and 'output' fields")

    clips = []
    for i, c in enumerate(data["clips"]):
        missing = [k for k in ("path", "trim_start", "trim_end") if c.get(k) is None]
        if missing:
            raise ValueError(f"Clip {i} is missing {', '.join(missing)}")
        try:
            clips.append(ClipConfig(**{**c, "path": Path(c["path"])}))
        except TypeError as e:
            raise ValueError(f"Clip {i}: {e}") from e

    try:
        encode = EncodeConfig(**data.get("encode", {}))
    except TypeError as e:
        raise ValueError(f"Invalid encode settings: {e}") from e

    return Manifest(
        version=data.get("version", "1"),
        output=Path(data["output"]),
        clips=clips,
        resolution=data.get("resolution", "720p"),
        encode=encode,
    )


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())
    return parse_manifest(data)
