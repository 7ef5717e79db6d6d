"""Shared data types used across ClipForge."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from clipforge.errors import InputValidationError, TransformSpecError


@dataclass(frozen=True)
class Trim:
    """A start offset and duration in seconds."""

    start: float
    duration: float


@dataclass(frozen=True)
class ClipSpec:
    """One source clip of an export: a trimmed range plus audio settings.

    ``muted`` wins over ``volume``; ``volume`` is clamped to [0, 1].
    """

    path: Path
    trim_start: float
    trim_end: float
    volume: float | None = None
    muted: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        if self.trim_start < 0:
            raise InputValidationError(
                f"Clip {self.path}: trim start must be non-negative (got {self.trim_start})"
            )
        if self.trim_end <= self.trim_start:
            raise InputValidationError(
                f"Clip {self.path}: trim end ({self.trim_end}) must be greater "
                f"than trim start ({self.trim_start})"
            )
        if self.volume is not None:
            object.__setattr__(self, "volume", clamp_volume(self.volume))

    @property
    def duration(self) -> float:
        return self.trim_end - self.trim_start


class Resolution(Enum):
    """Named export resolutions."""

    SOURCE = "source"
    SD_480 = "480p"
    HD_720 = "720p"
    HD_1080 = "1080p"
    UHD_4K = "4K"

    @property
    def size(self) -> tuple[int, int]:
        # "source" is not probed; it falls back to 720p.
        return _RESOLUTION_SIZES[self]

    @classmethod
    def parse(cls, name: "str | Resolution") -> "Resolution":
        if isinstance(name, cls):
            return name
        for member in cls:
            if member.value == name:
                return member
        names = ", ".join(f"'{m.value}'" for m in cls)
        raise InputValidationError(f"Unsupported resolution: {name}. Use {names}.")


_RESOLUTION_SIZES = {
    Resolution.SOURCE: (1280, 720),
    Resolution.SD_480: (854, 480),
    Resolution.HD_720: (1280, 720),
    Resolution.HD_1080: (1920, 1080),
    Resolution.UHD_4K: (3840, 2160),
}


class ScaleMode(Enum):
    PLAIN = "plain"
    PAD = "pad"
    CROP_FILL = "crop_fill"


@dataclass(frozen=True)
class RawInputConfig:
    """Raw-frame input: pixel format, ``WxH`` frame size and framerate."""

    pixel_format: str
    video_size: str
    framerate: int


@dataclass(frozen=True)
class EncodeProfile:
    """Codec settings for a re-encode. ``None`` fields are not emitted."""

    video_codec: str | None = "libx264"
    preset: str | None = "medium"
    crf: int | None = 23
    pixel_format: str | None = None
    audio_codec: str | None = "aac"
    audio_bitrate: str | None = "128k"


@dataclass(frozen=True)
class Scale:
    """Target scale. ``width == 0`` requests even source dimensions."""

    width: int
    height: int | None = None
    mode: ScaleMode = ScaleMode.PLAIN


@dataclass(frozen=True)
class Crop:
    """Crop box; offsets default to centered."""

    width: int
    height: int
    x: int | None = None
    y: int | None = None

    @property
    def centered(self) -> bool:
        return self.x is None or self.y is None


@dataclass(frozen=True)
class TransformSpec:
    """Declarative description of a single ffmpeg invocation.

    Field combinations are checked at construction time; building the
    argument list from a valid spec never fails.
    """

    output: str | None = None
    input: str | None = None
    trim: Trim | None = None
    thumbnail_time: float | None = None
    scale: Scale | None = None
    crop: Crop | None = None
    raw_input: RawInputConfig | None = None
    concat_list: str | None = None
    stream_copy: bool = False
    encode: EncodeProfile | None = None
    volume: float | None = None
    muted: bool = False
    progress: bool = False

    def __post_init__(self) -> None:
        if self.volume is not None:
            object.__setattr__(self, "volume", clamp_volume(self.volume))

        if self.concat_list is not None:
            conflicting = [
                name
                for name, value in (
                    ("input", self.input),
                    ("trim", self.trim),
                    ("thumbnail", self.thumbnail_time),
                    ("scale", self.scale),
                    ("crop", self.crop),
                    ("raw input", self.raw_input),
                    ("volume", self.volume),
                )
                if value is not None
            ]
            if self.muted:
                conflicting.append("mute")
            if conflicting:
                raise TransformSpecError(
                    "concat input cannot be combined with: " + ", ".join(conflicting)
                )

        if self.scale is not None and self.scale.mode is ScaleMode.CROP_FILL:
            crop = self.crop
            if (
                self.scale.height is None
                or crop is None
                or (crop.width, crop.height) != (self.scale.width, self.scale.height)
                or not crop.centered
            ):
                raise TransformSpecError(
                    "crop-to-fill requires equal scale and centered crop dimensions"
                )

    @property
    def has_audio_filter(self) -> bool:
        return self.muted or self.volume is not None


@dataclass(frozen=True)
class ProgressWindow:
    """Slice of overall job progress (percent) that one phase occupies."""

    offset: float = 0.0
    range: float = 100.0

    def map(self, phase_percent: float) -> float:
        return min(100.0, self.offset + phase_percent / 100.0 * self.range)

    @property
    def end(self) -> float:
        return min(100.0, self.offset + self.range)


@dataclass
class ExportJob:
    """An export request: ordered clips rendered at one resolution."""

    clips: list[ClipSpec]
    output: Path
    resolution: Resolution = Resolution.HD_720
    profile: EncodeProfile = field(default_factory=EncodeProfile)

    @property
    def total_duration(self) -> float:
        return sum(c.duration for c in self.clips)


def clamp_volume(value: float) -> float:
    return max(0.0, min(1.0, float(value)))
