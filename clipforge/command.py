"""ffmpeg command construction.

``CommandBuilder`` is a fluent, order-independent way to describe one ffmpeg
invocation; ``build()`` freezes it into a ``TransformSpec`` and
``build_args()`` turns a spec into the argument list. Token order matters to
ffmpeg and is fixed:

1. concat demuxer input (skips 2-4)
2. seek/trim (``-ss``/``-t``) before the input, for fast seeking
3. raw-frame or plain input
4. ``-vf`` / ``-af``
5. stream copy or encode profile
6. ``-vframes 1`` for single-frame extraction
7. ``-progress pipe:2``
8. ``-y <output>``
"""

import shlex
from dataclasses import replace

from clipforge.filtergraph import format_number, synthesize
from clipforge.models import (
    Crop,
    EncodeProfile,
    RawInputConfig,
    Scale,
    ScaleMode,
    Trim,
    TransformSpec,
    clamp_volume,
)

ArgumentList = tuple[str, ...]

_CONCAT_DROPPED = (
    "input", "trim", "thumbnail_time", "scale", "crop", "raw_input", "volume", "muted",
)


def build_args(spec: TransformSpec) -> ArgumentList:
    """Return the ffmpeg arguments (without the binary) for *spec*."""
    args: list[str] = []

    if spec.concat_list is not None:
        args += ["-f", "concat", "-safe", "0", "-i", spec.concat_list]
    else:
        if spec.thumbnail_time is not None:
            args += ["-ss", format_number(spec.thumbnail_time)]
        elif spec.trim is not None:
            args += ["-ss", format_number(spec.trim.start)]
        if spec.trim is not None:
            args += ["-t", format_number(spec.trim.duration)]

        if spec.raw_input is not None:
            raw = spec.raw_input
            args += [
                "-f", "rawvideo",
                "-pixel_format", raw.pixel_format,
                "-video_size", raw.video_size,
                "-framerate", str(raw.framerate),
                "-i", spec.input or "pipe:0",
            ]
        elif spec.input is not None:
            args += ["-i", spec.input]

        graph = synthesize(spec)
        if graph.video:
            args += ["-vf", graph.video]
        if graph.audio:
            args += ["-af", graph.audio]

    if spec.stream_copy:
        # Filtering and copying are incompatible: keep video copied, encode audio.
        if spec.has_audio_filter:
            args += ["-c:v", "copy", "-c:a", "aac"]
        else:
            args += ["-c", "copy"]
        args += ["-avoid_negative_ts", "make_zero"]
    elif spec.encode is not None:
        profile = spec.encode
        if profile.video_codec:
            args += ["-c:v", profile.video_codec]
        if profile.preset:
            args += ["-preset", profile.preset]
        if profile.crf is not None:
            args += ["-crf", str(profile.crf)]
        if profile.pixel_format:
            args += ["-pix_fmt", profile.pixel_format]
        if profile.audio_codec:
            args += ["-c:a", profile.audio_codec]
        if profile.audio_bitrate:
            args += ["-b:a", profile.audio_bitrate]

    if spec.thumbnail_time is not None:
        args += ["-vframes", "1"]

    if spec.progress:
        args += ["-progress", "pipe:2"]

    if spec.output is not None:
        args += ["-y", spec.output]

    return tuple(args)


def to_string(binary: str, args: ArgumentList) -> str:
    """Shell-quoted rendering of a command, for logs."""
    return " ".join(shlex.quote(a) for a in (binary, *args))


class CommandBuilder:
    """Fluent builder for a ``TransformSpec``."""

    def __init__(self):
        # Plain field values; combinations are only checked in build().
        self._fields: dict = {}
        self._encode_overrides: dict = {}

    def _set(self, **changes) -> "CommandBuilder":
        self._fields.update(changes)
        return self

    def reset(self) -> "CommandBuilder":
        self._fields = {}
        self._encode_overrides = {}
        return self

    def input(self, path) -> "CommandBuilder":
        return self._set(input=str(path))

    def output(self, path) -> "CommandBuilder":
        return self._set(output=str(path))

    def trim(self, start: float, duration: float) -> "CommandBuilder":
        return self._set(trim=Trim(start=start, duration=duration))

    def scale(self, width: int, height: int | None = None) -> "CommandBuilder":
        return self._set(scale=Scale(width, height, ScaleMode.PLAIN))

    def scale_with_pad(self, width: int, height: int) -> "CommandBuilder":
        """Fit inside the box, letterboxing with black bars."""
        return self._set(scale=Scale(width, height, ScaleMode.PAD))

    def scale_crop(self, width: int, height: int) -> "CommandBuilder":
        """Fill the box, cropping the overflow from the center."""
        return self._set(
            scale=Scale(width, height, ScaleMode.CROP_FILL),
            crop=Crop(width, height),
        )

    def scale_even(self) -> "CommandBuilder":
        """Round source dimensions down to even numbers (H.264 needs them)."""
        return self._set(scale=Scale(0, None, ScaleMode.PLAIN))

    def crop(
        self, width: int, height: int, x: int | None = None, y: int | None = None
    ) -> "CommandBuilder":
        return self._set(crop=Crop(width, height, x, y))

    def encode(self, profile: EncodeProfile | None = None) -> "CommandBuilder":
        return self._set(encode=profile or EncodeProfile())

    def preset(self, preset: str) -> "CommandBuilder":
        self._encode_overrides["preset"] = preset
        return self

    def pixel_format(self, fmt: str) -> "CommandBuilder":
        self._encode_overrides["pixel_format"] = fmt
        return self

    def stream_copy(self) -> "CommandBuilder":
        return self._set(stream_copy=True)

    def thumbnail(self, time: float) -> "CommandBuilder":
        return self._set(thumbnail_time=time)

    def raw_input(self, config: RawInputConfig) -> "CommandBuilder":
        return self._set(raw_input=config)

    def concat(self, list_path) -> "CommandBuilder":
        """Read inputs from a concat list.

        Input, trim, thumbnail, scale, crop, raw-input and audio settings are
        dropped at build time, whether they were set before or after this call.
        """
        return self._set(concat_list=str(list_path))

    def volume(self, factor: float) -> "CommandBuilder":
        return self._set(volume=clamp_volume(factor))

    def mute(self) -> "CommandBuilder":
        return self._set(muted=True)

    def with_progress(self) -> "CommandBuilder":
        return self._set(progress=True)

    def build(self) -> TransformSpec:
        """Validate and return the immutable spec."""
        fields = dict(self._fields)
        if fields.get("concat_list") is not None:
            for name in _CONCAT_DROPPED:
                fields.pop(name, None)
        if self._encode_overrides:
            profile = fields.get("encode") or EncodeProfile()
            fields["encode"] = replace(profile, **self._encode_overrides)
        return TransformSpec(**fields)

    def build_args(self) -> ArgumentList:
        return build_args(self.build())
