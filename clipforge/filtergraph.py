"""Filter-graph synthesis: TransformSpec -> ffmpeg ``-vf`` / ``-af`` chains.

Pure functions, no I/O. The video chain honours this precedence:

1. crop-to-fill (scale dims == crop dims, centered crop): scale to cover the
   box, then crop the overflow from the center;
2. otherwise an explicit crop runs first, then the scale clause
   (plain, padded, or the even-dimensions sentinel ``width == 0``).

The audio chain is ``volume=0`` when muted, else ``volume=<factor>``.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from clipforge.models import Crop, Scale, ScaleMode, TransformSpec


@dataclass
class Filter:
    """A single ffmpeg filter with positional arguments."""

    name: str
    args: list[str | int | float] = field(default_factory=list)

    def to_string(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}=" + ":".join(str(a) for a in self.args)


@dataclass
class FilterChain:
    """Filters applied in sequence (comma-joined)."""

    filters: list[Filter] = field(default_factory=list)

    def add(self, name: str, *args: str | int | float) -> "FilterChain":
        self.filters.append(Filter(name, list(args)))
        return self

    def __bool__(self) -> bool:
        return bool(self.filters)

    def to_string(self) -> str:
        return ",".join(f.to_string() for f in self.filters)


@dataclass(frozen=True)
class FilterGraph:
    video: str = ""
    audio: str = ""


def is_crop_fill(scale: Scale | None, crop: Crop | None) -> bool:
    if scale is None or crop is None or scale.height is None:
        return False
    if scale.mode is ScaleMode.PAD:
        return False
    return (
        (crop.width, crop.height) == (scale.width, scale.height)
        and crop.centered
    )


def video_chain(spec: TransformSpec) -> FilterChain:
    chain = FilterChain()
    scale, crop = spec.scale, spec.crop

    if is_crop_fill(scale, crop):
        w, h = scale.width, scale.height
        chain.add("scale", w, h, "force_original_aspect_ratio=increase")
        chain.add("crop", w, h, f"(iw-{w})/2", f"(ih-{h})/2")
        return chain

    if crop is not None and (
        scale is None or (scale.width, scale.height) != (crop.width, crop.height)
    ):
        if crop.centered:
            chain.add("crop", crop.width, crop.height,
                      f"(iw-{crop.width})/2", f"(ih-{crop.height})/2")
        else:
            chain.add("crop", crop.width, crop.height, crop.x, crop.y)

    if scale is not None:
        w, h = scale.width, scale.height
        if w == 0:
            chain.add("scale", "trunc(iw/2)*2", "trunc(ih/2)*2")
        elif h is None:
            chain.add("scale", w, "trunc(ih/2)*2")
        elif scale.mode is ScaleMode.PAD:
            chain.add("scale", w, h, "force_original_aspect_ratio=decrease")
            chain.add("pad", w, h, "(ow-iw)/2", "(oh-ih)/2", "black")
        else:
            chain.add("scale", w, h)

    return chain


def audio_chain(spec: TransformSpec) -> FilterChain:
    chain = FilterChain()
    if spec.muted:
        chain.add("volume", 0)
    elif spec.volume is not None:
        chain.add("volume", format_number(spec.volume))
    return chain


def synthesize(spec: TransformSpec) -> FilterGraph:
    """Return the video and audio filter chains for *spec* (possibly empty)."""
    if spec.concat_list is not None:
        return FilterGraph()
    return FilterGraph(
        video=video_chain(spec).to_string(),
        audio=audio_chain(spec).to_string(),
    )


def format_number(value: float) -> str:
    """Canonical decimal form: ``1.0 -> "1"``, ``2.5 -> "2.5"``, never an exponent.

    ffmpeg's time parser rejects ``5e-05``; ``0.00005`` is accepted.
    """
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
