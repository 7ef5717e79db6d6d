"""Tests for argument-list construction."""

import pytest

from clipforge.command import CommandBuilder, build_args
from clipforge.errors import TransformSpecError
from clipforge.models import EncodeProfile, RawInputConfig, Scale, ScaleMode, TransformSpec


def _value_after(args, flag):
    return args[args.index(flag) + 1]


class TestBasics:
    def test_input_output(self):
        args = CommandBuilder().input("input.mp4").output("output.mp4").build_args()
        assert args == ("-i", "input.mp4", "-y", "output.mp4")

    def test_output_is_last(self):
        args = (
            CommandBuilder()
            .output("out.mp4")
            .with_progress()
            .encode()
            .input("in.mp4")
            .build_args()
        )
        assert args[-2:] == ("-y", "out.mp4")
        assert _value_after(args, "-progress") == "pipe:2"

    def test_build_args_is_idempotent(self):
        b = (
            CommandBuilder()
            .input("in.mp4")
            .trim(1.5, 3.0)
            .scale_with_pad(1280, 720)
            .encode()
            .volume(0.4)
            .with_progress()
            .output("out.mp4")
        )
        assert b.build_args() == b.build_args()
        spec = b.build()
        assert build_args(spec) == build_args(spec)

    def test_spec_is_immutable(self):
        spec = CommandBuilder().input("in.mp4").build()
        with pytest.raises(AttributeError):
            spec.input = "other.mp4"


class TestTrim:
    def test_trim_tokens(self):
        args = CommandBuilder().input("input.mp4").trim(1.0, 5.0).output("o.mp4").build_args()
        assert _value_after(args, "-ss") == "1"
        assert _value_after(args, "-t") == "5"

    def test_fractional_trim_tokens(self):
        args = CommandBuilder().input("in.mp4").trim(12.25, 0.75).build_args()
        assert _value_after(args, "-ss") == "12.25"
        assert _value_after(args, "-t") == "0.75"

    def test_tiny_trim_is_plain_decimal(self):
        args = CommandBuilder().input("in.mp4").trim(0.00005, 1e-5).build_args()
        assert args[:4] == ("-ss", "0.00005", "-t", "0.00001")
        assert not any("e-" in a for a in args)

    def test_huge_trim_is_plain_decimal(self):
        args = CommandBuilder().input("in.mp4").trim(1e16, 2.0).build_args()
        assert _value_after(args, "-ss") == "10000000000000000"

    def test_seek_before_input(self):
        args = CommandBuilder().input("in.mp4").trim(2.0, 3.0).build_args()
        assert args.index("-ss") < args.index("-i")
        assert args.index("-t") < args.index("-i")

    def test_thumbnail_seek_wins(self):
        args = (
            CommandBuilder()
            .input("in.mp4")
            .trim(1.0, 4.0)
            .thumbnail(2.5)
            .output("thumb.jpg")
            .build_args()
        )
        assert args.count("-ss") == 1
        assert _value_after(args, "-ss") == "2.5"

    def test_thumbnail_extracts_one_frame(self):
        args = (
            CommandBuilder()
            .input("in.mp4")
            .thumbnail(2.5)
            .scale(320)
            .output("thumb.jpg")
            .build_args()
        )
        assert _value_after(args, "-vframes") == "1"
        assert "scale=320:trunc(ih/2)*2" in args


class TestInput:
    def test_raw_input_from_pipe(self):
        config = RawInputConfig(pixel_format="rgb24", video_size="1280x720", framerate=30)
        args = CommandBuilder().raw_input(config).output("out.mp4").build_args()
        assert args[:10] == (
            "-f", "rawvideo",
            "-pixel_format", "rgb24",
            "-video_size", "1280x720",
            "-framerate", "30",
            "-i", "pipe:0",
        )

    def test_raw_input_from_file(self):
        config = RawInputConfig(pixel_format="yuv420p", video_size="640x480", framerate=25)
        args = CommandBuilder().raw_input(config).input("frames.raw").build_args()
        assert _value_after(args, "-i") == "frames.raw"
        assert args.count("-i") == 1


class TestFilters:
    def test_crop_fill_single_vf(self):
        args = (
            CommandBuilder()
            .input("in.mp4")
            .scale_crop(320, 180)
            .output("thumb.jpg")
            .build_args()
        )
        assert args.count("-vf") == 1
        vf = _value_after(args, "-vf")
        assert "scale=320:180:force_original_aspect_ratio=increase" in vf
        assert "crop=320:180:(iw-320)/2:(ih-180)/2" in vf
        assert vf.count("crop=") == 1

    def test_filters_after_input(self):
        args = CommandBuilder().input("in.mp4").scale(640, 360).mute().build_args()
        assert args.index("-i") < args.index("-vf") < args.index("-af")

    def test_no_empty_filter_flags(self):
        args = CommandBuilder().input("in.mp4").encode().build_args()
        assert "-vf" not in args
        assert "-af" not in args

    def test_volume_clamped_at_assignment(self):
        args = CommandBuilder().input("in.mp4").volume(1.7).build_args()
        assert _value_after(args, "-af") == "volume=1"


class TestEncoding:
    def test_default_profile(self):
        args = CommandBuilder().input("in.mp4").encode().output("o.mp4").build_args()
        assert _value_after(args, "-c:v") == "libx264"
        assert _value_after(args, "-preset") == "medium"
        assert _value_after(args, "-crf") == "23"
        assert _value_after(args, "-c:a") == "aac"
        assert _value_after(args, "-b:a") == "128k"
        assert "-pix_fmt" not in args

    def test_preset_override_is_order_independent(self):
        before = CommandBuilder().input("in.mp4").preset("fast").encode().build_args()
        after = CommandBuilder().input("in.mp4").encode().preset("fast").build_args()
        assert before == after
        assert _value_after(before, "-preset") == "fast"

    def test_pixel_format(self):
        args = CommandBuilder().input("in.mp4").encode().pixel_format("yuv420p").build_args()
        assert _value_after(args, "-pix_fmt") == "yuv420p"

    def test_unset_profile_fields_are_skipped(self):
        profile = EncodeProfile(video_codec="libx265", preset=None, crf=None,
                                audio_codec=None, audio_bitrate=None)
        args = CommandBuilder().input("in.mp4").encode(profile).build_args()
        assert _value_after(args, "-c:v") == "libx265"
        for flag in ("-preset", "-crf", "-c:a", "-b:a"):
            assert flag not in args

    def test_stream_copy(self):
        args = CommandBuilder().input("in.mp4").stream_copy().output("o.mp4").build_args()
        assert _value_after(args, "-c") == "copy"
        assert "-c:v" not in args
        assert "-c:a" not in args
        assert _value_after(args, "-avoid_negative_ts") == "make_zero"

    def test_stream_copy_wins_over_encode(self):
        args = CommandBuilder().input("in.mp4").encode().stream_copy().build_args()
        assert "-c:v" not in args
        assert "-crf" not in args

    @pytest.mark.parametrize("audio", ["mute", "volume"])
    def test_stream_copy_with_audio_filter_encodes_audio(self, audio):
        b = CommandBuilder().input("in.mp4").stream_copy().output("o.mp4")
        if audio == "mute":
            b.mute()
        else:
            b.volume(0.3)
        args = b.build_args()
        assert _value_after(args, "-c:v") == "copy"
        assert _value_after(args, "-c:a") == "aac"
        assert "-c" not in args


class TestConcat:
    def test_concat_block(self):
        args = (
            CommandBuilder()
            .concat("concat.txt")
            .stream_copy()
            .output("output.mp4")
            .build_args()
        )
        assert args[:6] == ("-f", "concat", "-safe", "0", "-i", "concat.txt")
        assert _value_after(args, "-c") == "copy"
        assert args[-2:] == ("-y", "output.mp4")

    def test_concat_drops_earlier_trim_and_filters(self):
        args = (
            CommandBuilder()
            .input("in.mp4")
            .trim(1.0, 2.0)
            .scale_crop(320, 180)
            .mute()
            .concat("list.txt")
            .stream_copy()
            .with_progress()
            .output("out.mp4")
            .build_args()
        )
        for flag in ("-ss", "-t", "-vf", "-af"):
            assert flag not in args
        assert args.count("-i") == 1
        assert _value_after(args, "-c") == "copy"

    def test_concat_drops_later_trim_and_filters(self):
        args = (
            CommandBuilder()
            .concat("list.txt")
            .input("in.mp4")
            .trim(1.0, 2.0)
            .scale_crop(320, 180)
            .volume(0.5)
            .stream_copy()
            .output("out.mp4")
            .build_args()
        )
        assert args == (
            "-f", "concat", "-safe", "0", "-i", "list.txt",
            "-c", "copy", "-avoid_negative_ts", "make_zero",
            "-y", "out.mp4",
        )

    def test_concat_is_order_independent(self):
        before = CommandBuilder().trim(1.0, 2.0).mute().concat("l.txt").stream_copy().build_args()
        after = CommandBuilder().concat("l.txt").trim(1.0, 2.0).mute().stream_copy().build_args()
        assert before == after

    def test_concat_spec_rejects_filters_directly(self):
        with pytest.raises(TransformSpecError, match="mute"):
            TransformSpec(concat_list="list.txt", muted=True)


class TestCropFillInvariant:
    def test_mismatched_dimensions_rejected(self):
        with pytest.raises(TransformSpecError, match="crop-to-fill"):
            CommandBuilder().scale_crop(320, 180).crop(100, 100).build()

    def test_missing_crop_rejected(self):
        with pytest.raises(TransformSpecError):
            TransformSpec(scale=Scale(320, 180, ScaleMode.CROP_FILL))
