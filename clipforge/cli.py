"""Thin CLI entry point — builds an export job and calls the engine."""

import argparse
import sys
from pathlib import Path

from clipforge import ffutil
from clipforge.engine import export, trim_clip
from clipforge.errors import ClipForgeError
from clipforge.logging_utils import setup_logging
from clipforge.manifest import ClipConfig, EncodeConfig, Manifest, load_manifest
from clipforge.models import Resolution


def parse_clip(value: str) -> ClipConfig:
    """Parse ``PATH:START:END`` (seconds)."""
    try:
        path, start, end = value.rsplit(":", 2)
        return ClipConfig(path=Path(path), trim_start=float(start), trim_end=float(end))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected PATH:START:END, got {value!r}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="clipforge",
        description="ClipForge — trim, scale and concatenate clips with ffmpeg.",
    )
    parser.add_argument("--ffmpeg", type=str, default=None, help="Path to the ffmpeg binary")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (e.g. INFO)")
    sub = parser.add_subparsers(dest="command")

    exp = sub.add_parser("export", help="Export one or more clips to a single video")
    exp.add_argument("clips", nargs="*", type=parse_clip, help="Clips as PATH:START:END")
    exp.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    exp.add_argument("--output", "-o", type=Path, help="Output file path")
    exp.add_argument(
        "--resolution", "-r",
        choices=[r.value for r in Resolution],
        default="720p",
        help="Output resolution",
    )
    exp.add_argument("--preset", type=str, default="medium", help="x264 preset")
    exp.add_argument("--crf", type=int, default=23, help="x264 constant rate factor")
    exp.add_argument("--mute", action="store_true", help="Mute every clip")
    exp.add_argument("--volume", type=float, default=None, help="Volume for every clip (0.0-1.0)")

    trim = sub.add_parser("trim", help="Cut a range out of a video without re-encoding")
    trim.add_argument("video", type=Path, help="Input video file")
    trim.add_argument("start", type=float, help="Start time (seconds)")
    trim.add_argument("end", type=float, help="End time (seconds)")
    trim.add_argument("--output", "-o", type=Path, help="Output file path")

    sub.add_parser("version", help="Show the ffmpeg version in use")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from clipforge.web import create_app
        app = create_app(ffmpeg_path=args.ffmpeg)
        print(f"ClipForge API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    try:
        ffmpeg = ffutil.locate_ffmpeg(args.ffmpeg)

        if args.command == "version":
            print(ffutil.version(ffmpeg))
            return

        if args.command == "trim":
            output = args.output or args.video.with_stem(args.video.stem + "_trimmed")
            trim_clip(args.video, output, args.start, args.end, ffmpeg=ffmpeg)
            print(f"Done! Output: {output}")
            return

        if args.manifest:
            m = load_manifest(args.manifest)
        elif args.clips:
            if args.output is None:
                print("Error: --output is required when clips are given.", file=sys.stderr)
                sys.exit(1)
            for c in args.clips:
                c.muted = args.mute
                c.volume = args.volume
            m = Manifest(
                output=args.output,
                clips=args.clips,
                resolution=args.resolution,
                encode=EncodeConfig(preset=args.preset, crf=args.crf),
            )
        else:
            print("Error: provide either CLIPS or --manifest.", file=sys.stderr)
            sys.exit(1)

        def on_progress(percent: int) -> None:
            print(f"\r  [{percent:3d}%] exporting", end="", flush=True)

        result = export(m.to_job(), ffmpeg=ffmpeg, on_progress=on_progress)
    except (ClipForgeError, ValueError, OSError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Clips: {result.clip_count}, duration: {result.duration:.1f}s")


if __name__ == "__main__":
    main()
