"""
Command-line interface for plumbline.

Provides commands for detecting vertical lines in an image and for writing
a default configuration file.
"""

import argparse
import os
import sys

from plumbline.config import load_config, save_default_config
from plumbline.errors import NoCandidates
from plumbline.models import Panorama, Projection, SrcImage
from plumbline.tracer import configure_tracer, get_tracer


def main(argv=None):
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="plumbline: find vertical lines and turn them into control points",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    detect_parser = subparsers.add_parser("detect", help="Detect vertical lines in an image")
    detect_parser.add_argument("--image", "-i", required=True, help="Input image file")
    detect_parser.add_argument(
        "--projection",
        default=Projection.RECTILINEAR.value,
        choices=[p.value for p in Projection],
        help="Lens projection of the image",
    )
    detect_parser.add_argument("--hfov", type=float, required=True, help="Horizontal field of view in degrees")
    detect_parser.add_argument("--roll", type=float, default=0.0, help="Roll angle in degrees")
    detect_parser.add_argument("--crop-factor", type=float, default=1.0, help="Sensor crop factor")
    detect_parser.add_argument(
        "--focal-length",
        type=float,
        default=0.0,
        help="Focal length in mm (0 derives it from the field of view)",
    )
    detect_parser.add_argument("--lines", "-n", type=int, default=5, help="Maximum number of control points")
    detect_parser.add_argument("--out", "-o", default=None, help="Write control points to this JSON file")
    detect_parser.add_argument("--config", "-c", default=None, help="Path to YAML configuration file")
    detect_parser.add_argument("--debug", default=None, help="Directory for debug artifacts")
    detect_parser.add_argument(
        "--require-lines",
        action="store_true",
        help="Exit with status 1 when no vertical line is found",
    )
    detect_parser.add_argument("--trace", action="store_true", help="Enable runtime tracing")
    detect_parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    detect_parser.add_argument("--trace-file", default=None, help="Path to write trace logs")
    detect_parser.add_argument("--trace-json", action="store_true", help="Enable JSON trace output")

    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="plumbline_config.yaml",
        help="Output path for config file",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "detect":
        return handle_detect(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def handle_detect(args):
    """Handle the detect command."""
    config = load_config(args.config)
    configure_tracer(
        enabled=args.trace or config.tracing.enabled,
        level=args.trace_level if args.trace else config.tracing.level,
        file_path=args.trace_file or config.tracing.file_path,
        json_output=args.trace_json or config.tracing.json_output,
    )

    tracer = get_tracer()

    try:
        from plumbline.io.load_image import load_image
        from plumbline.io.save_artifacts import DebugArtifactWriter, save_json
        from plumbline.pipeline import get_vertical_lines

        with tracer.span("cli_detect", module="cli"):
            image, mask = load_image(args.image)
            height, width = image.shape[:2]

            pano = Panorama()
            img_nr = pano.add_image(SrcImage(
                width=width,
                height=height,
                projection=Projection(args.projection),
                hfov=args.hfov,
                roll=args.roll,
                crop_factor=args.crop_factor,
                exif_focal_length=args.focal_length,
                has_masks=mask is not None,
            ))

            debug_writer = None
            if args.debug:
                debug_writer = DebugArtifactWriter(
                    args.debug,
                    os.path.splitext(os.path.basename(args.image))[0],
                    enabled=True,
                    max_edge=config.debug.max_edge_scale,
                )

            cps = get_vertical_lines(
                pano, img_nr, image, mask,
                nr_lines=args.lines,
                config=config,
                debug_writer=debug_writer,
            )

            if args.require_lines and not cps:
                raise NoCandidates(f"No vertical lines found in {args.image}")

            if args.out:
                save_json(cps, args.out)

        print(f"Found {len(cps)} vertical line(s) in {args.image}")
        for cp in cps:
            print(f"  ({cp.x1:.1f}, {cp.y1:.1f}) -> ({cp.x2:.1f}, {cp.y2:.1f})")
        if args.out:
            print(f"Control points saved to: {args.out}")

        return 0

    except Exception as e:
        tracer.event(f"Detection failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
