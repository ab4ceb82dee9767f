"""
Command-line interface for sketchfrag.

Loads strokes from a JSON file, fragments them and prints the result.
"""

import argparse
import json
import sys
from typing import List

from pydantic import TypeAdapter, ValidationError

from sketchfrag.config import load_config, save_default_config
from sketchfrag.errors import TemplateError
from sketchfrag.models import Stroke
from sketchfrag.tracer import configure_tracer, get_tracer


def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        description="sketchfrag: split pen strokes into lines and elliptical arcs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Fragment command
    frag_parser = subparsers.add_parser("fragment", help="Fragment strokes from a JSON file")
    frag_parser.add_argument(
        "--strokes", "-s",
        required=True,
        help="JSON file with a list of strokes ([[x, y, t], ...] or {\"points\": ...})",
    )
    mode = frag_parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--template", "-t",
        default=None,
        help="Exact template string, e.g. LLE",
    )
    mode.add_argument(
        "--lines",
        type=int,
        default=None,
        help="Number of line segments (order chosen by the search)",
    )
    frag_parser.add_argument(
        "--ellipses",
        type=int,
        default=0,
        help="Number of elliptical arcs, used with --lines",
    )
    frag_parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    frag_parser.add_argument(
        "--out", "-o",
        default=None,
        help="Write the fragmentation as JSON to this path",
    )
    frag_parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    frag_parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    frag_parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    frag_parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )

    # Init config command
    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="sketchfrag_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "fragment":
        return handle_fragment(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def load_strokes(path):
    """
    Read strokes from a JSON file.

    Each entry is either a list of [x, y] / [x, y, t] rows or an object
    accepted by the Stroke model.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("stroke file must hold a JSON list of strokes")

    entries = [{"points": item} if isinstance(item, list) else item for item in raw]
    return TypeAdapter(List[Stroke]).validate_python(entries)


def handle_fragment(args):
    """Handle the fragment command."""
    config = load_config(args.config)

    configure_tracer(
        enabled=args.trace or config.tracing.enabled,
        level=args.trace_level if args.trace else config.tracing.level,
        file_path=args.trace_file or config.tracing.file_path,
        json_output=args.trace_json or config.tracing.json_output,
    )

    tracer = get_tracer()

    try:
        from sketchfrag.fragmentation.optimizer import fragment

        strokes = load_strokes(args.strokes)

        with tracer.span("cli_fragment", module="cli"):
            if args.template is not None:
                fit_data = fragment(strokes, args.template, config=config)
            else:
                fit_data = fragment(strokes, args.lines, args.ellipses, config=config)

    except (OSError, ValueError, ValidationError, TemplateError) as e:
        tracer.event(f"Fragmentation failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1
    finally:
        tracer.config.close()

    if fit_data is None:
        print("\nNo fragmentation found for the requested template.", file=sys.stderr)
        return 2

    print(fit_data.summary())

    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(fit_data.model_dump_json(indent=2))
        print(f"\nFragmentation saved to: {args.out}")

    return 0


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
