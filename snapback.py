#!/usr/bin/env python3
"""
Snapback - Snapchat Memories restorer

Reattaches capture dates and locations from memories_history.json to the
media files of a Snapchat export, composites overlays back onto their
originals, and collects the results in one deduplicated directory.

Usage:
    snapback.py [-m metadata.json] [-i input_dir] [-o output_dir] [-w N]
                [--overlay-mode ignore|copy|overwrite] [--keep-input] [-v]
"""

import argparse
import sys
from pathlib import Path

# Add current directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from common.env_loader import load_dotenv_file
from common.errors import FatalError
from common.logging_config import default_log_file, setup_logging
from common.processor_config import PipelineConfig, OverlayMode
from processors.snapchat_memories.processor import run_pipeline

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapback",
        description="Restore dates, locations and overlays to a Snapchat Memories export.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export unpacked in the current directory (json/ + memories*/)
  %(prog)s

  # Explicit paths, keep the export untouched, 4 workers
  %(prog)s -m export/json/memories_history.json -i export -o restored --keep-input -w 4

  # Keep overlays as separate composited copies
  %(prog)s --overlay-mode copy

Settings may also come from SNAPBACK_* environment variables or a .env file.
Command-line flags take precedence over both.
        """,
    )
    parser.add_argument(
        "--metadata",
        "-m",
        help="Path to memories_history.json (default: ./json/memories_history.json)",
    )
    parser.add_argument(
        "--input",
        "-i",
        help="Directory containing the memories* media directories (default: .)",
    )
    parser.add_argument(
        "--output",
        "-o",
        help="Output directory (default: ./processed_media)",
    )
    parser.add_argument(
        "--workers",
        "-w",
        type=int,
        help="Number of parallel workers (default: 1)",
    )
    parser.add_argument(
        "--prefix",
        help="Name prefix of the media directories (default: memories)",
    )
    parser.add_argument(
        "--overlay-mode",
        choices=[mode.value for mode in OverlayMode],
        help="How overlays are applied (default: overwrite)",
    )
    parser.add_argument(
        "--keep-input",
        action="store_true",
        default=None,
        help="Work on copies so the input directory is never modified",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (also written to logs/)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to .env file to load (default: ./.env if present)",
    )
    return parser


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Layer command-line flags over the environment."""
    return PipelineConfig.from_env().with_overrides(
        metadata_file=args.metadata,
        input_dir=args.input,
        output_dir=args.output,
        workers=args.workers,
        media_prefix=args.prefix,
        overlay_mode=args.overlay_mode,
        keep_input=args.keep_input,
        verbose=args.verbose or None,
    )


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    try:
        # Load .env early (CLI > env > .env precedence is enforced by build_config)
        load_dotenv_file(args.env_file)

        log_file = default_log_file() if args.verbose else None
        setup_logging(verbose=args.verbose, log_file=log_file)

        try:
            config = build_config(args)
            summary = run_pipeline(config)
        except FatalError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return EXIT_FATAL
    except KeyboardInterrupt:
        print()
        print("Interrupted before processing started")
        return EXIT_INTERRUPTED

    if summary.interrupted:
        print("\nProcessing interrupted by user; remaining items were skipped")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
