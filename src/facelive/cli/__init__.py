"""Command-line interface for facelive."""

import argparse
import logging
import sys


def _add_trace_args(parser):
    """Add --trace, --trace-output args to a parser."""
    parser.add_argument("--trace", choices=["off", "minimal", "normal", "verbose"], default="off")
    parser.add_argument("--trace-output", type=str, help="Output file for trace records (JSONL)")


def _add_config_args(parser):
    parser.add_argument(
        "--config", type=str, metavar="PATH",
        help="Path to liveness config YAML file"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="facelive",
        description="facelive - Active liveness challenges",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  facelive info                               # Challenge table
  facelive info --lang ne                     # Nepali instructions
  facelive replay session.jsonl               # Replay a recorded trace
  facelive replay session.jsonl --trace minimal
  facelive run --camera 0                     # Live session from webcam
  facelive run video.mp4 --record out.jsonl   # Run on a file, record observations
""",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show the challenge sequence and thresholds",
    )
    info_parser.add_argument("--lang", choices=["en", "ne"], default="en")
    _add_config_args(info_parser)

    # replay command
    replay_parser = subparsers.add_parser(
        "replay",
        help="Replay a recorded observation trace through the engine",
    )
    replay_parser.add_argument("path", help="Path to observation trace (JSONL)")
    replay_parser.add_argument(
        "--no-capture", action="store_true",
        help="Do not simulate the still capture on reaching face_capture",
    )
    replay_parser.add_argument("--report", type=str, help="Save session result to JSON file")
    _add_config_args(replay_parser)
    _add_trace_args(replay_parser)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run a live session on a camera or video file",
    )
    run_parser.add_argument("source", nargs="?", help="Path to video file")
    run_parser.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    run_parser.add_argument(
        "--mirror", action="store_true",
        help="Flip the yaw sign for mirrored (selfie) sources",
    )
    run_parser.add_argument("--record", type=str, help="Record observations to JSONL")
    run_parser.add_argument(
        "--capture-output", type=str, default="face_capture.jpg",
        help="Where to write the captured face (default: face_capture.jpg)",
    )
    run_parser.add_argument("--report", type=str, help="Save session result to JSON file")
    _add_config_args(run_parser)
    _add_trace_args(run_parser)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    from facelive.cli import commands

    if args.command == "info":
        return commands.run_info(args)
    elif args.command == "replay":
        return commands.run_replay(args)
    elif args.command == "run":
        return commands.run_live(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
