#!/usr/bin/env python3
"""CLI entrypoint: mirror lab progress from a finished account into an unfinished one."""
import argparse
import asyncio
import dataclasses
import sys
import traceback
from pathlib import Path

from labmirror.config import load_settings
from labmirror.errors import ConfigError, LabMirrorError
from labmirror.metrics import write_results
from labmirror.runner import list_labs, run_mirror, setup_logging

OUT_DIR = Path("out")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Copy lab solutions from a source account into a target account")
    parser.add_argument("--headful", action="store_const", const=False, dest="headless", help="Run browser visible")
    parser.add_argument("--headless", action="store_const", const=True, dest="headless", help="Run browser hidden")
    parser.add_argument("--env-file", type=Path, default=None, help="Path to .env (default: ./.env)")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.json (default: ./config.json)")
    parser.add_argument("--out-dir", type=Path, default=OUT_DIR, help="Output directory for debug.log")
    parser.add_argument("--course", type=str, default=None, help="Course name to open (overrides EDUCODER_COURSE_NAME)")
    parser.add_argument("--course-url", type=str, default=None, help="Direct lab-list URL used when returning to the list")
    parser.add_argument("--list-only", action="store_true", help="Only list the target account's labs; copy nothing")
    parser.add_argument("--results", type=Path, default=None, metavar="PATH", help="Write the run summary as JSON")
    parser.add_argument("--no-keep-open", action="store_false", dest="keep_open", help="Close the browser when done")
    parser.add_argument(
        "--strict-divergence",
        action="store_true",
        help="End a lab as soon as the source cannot follow the target to the next level",
    )
    return parser


def main() -> int:
    args = build_parser().parse_args()
    setup_logging(args.out_dir)

    try:
        settings = load_settings(env_file=args.env_file, config_file=args.config)
        overrides = {}
        if args.headless is not None:
            overrides["headless"] = args.headless
        if args.course:
            overrides["course_name"] = args.course
        if args.course_url:
            overrides["course_url"] = args.course_url
        if args.strict_divergence:
            overrides["tolerate_divergence"] = False
        settings = dataclasses.replace(settings, **overrides)
        if not args.list_only:
            settings.require_dual()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        if args.list_only:
            listing = asyncio.run(list_labs(settings))
            print(
                f"Labs: {len(listing.entries)} total, {len(listing.completed)} completed, "
                f"{len(listing.incomplete)} incomplete",
                file=sys.stderr,
            )
            return 0
        summary = asyncio.run(run_mirror(settings, keep_open=args.keep_open))
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        return 1
    except LabMirrorError as e:
        print(f"Run failed: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Run failed: {e}", file=sys.stderr)
        traceback.print_exc(file=sys.stderr)
        return 1

    if args.results:
        write_results(args.results, summary)
        print(f"Wrote {args.results}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
