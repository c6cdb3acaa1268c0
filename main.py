#!/usr/bin/env python3
"""
Recovered Code Sorter — Entry Point.

Usage:
    python main.py                          # sort ./recup_dir.* → ./recovered_code
    python main.py -s ./recup_dir.1 -o out  # explicit source / output
    python main.py -p myapp,billing         # route project files first
    python main.py --list-categories
"""

APP_VERSION = "1.0.0"

import os
import sys
import logging
import argparse

from codesort.categories import ALL_CATEGORIES
from codesort.config import (
    DEFAULT_DEST_DIR, DEFAULT_SOURCE_PATTERN, ConfigError, SortConfig,
    normalize_extensions, parse_list, parse_size,
)
from codesort.manager import SortManager, fmt_size

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(verbose: bool = False, log_file: str = ""):
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=handlers,
    )


def build_config(args) -> SortConfig:
    """argparse namespace → SortConfig. Raises ConfigError on malformed values."""
    if args.jobs is not None and args.jobs < 1:
        raise ConfigError(f"--jobs must be at least 1 (got {args.jobs})")
    return SortConfig(
        source_dirs=tuple(args.source) if args.source else (DEFAULT_SOURCE_PATTERN,),
        dest_dir=args.output_dir,
        shard_count=args.jobs or 0,
        skip_extensions=normalize_extensions(parse_list(args.skip_ext)),
        max_size=parse_size(args.size) if args.size else 0,
        min_size=parse_size(args.min_size) if args.min_size else 0,
        sample_bytes=args.sample_bytes,
        sample_lines=args.lines,
        project_keywords=parse_list(args.project),
        filter_types=parse_list(args.filter),
        rename_by_category=not args.no_rename,
        enable_fallback=not args.no_fallback,
        reconstruct_fragments=args.reconstruct,
        move=args.move,
        zip_output=args.zip,
    )


def list_categories():
    print(f"  {'Label':12s} {'Directory':12s} {'Ext':5s}  Description")
    print(f"  {'-'*12} {'-'*12} {'-'*5}  {'-'*30}")
    for cat in ALL_CATEGORIES:
        print(f"  {cat.label:12s} {cat.directory:12s} .{cat.extension:4s}  {cat.description}")


def cli_mode(args) -> int:
    print("=" * 60)
    print(f"  🗂  Recovered Code Sorter  v{APP_VERSION}")
    print("  Classify, deduplicate and file recovered source code")
    print("=" * 60)
    print()

    try:
        config = build_config(args)
        source_dirs = config.validate()
    except ConfigError as e:
        print(f"  ❌ {e}")
        return EXIT_CONFIG

    print(f"Sources:    {', '.join(source_dirs)}")
    print(f"Output:     {config.dest_dir}")
    print(f"Workers:    {config.shard_count or 'auto'}")
    if config.filter_types:
        print(f"Filter:     {', '.join(config.filter_types)}")
    if config.project_keywords:
        print(f"Projects:   {', '.join(config.project_keywords)}")
    if config.skip_extensions:
        print(f"Skip ext:   {', '.join(sorted(config.skip_extensions))}")
    if config.max_size or config.min_size:
        print(f"Size:       {fmt_size(config.min_size)} – "
              f"{fmt_size(config.max_size) if config.max_size else 'unlimited'}")
    print(f"Mode:       {'Move' if config.move else 'Copy'}"
          f"{' + fragment reconstruction' if config.reconstruct_fragments else ''}"
          f"{'' if config.enable_fallback else ' (no keyword fallback)'}")
    print()

    manager = SortManager(config)
    print("⚡ Sorting...")
    print()
    try:
        session = manager.run(show_progress=not args.no_progress)
    except ConfigError as e:
        print(f"  ❌ {e}")
        return EXIT_CONFIG
    except KeyboardInterrupt:
        manager.cancel()
        print("\n  Interrupted.")
        return EXIT_INTERRUPTED
    print()

    summary = session.summary
    print(f"{'=' * 60}")
    if session.was_cancelled:
        print(f"  Interrupted after {session.duration_human} — "
              f"{summary['processed']}/{summary['total']} file(s) processed")
    else:
        print(f"  Done in {session.duration_human} — Sorted {summary['processed']} file(s)")
    print(f"{'=' * 60}")

    categories = summary["categories"]
    if categories:
        print()
        print(f"  {'Category':16s} {'Count':>6s}")
        print(f"  {'-'*16} {'-'*6}")
        for label in sorted(categories):
            print(f"    {label:14s} {categories[label]:6d}")
        print()
    print(f"  Written:       {summary['written']}")
    print(f"  Duplicates:    {summary['duplicates']}")
    print(f"  Cross-copied:  {summary['propagated']} (of {summary['deferred']} deferred)")
    if summary["skipped"]:
        print(f"  Skipped:       {summary['skipped']}")
    if summary["failed"]:
        print(f"  ⚠️  Failed:     {summary['failed']}")
    if session.reconstructed:
        print(f"  Reconstructed: {len(session.reconstructed)} document(s)")
    print(f"\n  Saved to: {config.dest_dir}")
    print(f"  Log: {config.log_path}")
    if session.archive_path:
        print(f"  Archive: {session.archive_path}")
    print()
    return EXIT_INTERRUPTED if session.was_cancelled else EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sort recovered files (e.g. PhotoRec output) into per-language folders.")
    parser.add_argument("-s", "--source", action="append", default=[],
                        help=f"Source directory or glob, repeatable (default: {DEFAULT_SOURCE_PATTERN})")
    parser.add_argument("-o", "--output-dir", default=DEFAULT_DEST_DIR,
                        help=f"Output directory (default: {DEFAULT_DEST_DIR})")
    parser.add_argument("-j", "--jobs", type=int, default=None,
                        help="Worker threads (default: auto)")
    parser.add_argument("-p", "--project", default="",
                        help="Comma-separated project keywords, checked first")
    parser.add_argument("-f", "--filter", default="",
                        help="Comma-separated category labels to detect")
    parser.add_argument("-x", "--skip-ext", default="",
                        help="Comma-separated extensions to skip")
    parser.add_argument("--size", default="", help="Maximum file size (e.g. 10M)")
    parser.add_argument("--min-size", default="", help="Minimum file size (e.g. 100)")
    parser.add_argument("-l", "--lines", type=int, default=40,
                        help="Lines scored by the keyword fallback (default: 40)")
    parser.add_argument("--sample-bytes", type=int, default=16000,
                        help="Bytes sampled per file (default: 16000)")
    parser.add_argument("--no-fallback", action="store_true",
                        help="Disable weighted keyword fallback")
    parser.add_argument("--no-rename", action="store_true",
                        help="Keep original extensions")
    parser.add_argument("--reconstruct", action="store_true",
                        help="Merge split template/script/style fragments")
    parser.add_argument("--move", action="store_true",
                        help="Move files instead of copying")
    parser.add_argument("--zip", action="store_true",
                        help="Zip the output directory when done")
    parser.add_argument("--no-progress", action="store_true",
                        help="Hide the progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", default="", help="Also write logs to this file")
    parser.add_argument("--list-categories", action="store_true",
                        help="List categories and exit")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if args.list_categories:
        list_categories()
        return EXIT_OK
    return cli_mode(args)


if __name__ == "__main__":
    sys.exit(main())
