"""Command-line interface for docln-epub."""

import argparse
import logging
import sys
from pathlib import Path

from docln_epub.clients import DEFAULT_BASE_URL, RateLimitedFetcher
from docln_epub.exceptions import CrawlAbortedError
from docln_epub.pipeline import CrawlOrchestrator

DEFAULT_OUTPUT_DIR = Path(".")


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value}")
    return number


def non_negative_float(value: str) -> float:
    """argparse type for durations that may be zero."""
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value}")
    return number


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def fetch_novel(args: argparse.Namespace) -> int:
    """Execute the fetch command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    if not args.novel_id.isdigit():
        logger.error(f"Novel ID must be numeric: {args.novel_id}")
        return 1

    output_dir = args.output
    output_dir.mkdir(parents=True, exist_ok=True)

    config = {
        "base_url": args.base_url,
        "timeout": args.timeout,
        "min_interval": args.min_interval,
    }

    try:
        with RateLimitedFetcher(config) as fetcher:
            orchestrator = CrawlOrchestrator(
                fetcher,
                output_dir,
                retry_attempts=args.retries,
                create_archive=not args.no_archive,
                keep_directory=args.keep_dir or args.no_archive,
            )
            result = orchestrator.run(args.category, args.novel_id)
    except CrawlAbortedError as e:
        logger.error(f"Failed to package novel: {e}")
        return 1

    logger.info(f"Packaged: {result.novel.title}")
    logger.info(f"  Volumes: {len(result.novel.volumes)}")
    logger.info(f"  Chapters: {result.summary.chapters_ok} ok, {result.summary.chapters_failed} failed")
    logger.info(f"  Images: {result.summary.assets_ok} ok, {result.summary.assets_failed} failed")
    if result.package.archive_path:
        logger.info(f"  Output: {result.package.archive_path}")
    else:
        logger.info(f"  Output: {result.package.root}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        prog="docln-epub",
        description="Download light novels from docln.net as EPUB files",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch a novel and package it as an EPUB",
        description="Fetch every volume and chapter of a novel, download its illustrations and assemble an EPUB package.",
    )
    fetch_parser.add_argument(
        "novel_id",
        help="Novel ID as shown in the novel's URL",
    )
    fetch_parser.add_argument(
        "--category",
        choices=["original", "translated"],
        default="original",
        help="Site section the novel belongs to (default: original)",
    )
    fetch_parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory for the package and .epub file (default: current directory)",
    )
    fetch_parser.add_argument(
        "--base-url",
        type=str,
        default=DEFAULT_BASE_URL,
        help=f"Site base URL (default: {DEFAULT_BASE_URL})",
    )
    fetch_parser.add_argument(
        "--min-interval",
        type=non_negative_float,
        default=0.5,
        help="Minimum seconds between request starts (default: 0.5)",
    )
    fetch_parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )
    fetch_parser.add_argument(
        "--retries",
        type=positive_int,
        default=3,
        help="Attempts per page for timeouts and connection errors (default: 3)",
    )
    fetch_parser.add_argument(
        "--no-archive",
        action="store_true",
        help="Leave the package as a directory instead of writing an .epub",
    )
    fetch_parser.add_argument(
        "--keep-dir",
        action="store_true",
        help="Keep the package directory after writing the .epub",
    )
    fetch_parser.set_defaults(func=fetch_novel)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
