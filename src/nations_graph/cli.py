"""CLI for building the nation succession graph.

Commands:
    nations-graph build   Crawl Wikipedia from seed titles and write the graph
    nations-graph parse   Parse a local wikitext file and show what is extracted

Examples:
    # Build from two seeds
    nations-graph build --seed "Roman Republic" --seed "Kingdom of Prussia" -o graph.json

    # Read seeds from a file, stop after 200 pages
    nations-graph build --seeds-file seeds.txt --max-pages 200

    # Inspect a saved page
    nations-graph parse page.wiki --infobox
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
import traceback
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from nations_graph.config import load_config

# =============================================================================
# LOGGING SETUP
# =============================================================================

# Parent of every nations_graph.* module logger
logger = logging.getLogger("nations_graph")


def _setup_logging(log_dir: Path | None = None, verbose: bool = False) -> Path:
    """Send crawl logs to a per-run file and warnings to stderr.

    Every recorded node, synonym, error and fetch retry goes to the file,
    so a long crawl can be audited afterwards.

    Args:
        log_dir: Directory for the run's log file (default: ./logs/)
        verbose: Also show debug messages on the console

    Returns:
        Path to the log file
    """
    if log_dir is None:
        log_dir = Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    # One file per crawl run
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"nations_graph_{timestamp}.log"

    logger.setLevel(logging.DEBUG)

    # File: full per-title record of the crawl
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)

    # Console: retries and failures only, unless --verbose
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_formatter = logging.Formatter("%(levelname)s: %(message)s")
    console_handler.setFormatter(console_formatter)

    # Replace handlers from an earlier run in the same process
    logger.handlers.clear()
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info(f"Crawl log: {log_file}")
    return log_file


def _log_exception(msg: str, exc: Exception) -> None:
    """Report a CLI-level failure, keeping the traceback for the log file.

    Per-title failures never reach here; they are recorded in the graph.

    Args:
        msg: What the command was doing
        exc: The exception that was raised
    """
    logger.error(f"{msg}: {type(exc).__name__}: {exc}")
    logger.debug(f"Traceback:\n{traceback.format_exc()}")


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="nations-graph",
        description="Build a succession graph of former countries from Wikipedia infoboxes",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # =========================================================================
    # BUILD SUBCOMMAND
    # =========================================================================
    build_parser = subparsers.add_parser(
        "build",
        help="Crawl from seed titles and write the graph as JSON",
        description="Follow precursor/successor links from seed titles until no titles remain.",
    )
    build_parser.add_argument(
        "--seed",
        action="append",
        default=[],
        metavar="TITLE",
        help="Seed article title (repeatable)",
    )
    build_parser.add_argument(
        "--seeds-file",
        type=Path,
        default=None,
        help="File with one seed title per line (# starts a comment)",
    )
    build_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("graph.json"),
        help="Output JSON file (default: graph.json)",
    )
    build_parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Stop after fetching this many pages",
    )
    build_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent page fetches (default: from config)",
    )
    build_parser.add_argument(
        "--no-resolve-synonyms",
        action="store_true",
        help="Keep edge names as written instead of following redirects",
    )
    build_parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log files (default: ./logs/)",
    )
    build_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug output on the console",
    )

    # =========================================================================
    # PARSE SUBCOMMAND
    # =========================================================================
    parse_parser = subparsers.add_parser(
        "parse",
        help="Parse a local wikitext file",
        description="Show the redirect target, extracted infobox, or parse error of a file.",
    )
    parse_parser.add_argument(
        "file",
        type=Path,
        help="Wikitext file to parse",
    )
    parse_parser.add_argument(
        "--infobox",
        action="store_true",
        help="Print only the extracted infobox",
    )

    return parser


def _read_seeds(args: argparse.Namespace) -> list[str]:
    """Collect seed titles from --seed and --seeds-file, keeping order."""
    seeds: list[str] = list(args.seed)
    if args.seeds_file is not None:
        for line in args.seeds_file.read_text(encoding="utf-8").splitlines():
            title = line.split("#", maxsplit=1)[0].strip()
            if title:
                seeds.append(title)
    return list(dict.fromkeys(seeds))


def _run_build_process(args: argparse.Namespace) -> int:
    """Crawl from the seed titles and write the graph.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for error, 130 for interrupt)
    """
    from nations_graph.fetch import MediaWikiFetcher
    from nations_graph.graph import BuildingNationGraph, build_nation_graph, write_graph_json

    _setup_logging(args.log_dir, args.verbose)
    config = load_config()

    try:
        seeds = _read_seeds(args)
    except OSError as e:
        print(f"Error: Cannot read seeds file: {e}")
        return 1
    if not seeds:
        print("Error: No seed titles given (use --seed or --seeds-file)")
        return 1

    max_concurrent = args.concurrency if args.concurrency is not None else config.max_concurrent
    output_path: Path = args.output

    print("Build Nation Graph")
    print("=" * 40)
    print(f"Seeds:       {len(seeds)}")
    print(f"API:         {config.api_url}")
    print(f"Concurrency: {max_concurrent}")
    if args.max_pages is not None:
        print(f"Max pages:   {args.max_pages}")
    print(f"Output:      {output_path}")
    print()

    def report_progress(done: int, graph: BuildingNationGraph) -> None:
        if done % 25 == 0:
            stats = graph.stats()
            print(
                f"  {done} pages | {stats['nations']} nations, "
                f"{stats['subdivisions']} subdivisions, {stats['errors']} errors, "
                f"{stats['pending']} pending"
            )

    async def crawl() -> BuildingNationGraph:
        async with MediaWikiFetcher(config) as fetcher:
            return await build_nation_graph(
                seeds,
                fetcher,
                max_concurrent=max_concurrent,
                max_pages=args.max_pages,
                max_depth=config.max_nesting_depth,
                progress_callback=report_progress,
            )

    start_time = time.perf_counter()
    try:
        graph = asyncio.run(crawl())
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130

    elapsed = time.perf_counter() - start_time

    try:
        write_graph_json(graph, output_path, resolve_synonyms=not args.no_resolve_synonyms)
    except OSError as e:
        _log_exception(f"Failed to write {output_path}", e)
        print(f"Error: Cannot write output: {e}")
        return 1

    stats = graph.stats()
    print()
    print("=" * 40)
    print(f"Nations:      {stats['nations']}")
    print(f"Subdivisions: {stats['subdivisions']}")
    print(f"Synonyms:     {stats['synonyms']}")
    print(f"Errors:       {stats['errors']}")
    print(f"Pending:      {stats['pending']}")
    print(f"Time:         {elapsed:.1f}s")
    return 0


def _run_parse_process(args: argparse.Namespace) -> int:
    """Parse a local wikitext file and print what the traversal would record.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    from nations_graph.errors import HistoryError
    from nations_graph.wiki import extract_infobox, parse_wiki, redirect_target

    input_file: Path = args.file
    if not input_file.exists():
        print(f"Error: File does not exist: {input_file}")
        return 1

    config = load_config()
    text = input_file.read_text(encoding="utf-8")

    try:
        document = parse_wiki(text, config.max_nesting_depth)
        target = redirect_target(document)
        if target is not None:
            print(f"Redirect: {target}")
            return 0
        infobox = extract_infobox(document)
    except HistoryError as e:
        print(f"{type(e).__name__}: {e}")
        return 0

    if not args.infobox:
        print(f"Type: {type(infobox).__name__}")
    print(json.dumps(asdict(infobox), ensure_ascii=False, indent=2))
    return 0


def main() -> None:
    """Run the nations-graph command line."""
    parser = _create_parser()
    args = parser.parse_args()

    if args.command == "build":
        exit_code = _run_build_process(args)
        sys.exit(exit_code)
    elif args.command == "parse":
        exit_code = _run_parse_process(args)
        sys.exit(exit_code)
    else:
        parser.print_help()
        sys.exit(0 if args.command is None else 1)


if __name__ == "__main__":
    main()
