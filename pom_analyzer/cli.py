"""Command-line interface for pom-analyzer."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pom_analyzer.analyzer import analyze_file
from pom_analyzer.config import AnalyzerConfig, ConfigError, load_config
from pom_analyzer.extractor import ScriptParseError
from pom_analyzer.locators import assess_selector, classify_selector
from pom_analyzer.models import AnalysisResult, selector_to_dict

logger = logging.getLogger(__name__)

COMMANDS = ("analyze", "classify")


def setup_logging(verbose: bool = False):
    """Configure logging to stderr."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="pom-analyzer",
        description="Analyze Playwright test scripts into a page object model",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # analyze subcommand
    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze one or more test scripts (default)",
    )
    analyze_parser.add_argument(
        "scripts",
        nargs="+",
        help="Paths to Playwright test scripts",
    )
    analyze_parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="JSON or YAML configuration file",
    )
    analyze_parser.add_argument(
        "--output-dir",
        "-o",
        default=None,
        help="Write one <script>.pom.json per script instead of printing",
    )
    analyze_parser.add_argument(
        "--compact",
        action="store_true",
        help="Print JSON without indentation",
    )
    analyze_parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log pipeline progress to stderr",
    )

    # classify subcommand
    classify_parser = subparsers.add_parser(
        "classify",
        help="Classify and score a single selector",
    )
    classify_parser.add_argument(
        "selector",
        help="Selector expression, e.g. \"getByRole('button', { name: 'Save' })\"",
    )
    classify_parser.add_argument(
        "--verb",
        default=None,
        help="Action performed on the element, used as a role hint (e.g. fill)",
    )

    return parser


def parse_args(args: list[str]) -> argparse.Namespace:
    """Parse command-line arguments; a bare script path means analyze."""
    parser = create_parser()

    if args and not args[0].startswith("-") and args[0] not in COMMANDS:
        args = ["analyze"] + args

    return parser.parse_args(args)


async def _analyze_one(
    path: str, config: AnalyzerConfig
) -> tuple[str, AnalysisResult | None, str | None]:
    """Analyze one script in a worker thread.

    Returns:
        Tuple of (path, result or None, error message or None)
    """
    try:
        result = await asyncio.to_thread(analyze_file, Path(path), config)
        return path, result, None
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Could not read {path}: {e}")
        return path, None, f"could not read script: {e}"
    except ScriptParseError as e:
        logger.error(f"Analysis of {path} failed during {e.phase}: {e}")
        return path, None, str(e)


async def run_analyze(
    scripts: list[str],
    config_path: str | None = None,
    output_dir: str | None = None,
    compact: bool = False,
) -> int:
    """Run the analyze command.

    Args:
        scripts: Script paths; analyzed concurrently
        config_path: Optional configuration file
        output_dir: Directory for per-script output files
        compact: Print JSON without indentation

    Returns:
        Exit code (0 success, 1 a script failed, 2 invalid configuration)
    """
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logger.info(f"Analyzing {len(scripts)} script(s)")
    outcomes = await asyncio.gather(*(_analyze_one(path, config) for path in scripts))
    indent = None if compact else 2

    exit_code = 0
    documents = {}
    for path, result, error in outcomes:
        if result is None:
            print(f"Error: {path}: {error}", file=sys.stderr)
            exit_code = 1
            continue
        if output_dir:
            target_dir = Path(output_dir)
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / f"{Path(path).stem}.pom.json"
            target.write_text(result.to_json(indent=indent), encoding="utf-8")
            print(f"Analysis written to: {target}", file=sys.stderr)
        else:
            documents[path] = result.to_dict()

    if documents:
        if len(scripts) == 1:
            print(json.dumps(documents[scripts[0]], indent=indent))
        else:
            print(json.dumps(documents, indent=indent))
    return exit_code


async def run_classify(selector: str, verb: str | None = None) -> int:
    """Run the classify command."""
    scored = assess_selector(classify_selector(selector), verb=verb)
    logger.info(f"{scored.raw!r} classified as {scored.strategy}")
    print(json.dumps(selector_to_dict(scored), indent=2))
    return 0


async def run_cli(args: list[str]) -> int:
    """Run the CLI with the given arguments.

    Args:
        args: Command-line arguments (without program name)

    Returns:
        Exit code (0 for success, non-zero for fatal errors)
    """
    try:
        parsed = parse_args(args)
    except SystemExit as e:
        return e.code if e.code else 1

    setup_logging(getattr(parsed, "verbose", False))

    if parsed.command is None:
        # No command and no args - show help
        create_parser().print_help(sys.stderr)
        return 1

    if parsed.command == "analyze":
        return await run_analyze(
            parsed.scripts, parsed.config, parsed.output_dir, parsed.compact
        )
    elif parsed.command == "classify":
        return await run_classify(parsed.selector, parsed.verb)

    return 1


def main():
    """Entry point for the CLI."""
    exit_code = asyncio.run(run_cli(sys.argv[1:]))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
