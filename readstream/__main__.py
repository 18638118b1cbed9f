"""CLI entry point: python -m readstream PATH --base-url URL [options]"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from readstream.exceptions import ConfigError
from readstream.extractors.markdown import format_markdown_document
from readstream.profiles import load_profile_data
from readstream.query import extract
from readstream.settings import build_options

if TYPE_CHECKING:
    from readstream.items import ExtractionResult

logger = logging.getLogger(__name__)

EXIT_NO_CONTENT = 1
EXIT_CONFIG_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="readstream",
        description=(
            "Extract the main readable content of an HTML document as Markdown.\n"
            "Reads a file (or '-' for stdin) and prints the result to stdout."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("path", metavar="PATH",
                        help="HTML file to read, or '-' for stdin")
    parser.add_argument("--base-url", required=True, metavar="URL",
                        help="URL the document was fetched from (resolves relative links)")
    parser.add_argument("--json", action="store_true", default=False,
                        help="Print the full result as JSON instead of Markdown")
    parser.add_argument("--with-header", action="store_true", default=False,
                        help="Prefix the Markdown with title, byline and date")
    parser.add_argument("--char-threshold", type=int, default=None, metavar="N",
                        help="Minimum retained text length (default: 500)")
    parser.add_argument("--top-candidates", type=int, default=None, metavar="N",
                        help="Size of the candidate shortlist (default: 5)")
    parser.add_argument("--max-elems", type=int, default=None, metavar="N",
                        help="Stop recording elements after N (default: 0 = unlimited)")
    parser.add_argument("--keep-classes", action="store_true", default=None,
                        help="Keep every class attribute in the HTML output")
    parser.add_argument("--profile", default=None, metavar="YAML",
                        help="YAML options profile with default and per-domain settings")
    parser.add_argument("--show-metadata", action="store_true", default=False,
                        help="Print a metadata table to stderr")
    parser.add_argument("--debug", action="store_true", default=None,
                        help="Trace builder and scorer decisions (implies --log-level DEBUG)")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        metavar="{DEBUG,INFO,WARNING,ERROR}",
                        help="Logging level (default: WARNING)")
    return parser


def _read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc


def _cli_options(args: argparse.Namespace) -> dict[str, object]:
    flags = {
        "char_threshold": args.char_threshold,
        "nb_top_candidates": args.top_candidates,
        "max_elems_to_parse": args.max_elems,
        "keep_classes": args.keep_classes,
        "debug": args.debug,
    }
    return {k: v for k, v in flags.items() if v is not None}


def _print_metadata(result: ExtractionResult) -> None:
    try:
        from rich import box
        from rich.console import Console
        from rich.table import Table

        console = Console(stderr=True)
        tbl = Table(title="[bold cyan]Document Metadata[/bold cyan]", box=box.SIMPLE_HEAVY)
        tbl.add_column("Field", style="bold", no_wrap=True)
        tbl.add_column("Value", style="green", max_width=80)
        meta = result.metadata
        for name in ("title", "byline", "site_name", "published_time", "language", "direction", "excerpt"):
            tbl.add_row(name, getattr(meta, name) or "-")
        tbl.add_row("words", str(result.word_count))
        tbl.add_row("text_length", str(result.text_length))
        console.print(tbl)
    except Exception as exc:
        logger.debug("Rich metadata display failed: %s", exc)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level="DEBUG" if args.debug else args.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = load_profile_data(args.profile, args.base_url) if args.profile else {}
        settings.update(_cli_options(args))
        options = build_options(settings)
        html = _read_input(args.path)
        result = extract(html, args.base_url, options)
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if result is None:
        print("No readable content found.", file=sys.stderr)
        return EXIT_NO_CONTENT

    if args.show_metadata:
        _print_metadata(result)

    if args.json:
        payload = result.model_dump()
        payload["word_count"] = result.word_count
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    elif args.with_header:
        print(format_markdown_document(result.metadata, result.markdown))
    else:
        print(result.markdown)
    return 0


if __name__ == "__main__":
    sys.exit(main())
