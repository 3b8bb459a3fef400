"""CLI entry point for docexport.

Usage::

    python main.py document.json [-o output.docx] [--pdf-definition out.json] \\
        [--template export-template.yaml] [--theme overlay.yaml] \\
        [--title "Contrat"] [--number "2024-001"] [--author "Me X"] \\
        [--numbering-style legal|numeric] [--start-level 1] [--max-level 4] \\
        [--letterhead profile.yaml] [--page-number-footer] \\
        [--no-numbering] [--no-toc] [-v]
"""

import argparse
import json
import logging
import sys
from collections import Counter
from pathlib import Path

from docexport.exporter import (
    build_pdf_definition,
    export_docx,
    preview_pdf_definition,
    validate_document,
)
from docexport.models import DocumentMetadata, DocumentNode
from docexport.numbering import NumberingConfig, NumberingStyle
from docexport.template import load_letterhead, load_template

logger = logging.getLogger("docexport")


def _build_argument_parser() -> argparse.ArgumentParser:
    """Create and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docexport",
        description="Export an editor document tree to DOCX and a PDF document definition.",
    )

    parser.add_argument(
        "input",
        help="Path to the document tree (.json).",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Path to the output .docx file. Defaults to {input_stem}.docx.",
    )
    parser.add_argument(
        "--pdf-definition",
        default=None,
        help=(
            "Also write the PDF document definition as JSON to this path "
            "(header and footer previewed for page 1 of 1)."
        ),
    )
    parser.add_argument(
        "--template",
        default=None,
        help="Path to the export template YAML. Defaults to the bundled template.",
    )
    parser.add_argument(
        "--theme",
        default=None,
        help="Path to a template overlay YAML merged on top of the template.",
    )
    parser.add_argument(
        "--letterhead",
        default=None,
        help="Path to a letterhead YAML printed instead of the template header.",
    )
    parser.add_argument(
        "--page-number-footer",
        action="store_true",
        default=False,
        help="Print 'Page X / Y' when the template has no footer.",
    )

    # Document values
    parser.add_argument("--title", default="", help="Value of {{document.title}}.")
    parser.add_argument("--number", default="", help="Value of {{document.numero}}.")
    parser.add_argument("--author", default="", help="Document author.")

    # Numbering
    parser.add_argument(
        "--numbering-style",
        default="legal",
        choices=[style.value for style in NumberingStyle],
        help="Heading numbering style.",
    )
    parser.add_argument("--start-level", type=int, default=1,
                        help="First numbered heading level (1-6).")
    parser.add_argument("--max-level", type=int, default=4,
                        help="Number of numbered heading levels (1-6).")
    parser.add_argument(
        "--no-numbering",
        action="store_true",
        default=False,
        help="Disable automatic heading numbering.",
    )
    parser.add_argument(
        "--no-toc",
        action="store_true",
        default=False,
        help="Disable table of contents generation.",
    )

    # Verbosity
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable verbose (DEBUG) logging output.",
    )

    return parser


def _setup_logging(verbose: bool) -> None:
    """Configure the root logger for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        logging.FileHandler(log_dir / "docexport.log", encoding="utf-8"),
    ]

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _resolve_output_path(input_path: str, output_arg: str | None) -> str:
    if output_arg:
        return output_arg
    return str(Path(input_path).with_suffix(".docx"))


def _load_document(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def _print_summary(root: DocumentNode) -> None:
    """Print a human-readable document summary to stdout."""
    counts = Counter(node.type for node in root.walk())
    print("\n--- Export Summary ---")
    print(f"  Headings   : {counts.get('heading', 0)}")
    print(f"  Paragraphs : {counts.get('paragraph', 0)}")
    print(f"  Tables     : {counts.get('table', 0)}")
    print(f"  Images     : {counts.get('image', 0)}")
    print(f"  Footnotes  : {counts.get('footnote', 0)}")
    print("----------------------\n")


def main(argv: list[str] | None = None) -> None:
    """Run the export pipeline."""
    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    # -- Logging -----------------------------------------------------------
    _setup_logging(args.verbose)

    input_path = args.input
    if not Path(input_path).is_file():
        logger.error("Input file not found: %s", input_path)
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    output_path = _resolve_output_path(input_path, args.output)
    logger.info("Input : %s", input_path)
    logger.info("Output: %s", output_path)

    try:
        # -- Step 1: Load --------------------------------------------------
        data = _load_document(input_path)
        root = validate_document(data)
        template = load_template(args.template, args.theme)
        letterhead = load_letterhead(args.letterhead) if args.letterhead else None
        numbering = NumberingConfig(
            enabled=not args.no_numbering,
            style=NumberingStyle.parse(args.numbering_style),
            start_level=args.start_level,
            max_level=args.max_level,
        )
        metadata = DocumentMetadata(title=args.title, number=args.number,
                                    author=args.author)

        # -- Step 2: DOCX --------------------------------------------------
        logger.info("Generating DOCX...")
        saved = export_docx(root, template, output_path, numbering, metadata,
                            include_toc=not args.no_toc, letterhead=letterhead,
                            page_number_footer=args.page_number_footer)

        # -- Step 3: PDF definition ----------------------------------------
        if args.pdf_definition:
            logger.info("Generating PDF document definition...")
            definition = build_pdf_definition(root, template, numbering, metadata,
                                              include_toc=not args.no_toc,
                                              letterhead=letterhead,
                                              page_number_footer=args.page_number_footer)
            out = Path(args.pdf_definition)
            out.parent.mkdir(parents=True, exist_ok=True)
            with open(out, "w", encoding="utf-8") as fh:
                json.dump(preview_pdf_definition(definition), fh,
                          ensure_ascii=False, indent=2)
            logger.info("PDF definition saved to %s", out)

        _print_summary(root)
        print(f"Document saved to: {saved}")
        logger.info("Export complete: %s", saved)

    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        logger.error("Invalid input: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        logger.exception("Unexpected error during export.")
        print(
            f"Error: An unexpected error occurred: {exc}\n"
            "Run with -v for detailed debug output.",
            file=sys.stderr,
        )
        sys.exit(2)


if __name__ == "__main__":
    main()
